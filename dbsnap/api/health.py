"""GET /api/health — service status and supported dialects."""
import logging

from fastapi import APIRouter

from dbsnap import __version__
from dbsnap.core.dialects import registry

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
def health_check():
    return {
        "status": "ok",
        "version": __version__,
        "dialects": _dialects(),
    }


def _dialects() -> list[dict]:
    return [
        {"name": spec.name, "embedded": spec.embedded, "default_port": spec.default_port}
        for spec in (registry.resolve(name) for name in registry.names())
    ]
