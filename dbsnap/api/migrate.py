"""POST /api/migrate — run a migration; POST /api/migrate/plan — dry run."""
import logging

from fastapi import APIRouter, HTTPException
from sqlalchemy.exc import SQLAlchemyError

from dbsnap.core.config_validator import validate_config
from dbsnap.core.engine import MigrationEngine
from dbsnap.core.errors import ConfigurationError, MigrationError
from dbsnap.models.migration import MigrationConfiguration
from dbsnap.models.result import MigrationResult

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/migrate", response_model=MigrationResult)
def run_migration(config: MigrationConfiguration):
    """
    1. Validate the configuration (400 on errors)
    2. Run the migration
    3. Return the result (500 with the result on failure)
    """
    report = validate_config(config)
    if not report.is_valid:
        raise HTTPException(status_code=400, detail={"errors": report.errors, "warnings": report.warnings})

    result = MigrationEngine(config).migrate()
    if not result.success:
        logger.error("Migration request failed: %s", result.message)
        raise HTTPException(status_code=500, detail=result.model_dump(mode="json"))
    return result


@router.post("/migrate/plan")
def plan_migration(config: MigrationConfiguration):
    try:
        statements = MigrationEngine(config).plan()
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except (MigrationError, SQLAlchemyError) as e:
        logger.exception("Dry run failed")
        raise HTTPException(status_code=500, detail=f"Dry run error: {e}")
    return {"statements": statements}
