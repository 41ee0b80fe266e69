"""Render a MigrationResult as JSON-ready dict or Markdown."""
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dbsnap.models.result import MigrationResult

_STATUS_BADGE = {"migrated": "✅", "failed": "❌", "skipped": "⏭️"}


def build_json(result: MigrationResult) -> dict:
    data = result.model_dump(mode="json")
    data["rows_migrated"] = result.rows_migrated
    data["generated_at"] = datetime.now(timezone.utc).isoformat()
    return data


def build_markdown(result: MigrationResult, generated_at: Optional[datetime] = None) -> str:
    generated_at = generated_at or datetime.now(timezone.utc)
    status = "SUCCESS" if result.success else "FAILED"
    lines = [
        "# Migration Report",
        "",
        f"**Status:** {status}  ",
        f"**Target:** `{result.target_database}`  ",
        f"**Tables migrated:** {result.tables_migrated}  ",
        f"**Rows migrated:** {result.rows_migrated}  ",
        f"**Duration:** {result.duration_seconds:.2f}s  ",
        f"**Generated:** {generated_at.strftime('%Y-%m-%d %H:%M:%S UTC')}",
        "",
        f"> {result.message}",
        "",
    ]

    if result.error:
        lines += ["## Error", ""]
        where = f" (table `{result.error.table}`)" if result.error.table else ""
        lines += [f"**{result.error.kind}**{where}: {result.error.message}", ""]

    if result.tables:
        lines += [
            "## Tables",
            "",
            "| Table | Status | Rows | Error |",
            "|-------|--------|------|-------|",
        ]
        for t in result.tables:
            badge = _STATUS_BADGE.get(t.status, "")
            error = (t.error or "").replace("|", "\\|").replace("\n", " ")
            lines.append(f"| `{t.name}` | {badge} {t.status} | {t.rows_migrated} | {error} |")
        lines.append("")

    if result.warnings:
        lines += ["## Warnings", ""]
        lines += [f"- {w}" for w in result.warnings]
        lines.append("")

    return "\n".join(lines)


def write_report(result: MigrationResult, path: str | Path) -> Path:
    """Write JSON when `path` ends in .json, Markdown otherwise."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    if path.suffix.lower() == ".json":
        path.write_text(json.dumps(build_json(result), indent=2), encoding="utf-8")
    else:
        path.write_text(build_markdown(result), encoding="utf-8")
    return path
