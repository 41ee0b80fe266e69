"""
dbsnap command line — load a configuration file, apply flag overrides, run.

Exit code 0 on success, 1 on failure (including invalid configuration).
"""
import logging
import sys
from typing import Any, Optional

import click
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from dbsnap import __version__
from dbsnap.config import settings
from dbsnap.core.dialects import register_default_dialects
from dbsnap.core.engine import MigrationEngine
from dbsnap.core.errors import MigrationError
from dbsnap.core.report_builder import write_report
from dbsnap.models.migration import MigrationConfiguration

logger = logging.getLogger("dbsnap")

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]


def _split(value: Optional[str]) -> Optional[list[str]]:
    if value is None:
        return None
    return [v.strip() for v in value.split(",") if v.strip()]


def _compact(d: dict[str, Any]) -> dict[str, Any]:
    """Drop unset values and empty sections."""
    out = {}
    for key, value in d.items():
        if isinstance(value, dict):
            value = _compact(value)
            if value:
                out[key] = value
        elif value is not None:
            out[key] = value
    return out


def build_overrides(**opts: Any) -> dict[str, Any]:
    """Translate CLI flags into a nested snake_case override mapping."""
    sample = opts.get("sample_percentage")
    target: dict[str, Any] = {"url": opts.get("target_url")}
    if opts.get("target_file"):
        target.update(file=opts["target_file"], mode="file")
    return _compact({
        "source": {
            "type": opts.get("source_type"),
            "host": opts.get("source_host"),
            "port": opts.get("source_port"),
            "database": opts.get("source_database"),
            "username": opts.get("source_username"),
            "password": opts.get("source_password"),
            "file": opts.get("source_file"),
            "url": opts.get("source_url"),
        },
        "target": target,
        "migration": {
            "tables": _split(opts.get("tables")),
            "exclude_tables": _split(opts.get("exclude_tables")),
            "batch_size": opts.get("batch_size"),
            "preserve_data": False if opts.get("no_data") else None,
            "data": {
                "max_rows": opts.get("max_rows"),
                "sample_data": True if sample is not None else None,
                "sample_percentage": sample,
                "anonymize_data": True if opts.get("anonymize") else None,
            },
        },
        "output": {
            "exit_on_error": True if opts.get("exit_on_error") else None,
            "report_file": opts.get("report_file"),
            "generate_report": True if opts.get("report_file") else None,
            "log_level": opts.get("log_level"),
        },
    })


def _configure_logging(level: Optional[str]) -> None:
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
    if level:
        logging.getLogger().setLevel(level.upper())


def load_configuration(config_file: Optional[str], overrides: dict[str, Any]) -> MigrationConfiguration:
    try:
        config = MigrationConfiguration.from_file(config_file) if config_file else MigrationConfiguration()
        return config.merged(overrides) if overrides else config
    except (OSError, ValidationError) as e:
        raise click.ClickException(f"Invalid configuration: {e}") from e


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.option("-c", "--config", "config_file", type=click.Path(exists=True, dir_okay=False),
              help="JSON configuration file.")
@click.option("-s", "--source-type", help="Source database type (postgresql, mysql, mssql, oracle, sqlite).")
@click.option("--source-host", help="Source database host.")
@click.option("--source-port", type=click.IntRange(1, 65535), help="Source database port.")
@click.option("--source-database", help="Source database name.")
@click.option("--source-username", help="Source database user.")
@click.option("--source-password", help="Source database password.")
@click.option("--source-file", type=click.Path(dir_okay=False), help="Source database file (embedded sources).")
@click.option("--source-url", help="Source SQLAlchemy URL, overrides the other source options.")
@click.option("-t", "--target-file", type=click.Path(dir_okay=False), help="Target database file.")
@click.option("--target-url", help="Target SQLAlchemy URL.")
@click.option("--tables", help="Comma-separated tables to include ('*' for all).")
@click.option("--exclude-tables", help="Comma-separated exclude patterns, e.g. 'temp_*,log_*'.")
@click.option("--batch-size", type=click.IntRange(min=1), help="Rows per insert batch.")
@click.option("--max-rows", type=click.IntRange(min=1), help="Maximum rows per table.")
@click.option("--sample-percentage", type=click.IntRange(1, 100), help="Copy this percentage of each table.")
@click.option("--anonymize", is_flag=True, help="Anonymize sensitive columns.")
@click.option("--no-data", is_flag=True, help="Copy the schema only.")
@click.option("--exit-on-error", is_flag=True, help="Stop at the first table failure.")
@click.option("--report", "report_file", type=click.Path(dir_okay=False),
              help="Write a report (.json or .md) to this file.")
@click.option("--dry-run", is_flag=True, help="Print the DDL that would run and exit.")
@click.option("--log-level", type=click.Choice(LOG_LEVELS, case_sensitive=False), help="Logging level.")
@click.version_option(__version__, prog_name="dbsnap")
def cli(config_file: Optional[str], dry_run: bool, **opts: Any) -> None:
    """Copy a relational database into an embedded snapshot database."""
    _configure_logging(opts.get("log_level"))
    register_default_dialects()

    config = load_configuration(config_file, build_overrides(**opts))
    if config.output.log_level and not opts.get("log_level"):
        logging.getLogger().setLevel(config.output.log_level.upper())

    engine = MigrationEngine(config)

    if dry_run:
        try:
            statements = engine.plan()
        except (MigrationError, SQLAlchemyError) as e:
            raise click.ClickException(f"Dry run failed: {e}") from e
        for statement in statements:
            click.echo(f"{statement};")
        return

    result = engine.migrate()

    if config.output.generate_report:
        path = write_report(result, config.output.report_file)
        click.echo(f"Report written to {path}")

    if result.success:
        click.echo(
            f"✅ {result.message}: {result.tables_migrated} tables migrated to "
            f"{result.target_database} in {result.duration_seconds:.2f}s"
        )
        for warning in result.warnings:
            click.echo(f"  ⚠ {warning}", err=True)
    else:
        click.echo(f"❌ {result.message}", err=True)
        sys.exit(1)


def main() -> None:
    cli(prog_name="dbsnap")


if __name__ == "__main__":
    main()
