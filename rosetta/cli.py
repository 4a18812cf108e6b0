"""
Rosetta operator console.

Initializes the conversion store, inspects schema versions, previews a
conversion without recording it, and processes pending requests.

Usage:
    python -m rosetta.cli init-db
    python -m rosetta.cli schemas [--nation USA]
    python -m rosetta.cli convert USA "SECRET" GBR FRA
    python -m rosetta.cli pending
    python -m rosetta.cli process [--request-id UUID]
"""

from __future__ import annotations

import argparse
import logging
import sys
from uuid import UUID

import structlog
from rich.console import Console
from rich.table import Table

from rosetta.config import settings
from rosetta.errors import RosettaError
from rosetta.services import Services, build_services
from rosetta.store.crypto import FieldCipher
from rosetta.store.database import Database

console = Console()


def configure_logging() -> None:
    """Configure structured logging."""
    logging.basicConfig(level=settings.log_level, format="%(name)s %(levelname)s %(message)s")
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.dev.ConsoleRenderer()
                if settings.log_format != "json"
                else structlog.processors.JSONRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelName(settings.log_level)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _fmt(value) -> str:
    return str(value)[:19] if value else "—"


# ── Commands ───────────────────────────────────────────────────


def cmd_init_db(services: Services, args: argparse.Namespace) -> int:
    services.db.initialize()
    console.print("[bold green]✓ Conversion store initialized[/bold green]")
    return 0


def cmd_schemas(services: Services, args: argparse.Namespace) -> int:
    if args.nation:
        schemas = services.registry.versions(args.nation)
        title = f"Schema history — {args.nation.upper()}"
    else:
        schemas = services.registry.list_latest()
        title = "Latest classification schemas"

    if not schemas:
        console.print("[yellow]⚠ No classification schemas found[/yellow]")
        return 0

    now = services.clock()
    table = Table(title=title, show_lines=False)
    table.add_column("Nation", style="cyan", width=6)
    table.add_column("Version", style="green")
    table.add_column("Secret ↔ NATO", style="yellow")
    table.add_column("Caveats", style="dim")
    table.add_column("Created", width=20)
    table.add_column("Expires", width=20)
    table.add_column("Valid", width=6)
    for schema in schemas:
        table.add_row(
            schema.nation_code,
            schema.version,
            f"{schema.to_nato_secret} / {schema.from_nato_secret}",
            schema.caveats or "—",
            _fmt(schema.created_at),
            _fmt(schema.expires_at),
            "[green]✓[/green]" if schema.is_valid(now) else "[red]✗[/red]",
        )
    console.print(table)
    return 0


def cmd_convert(services: Services, args: argparse.Namespace) -> int:
    result = services.lifecycle.preview(args.source, args.classification, args.targets)

    console.print(
        f"\n  {args.source.upper()} '{args.classification}' → "
        f"[bold]{result.nato_equivalent}[/bold]"
    )
    table = Table(show_lines=False)
    table.add_column("Target", style="cyan", width=6)
    table.add_column("Classification", style="green")
    table.add_column("Schema", style="dim")
    for code, text in result.target_classifications.items():
        table.add_row(code, text, result.schema_versions.get(code, "—"))
    console.print(table)
    if result.expires_at:
        console.print(f"  [dim]Valid until {_fmt(result.expires_at)}[/dim]")
    console.print("  [dim]Preview only — nothing was recorded[/dim]\n")
    return 0


def cmd_pending(services: Services, args: argparse.Namespace) -> int:
    pending = services.records.pending_requests()
    console.print(f"  Pending requests: [bold]{len(pending)}[/bold]")
    if not pending:
        return 0

    table = Table(show_lines=False)
    table.add_column("Request", style="dim")
    table.add_column("Source", style="cyan", width=6)
    table.add_column("Classification", style="yellow")
    table.add_column("Targets", style="green")
    table.add_column("Submitted", width=20)
    for request in pending:
        table.add_row(
            str(request.id),
            request.source_nation_code,
            request.source_nation_classification,
            ", ".join(request.target_nation_codes),
            _fmt(request.created_at),
        )
    console.print(table)
    return 0


def cmd_process(services: Services, args: argparse.Namespace) -> int:
    log = structlog.get_logger()

    if args.request_id:
        response = services.lifecycle.process_and_convert(UUID(args.request_id))
        log.info("rosetta.cli.process.completed", request_id=args.request_id)
        console.print(
            f"[bold green]✓ COMPLETED[/bold green] {response.nato_equivalent} → "
            + ", ".join(f"{k}: {v}" for k, v in response.target_nation_classifications.items())
        )
        return 0

    completed, failures = services.lifecycle.process_pending()
    log.info("rosetta.cli.process.batch", completed=len(completed), failed=len(failures))
    console.print(f"  Completed: [bold green]{len(completed)}[/bold green]")
    console.print(f"  Still pending: [bold yellow]{len(failures)}[/bold yellow]")
    for request_id, error in failures.items():
        console.print(f"  [red]✗[/red] {request_id}: {error}")
    return 0 if not failures else 1


COMMANDS = {
    "init-db": cmd_init_db,
    "schemas": cmd_schemas,
    "convert": cmd_convert,
    "pending": cmd_pending,
    "process": cmd_process,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Rosetta classification conversion console"
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy connection string (defaults to .env settings)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the conversion store tables")

    schemas = sub.add_parser("schemas", help="List classification schemas")
    schemas.add_argument("--nation", help="Show the full version history of one nation")

    convert = sub.add_parser("convert", help="Preview a conversion without recording it")
    convert.add_argument("source", help="Source nation code")
    convert.add_argument("classification", help="Classification in the source vocabulary")
    convert.add_argument("targets", nargs="+", help="Target nation codes")

    sub.add_parser("pending", help="List pending conversion requests")

    process = sub.add_parser("process", help="Process pending conversion requests")
    process.add_argument("--request-id", help="Process only this request")

    return parser


def main(argv: list[str] | None = None, services: Services | None = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging()

    if services is None:
        db = Database(args.database_url or settings.database_url_sync)
        services = build_services(db, FieldCipher.from_settings(settings))

    try:
        return COMMANDS[args.command](services, args)
    except RosettaError as exc:
        console.print(f"[bold red]✗ {type(exc).__name__}[/bold red]: {exc}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
