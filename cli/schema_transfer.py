"""
Export and import schema documents from the command line.

Usage:
    uv run schema-transfer export Customer -o customer-fields.json
    uv run schema-transfer export Job --exported-by alice --notes "HVAC preset"
    uv run schema-transfer import customer-fields.json --mode merge
    uv run schema-transfer import customer-fields.json --mode replace

The target database comes from DATABASE_URL (see schema_engine.core.config).
Exit code is 0 on success and 1 on failure.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys

from sqlalchemy.ext.asyncio import async_sessionmaker

from schema_engine.core.config import settings
from schema_engine.core.db import (
    create_fresh_async_engine,
    create_schema,
    session_scope,
)
from schema_engine.core.errors import SchemaEngineError
from schema_engine.core.observability import (
    configure_structured_logging,
    generate_request_id,
    set_correlation_id,
)
from schema_engine.domain.enums import ImportMode
from schema_engine.repos import entity_type_repo
from schema_engine.services import schema_transfer

logger = logging.getLogger(__name__)


async def _prepare(maker: async_sessionmaker) -> None:
    async with session_scope(maker) as db:
        await entity_type_repo.ensure_entity_types(db, settings.default_entity_types_list)


async def run_export(args: argparse.Namespace) -> int:
    engine = create_fresh_async_engine()
    maker = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    try:
        if settings.auto_create_schema:
            await create_schema(engine)
        await _prepare(maker)

        async with session_scope(maker) as db:
            document = await schema_transfer.export_schema(
                db, args.entity_type, exported_by=args.exported_by, notes=args.notes
            )
    finally:
        await engine.dispose()

    if args.output:
        path = schema_transfer.write_document_file(document, args.output)
        print(f"[OK] Exported {len(document.fields)} fields of {args.entity_type} to {path}")
    else:
        print(schema_transfer.dump_document(document))
    return 0


async def run_import(args: argparse.Namespace) -> int:
    document = schema_transfer.read_document_file(args.file)

    engine = create_fresh_async_engine()
    maker = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    try:
        if settings.auto_create_schema:
            await create_schema(engine)
        await _prepare(maker)

        async with session_scope(maker) as db:
            result = await schema_transfer.import_document(db, document, args.mode)
    finally:
        await engine.dispose()

    if not result.success:
        print(f"[ERROR] {result.error_message}", file=sys.stderr)
        return 1

    print(f"[OK] Imported into {document.entity_type} ({args.mode.value})")
    for name in result.imported_fields:
        print(f"   + {name}")
    for name in result.skipped_fields:
        print(f"   = {name} (already exists, skipped)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema-transfer",
        description="Export or import custom field schema documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Write an entity type's schema as JSON")
    export_parser.add_argument("entity_type", help="Entity type, e.g. Customer")
    export_parser.add_argument(
        "-o", "--output", help="Output file (prints to stdout when omitted)"
    )
    export_parser.add_argument("--exported-by", help="Operator name recorded in the document")
    export_parser.add_argument("--notes", help="Free-text note recorded in the document")
    export_parser.set_defaults(handler=run_export)

    import_parser = subparsers.add_parser("import", help="Apply a schema document")
    import_parser.add_argument("file", help="Schema document (JSON)")
    import_parser.add_argument(
        "--mode",
        type=ImportMode,
        choices=list(ImportMode),
        default=ImportMode.MERGE,
        metavar="{merge,replace}",
        help="merge keeps existing fields; replace deletes them with their values first",
    )
    import_parser.set_defaults(handler=run_import)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if settings.observability_structured_logs:
        configure_structured_logging(settings.app_log_level)
    set_correlation_id(generate_request_id())

    try:
        return asyncio.run(args.handler(args))
    except SchemaEngineError as e:
        logger.warning(
            f"schema-transfer {args.command} failed: {e.message}",
            extra={"details": e.details},
        )
        print(f"[ERROR] {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
