"""
Command Line Interface

Usage:
    olist-kpis run [--synthetic N] [--output PATH] [--report NAME ...]
    olist-kpis audit [--synthetic N]
    olist-kpis seed [--persons N] [--products N] [--seed N]
    olist-kpis serve [--dev] [--port N]
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

import structlog

from olist_kpis.config import get_settings
from olist_kpis.config.logging import configure_logging
from olist_kpis.data.generators import SnapshotGenerator
from olist_kpis.database.connection import close_database, init_database
from olist_kpis.ingestion.seed_db import seed_database
from olist_kpis.ingestion.snapshot import Snapshot, SnapshotLoader
from olist_kpis.quality.checks import audit_snapshot, failed_checks, profile_snapshot
from olist_kpis.transformation.pipeline import KpiPipeline, ReportName

logger = structlog.get_logger(__name__)


def _snapshot(args: argparse.Namespace) -> Snapshot:
    if args.synthetic:
        logger.info("Generating synthetic snapshot", persons=args.synthetic, seed=args.seed)
        return SnapshotGenerator(seed=args.seed).generate(n_persons=args.synthetic)

    engine = init_database(args.database_url)
    try:
        return SnapshotLoader(engine).load()
    finally:
        close_database()


def cmd_run(args: argparse.Namespace) -> int:
    snapshot = _snapshot(args)
    reports = [ReportName(name) for name in args.report] if args.report else None

    pipeline = KpiPipeline(output_path=args.output)
    run = asyncio.run(pipeline.run(snapshot, reports))
    written = pipeline.export(run)

    for name, result in run.results.items():
        state = "ok" if result.succeeded else f"FAILED: {'; '.join(result.errors)}"
        print(f"{name.value:<26} {result.rows:>8} rows  {state}")
    print(f"\nfingerprint {run.fingerprint}, {len(written)} reports written")

    return 1 if run.failed else 0


def cmd_audit(args: argparse.Namespace) -> int:
    settings = get_settings()
    snapshot = _snapshot(args)

    results = audit_snapshot(
        snapshot,
        settings.kpi.delivered_status,
        settings.data_quality.status_probe_values,
    )
    report = {
        "fingerprint": snapshot.fingerprint(),
        "profile": profile_snapshot(snapshot).to_dict(),
        "audit": {table: result.to_dict() for table, result in results.items()},
    }
    print(json.dumps(report, indent=2, default=str))

    return 1 if any(result.status.value == "failed" for result in results.values()) else 0


def cmd_seed(args: argparse.Namespace) -> int:
    snapshot = SnapshotGenerator(seed=args.seed).generate(
        n_persons=args.persons,
        n_products=args.products,
    )
    engine = init_database(args.database_url)
    try:
        inserted = seed_database(engine, snapshot)
    finally:
        close_database()

    for table, rows in inserted.items():
        print(f"{table:<22} {rows:>8}")
    return 0


def cmd_serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "olist_kpis.main:app",
        host=settings.api_host,
        port=args.port or settings.api_port,
        reload=args.dev,
        workers=None if args.dev else settings.api_workers,
        log_level=settings.monitoring.log_level.lower(),
        proxy_headers=True,
        server_header=False,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="olist-kpis", description="Olist KPI analytics")
    parser.add_argument("--log-level", default=None, help="Override LOG_LEVEL")
    sub = parser.add_subparsers(dest="command", required=True)

    def source_args(p: argparse.ArgumentParser) -> None:
        p.add_argument("--database-url", default=None, help="SQLAlchemy URL of the source store")
        p.add_argument(
            "--synthetic",
            type=int,
            default=0,
            metavar="PERSONS",
            help="Use a generated snapshot with this many customers instead of the database",
        )
        p.add_argument("--seed", type=int, default=42, help="Generator seed")

    run = sub.add_parser("run", help="Compute and export every report")
    source_args(run)
    run.add_argument("--output", default=None, help="Export directory (default: DATA_CURATED_PATH)")
    run.add_argument(
        "--report",
        action="append",
        choices=[name.value for name in ReportName],
        help="Compute only this report (repeatable)",
    )
    run.set_defaults(func=cmd_run)

    audit = sub.add_parser("audit", help="Profile and audit the source tables")
    source_args(audit)
    audit.set_defaults(func=cmd_audit)

    seed = sub.add_parser("seed", help="Load a generated snapshot into the database")
    seed.add_argument("--database-url", default=None, help="SQLAlchemy URL of the target store")
    seed.add_argument("--persons", type=int, default=1000)
    seed.add_argument("--products", type=int, default=200)
    seed.add_argument("--seed", type=int, default=42, help="Generator seed")
    seed.set_defaults(func=cmd_seed)

    serve = sub.add_parser("serve", help="Start the report API")
    serve.add_argument("--dev", action="store_true", help="Auto-reload, single worker")
    serve.add_argument("--port", type=int, default=None)
    serve.set_defaults(func=cmd_serve)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
