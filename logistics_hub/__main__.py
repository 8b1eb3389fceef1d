from __future__ import annotations

import argparse
import asyncio
import sys
from typing import Sequence

from logistics_hub.common.db import dispose_engines, run_alembic_upgrade
from logistics_hub.common.json_logger import get_logger, log_event
from logistics_hub.config import Config, ConfigError, get_config
from logistics_hub.errors import IntegrationNotConfigured, NotFoundError, VendorError

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def _serve(config: Config, args: argparse.Namespace) -> int:
    import uvicorn

    from logistics_hub.api.app import create_app

    uvicorn.run(create_app(config), host=args.host, port=args.port, log_level=args.log_level)
    return EXIT_OK


def _db_upgrade(config: Config, args: argparse.Namespace) -> int:
    run_alembic_upgrade(
        args.revision, database_url=config.database_url, alembic_config_path=config.alembic_config
    )
    return EXIT_OK


async def _report(config: Config, args: argparse.Namespace) -> int:
    from logistics_hub.reports.pipeline import generate_report

    logger = get_logger()
    try:
        path = await generate_report(args.kind, config=config, created_by="cli", logger=logger)
    finally:
        await dispose_engines()
        logger.close()
    print(path)
    return EXIT_OK


async def _reconcile(config: Config, args: argparse.Namespace) -> int:
    from logistics_hub.integrations.paymongo import PaymentGatewayClient
    from logistics_hub.payments.ledger import reconcile_payment

    logger = get_logger()
    try:
        client = PaymentGatewayClient.from_config(config, logger=logger)
        result = await reconcile_payment(config.database_url, client, args.payment_intent_id, logger=logger)
    finally:
        await dispose_engines()
        logger.close()
    print(f"{result.payment_intent_id}: {result.outcome} ({result.result})")
    return EXIT_OK


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="logistics-hub", description="Logistics back office")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP service")
    serve_parser.add_argument("--host", default="0.0.0.0")
    serve_parser.add_argument("--port", type=int, default=8000)
    serve_parser.add_argument("--log-level", dest="log_level", default="info")

    db_parser = subparsers.add_parser("db", help="Database maintenance")
    db_sub = db_parser.add_subparsers(dest="db_command", required=True)
    upgrade_parser = db_sub.add_parser("upgrade", help="Apply Alembic migrations")
    upgrade_parser.add_argument("revision", nargs="?", default="head")

    report_parser = subparsers.add_parser("report", help="Render a PDF report")
    report_parser.add_argument("kind", choices=["shipments", "customers"])

    reconcile_parser = subparsers.add_parser(
        "reconcile", help="Settle a pending payment against its payment intent"
    )
    reconcile_parser.add_argument("payment_intent_id")

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else sys.argv[1:])

    try:
        config = get_config()
    except ConfigError as exc:
        print(f"[logistics-hub] configuration error: {exc}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        if args.command == "serve":
            return _serve(config, args)
        if args.command == "db":
            return _db_upgrade(config, args)
        if args.command == "report":
            return asyncio.run(_report(config, args))
        if args.command == "reconcile":
            return asyncio.run(_reconcile(config, args))
    except IntegrationNotConfigured as exc:
        print(f"[logistics-hub] {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except (NotFoundError, VendorError) as exc:
        logger = get_logger()
        log_event(logger=logger, phase=f"cli.{args.command}", status="error", message=str(exc))
        logger.close()
        return EXIT_FAILURE

    parser.error("Unknown command")
    return EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
