"""Draftboard CLI entry point."""

import argparse
import asyncio
import logging
import sys
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from draftboard import __version__
from draftboard.config import get_settings
from draftboard.exceptions import DraftboardError
from draftboard.observability import initialize_logfire
from draftboard.runtime import open_services
from draftboard.services.fee_policy import FeePolicy

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Draftboard Configuration
# Operational parameters for escrow funding and payouts.
# API keys and secrets belong in .env, not here.

fees:
  rate: 0.05
  minimum: 0.50

funding:
  currency: usd
  session_ttl_minutes: 60

payouts:
  stale_processing_minutes: 30
  refresh_batch_size: 50

credit:
  minimum_redemption: 10.00

processor:
  timeout_seconds: 15
  max_retries: 3
  signature_tolerance_seconds: 300

telegram:
  max_attempts: 2
  dedupe_window_seconds: 300
"""


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize the data directory and configuration template."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Add PROCESSOR__SECRET_KEY and PROCESSOR__WEBHOOK_SECRET to .env")
        print("2. Review data/config.yaml")
        print("3. Run 'python -m draftboard init-db' to create tables")
        print("4. Run 'python -m draftboard serve' to start the API\n")
        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Draftboard Configuration ===\n")
        print(f"Environment: {settings.environment}")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Fees:")
        print(f"  Rate: {settings.fees.rate:.2%}")
        print(f"  Minimum: ${settings.fees.minimum:,.2f}\n")

        print("Funding:")
        print(f"  Currency: {settings.funding.currency}")
        print(f"  Session TTL: {settings.funding.session_ttl_minutes} min\n")

        print("Payouts:")
        print(f"  Stale Processing After: {settings.payouts.stale_processing_minutes} min")
        print(f"  Refresh Batch Size: {settings.payouts.refresh_batch_size}")
        print(f"  Minimum Redemption: ${settings.credit.minimum_redemption:,.2f}\n")

        print("Processor:")
        print(f"  Mode: {'SANDBOX' if settings.processor.sandbox else 'LIVE'}")
        print(f"  Base URL: {settings.processor.base_url}\n")

        print("Secrets:")
        print(f"  Processor Key: {'✓ Set' if settings.processor.secret_key else '✗ Not set'}")
        print(f"  Webhook Secret: {'✓ Set' if settings.processor.webhook_secret else '✗ Not set'}")
        print(f"  Telegram: {'✓ Set' if settings.telegram.enabled else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")
        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1


def cmd_init_db(args: argparse.Namespace) -> int:
    """Create database tables."""
    from draftboard.database import create_engine, init_models

    async def _run() -> None:
        engine = create_engine(get_settings())
        try:
            await init_models(engine)
        finally:
            await engine.dispose()

    try:
        asyncio.run(_run())
        print("\n✓ Database tables created\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to create tables: {e}", exc_info=True)
        print(f"\n❌ Failed to create tables: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Run the API server."""
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "draftboard.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def cmd_refresh_payouts(args: argparse.Namespace) -> int:
    """Re-check payouts stuck in processing against the processor."""
    settings = get_settings()
    initialize_logfire(settings)

    async def _run():
        async with open_services(settings) as services:
            return await services.payouts.refresh_stale_payouts(
                older_than_minutes=args.older_than,
                limit=args.limit,
            )

    try:
        checked = asyncio.run(_run())
    except Exception as e:
        logger.error(f"Payout refresh failed: {e}", exc_info=True)
        print(f"\n❌ Payout refresh failed: {e}\n")
        return 1

    print(f"\n✓ Re-checked {checked} processing payouts\n")
    return 0


def cmd_expire_funding(args: argparse.Namespace) -> int:
    """Close out pending funding sessions older than the TTL."""
    settings = get_settings()
    initialize_logfire(settings)

    async def _run() -> int:
        async with open_services(settings) as services:
            return await services.funding.expire_stale_sessions(args.ttl)

    try:
        closed = asyncio.run(_run())
    except Exception as e:
        logger.error(f"Funding session sweep failed: {e}", exc_info=True)
        print(f"\n❌ Funding session sweep failed: {e}\n")
        return 1

    print(f"\n✓ Closed out {closed} stale funding sessions\n")
    return 0


def cmd_quote_fee(args: argparse.Namespace) -> int:
    """Print the fee breakdown for a gross funding amount."""
    policy = FeePolicy.from_config(get_settings().fees)
    try:
        breakdown = policy.compute_fee(Decimal(args.amount))
    except DraftboardError as e:
        print(f"\n❌ {e.message}\n")
        return 1

    print(f"\nGross: ${breakdown.gross:,.2f}")
    print(f"Fee:   ${breakdown.fee:,.2f}")
    print(f"Net:   ${breakdown.net:,.2f}\n")
    return 0


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Draftboard: brief escrow funding and creator payouts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Draftboard {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration file",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_init_db = subparsers.add_parser(
        "init-db",
        help="Create database tables",
    )
    parser_init_db.set_defaults(func=cmd_init_db)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Run the API server",
    )
    parser_serve.add_argument("--host", default=None)
    parser_serve.add_argument("--port", type=int, default=None)
    parser_serve.add_argument(
        "--reload",
        action="store_true",
        help="Reload on code changes",
    )
    parser_serve.set_defaults(func=cmd_serve)

    parser_refresh = subparsers.add_parser(
        "refresh-payouts",
        help="Re-check payouts stuck in processing",
    )
    parser_refresh.add_argument(
        "--older-than",
        type=int,
        default=None,
        help="Minutes in processing before a payout is re-checked",
    )
    parser_refresh.add_argument("--limit", type=int, default=None)
    parser_refresh.set_defaults(func=cmd_refresh_payouts)

    parser_expire = subparsers.add_parser(
        "expire-funding",
        help="Close out stale pending funding sessions",
    )
    parser_expire.add_argument(
        "--ttl",
        type=int,
        default=None,
        help="Session age in minutes (defaults to funding.session_ttl_minutes)",
    )
    parser_expire.set_defaults(func=cmd_expire_funding)

    parser_quote = subparsers.add_parser(
        "quote-fee",
        help="Show the platform fee for a funding amount",
    )
    parser_quote.add_argument("amount", help="Gross funding amount, e.g. 1000.00")
    parser_quote.set_defaults(func=cmd_quote_fee)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
