"""
app/__main__.py - Command-Line Interface

Usage:
    python -m app serve
    python -m app serve --port 9000 --reload
    python -m app migrate

Exit Codes:
    0 = OK
    1 = Migration failed
"""
import argparse
import logging
import sys

import uvicorn
from sqlalchemy.exc import SQLAlchemyError

from app.config import settings
from app.database import build_engine, run_migrations

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

logger = logging.getLogger("app")


def main():
    """Parse arguments and dispatch the serve/migrate subcommands."""
    parser = argparse.ArgumentParser(
        prog="loopgate",
        description="Session-gating proxy that blocks looping agents",
    )
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL,
        help="Logging level (default: LOG_LEVEL setting)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the API server")
    serve_parser.add_argument("--host", default=settings.API_HOST)
    serve_parser.add_argument("--port", type=int, default=settings.API_PORT)
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes")

    migrate_parser = subparsers.add_parser("migrate", help="Apply database migrations")
    migrate_parser.add_argument("--revision", default="head", help="Target revision")

    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format=LOG_FORMAT)

    if args.command == "serve":
        run_serve(args)
    elif args.command == "migrate":
        run_migrate(args)


def run_serve(args):
    uvicorn.run(
        "app.main:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level.lower(),
    )


def run_migrate(args):
    engine = build_engine(settings.database_url)
    try:
        run_migrations(engine, args.revision)
    except SQLAlchemyError as e:
        logger.error("Migration failed: %s", e)
        sys.exit(1)
    finally:
        engine.dispose()
    logger.info("Migrated %s to %s", engine.url.render_as_string(hide_password=True), args.revision)


if __name__ == "__main__":
    main()
