#!/usr/bin/env python3
"""
Animify Application Entry Point

This script starts the Animify server using uvicorn.

Usage:
    python run.py

Or with custom host/port:
    python run.py --host 0.0.0.0 --port 8000

Check the environment without starting the server:
    python run.py --show-config

For production deployment, use gunicorn or similar:
    gunicorn animify.main:app -w 4 -k uvicorn.workers.UvicornWorker

Note that chat history lives in process memory, so every worker keeps
its own conversations.
"""

import sys
import argparse
import logging
from pathlib import Path

# config.py lives at the repository root
project_root = Path(__file__).parent
sys.path.insert(0, str(project_root))

from config import Config

# uvicorn imports animify.main, which sets up its own handlers
logging.basicConfig(
    level=getattr(logging, Config.LOG_LEVEL.upper()),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Animify Server",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    parser.add_argument(
        "--host",
        type=str,
        default=Config.HOST,
        help="Host to bind to"
    )

    parser.add_argument(
        "--port",
        type=int,
        default=Config.PORT,
        help="Port to bind to"
    )

    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development"
    )

    parser.add_argument(
        "--workers",
        type=int,
        default=1,
        help="Number of worker processes (ignored with --reload)"
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=Config.LOG_LEVEL.lower(),
        choices=["debug", "info", "warning", "error", "critical"],
        help="Logging level"
    )

    parser.add_argument(
        "--show-config",
        action="store_true",
        help="Validate and print the configuration, then exit"
    )

    return parser.parse_args(argv)


def main(argv=None):
    """Start uvicorn, or print and validate the configuration with --show-config."""
    args = parse_args(argv)

    if args.show_config:
        Config.display()
        try:
            Config.validate()
        except ValueError as e:
            print(f"\n⚠️  {e}")
            sys.exit(1)
        return

    logger.info("=" * 60)
    logger.info("Starting Animify Server...")
    logger.info(f"Host: {args.host}")
    logger.info(f"Port: {args.port}")
    logger.info(f"Reload: {args.reload}")
    logger.info(f"Workers: {1 if args.reload else args.workers}")
    logger.info(f"Log Level: {args.log_level}")
    logger.info("=" * 60)

    try:
        import uvicorn

        uvicorn.run(
            "animify.main:app",
            host=args.host,
            port=args.port,
            reload=args.reload,
            workers=None if args.reload else args.workers,
            log_level=args.log_level,
            access_log=True
        )

    except KeyboardInterrupt:
        logger.info("\nShutdown requested by user")
    except Exception as e:
        logger.error(f"Failed to start server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
