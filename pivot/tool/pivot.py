"""Command line tool for bootstrapping a cluster into a self hosted GitOps state."""

import argparse
import asyncio
import logging
import sys
import traceback

import structlog

from pivot.exceptions import PivotException
from . import password, proxy, run, version

_LOGGER = logging.getLogger(__name__)


def configure_logging(level: str, log_format: str = "text") -> None:
    """Send log records to stderr as plain text or one JSON object per line."""
    if log_format != "json":
        logging.basicConfig(level=level)
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.processors.JSONRenderer(),
            foreign_pre_chain=[
                structlog.stdlib.add_logger_name,
                structlog.stdlib.add_log_level,
                structlog.processors.TimeStamper(fmt="iso"),
            ],
        )
    )
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _make_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Bootstrap a Kubernetes cluster to manage itself from an in-cluster git server.",
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=["text", "json"],
        default="text",
        help="Log output format",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command", required=True)

    run.RunAction.register(subparsers)
    password.PasswordAction.register(subparsers)
    proxy.ProxyAction.register(subparsers)
    version.VersionAction.register(subparsers)
    return parser


def main(argv: list[str] | None = None) -> None:
    """Pivot command line tool main entry point."""
    parser = _make_parser()
    args = parser.parse_args(argv)

    configure_logging(args.log_level, args.format)

    action = args.cls()
    try:
        asyncio.run(action.run(**vars(args)))
    except PivotException as err:
        if args.log_level == "DEBUG":
            traceback.print_exc(file=sys.stderr)
        print("pivot error: ", err, file=sys.stderr)
        sys.exit(1)
    except KeyboardInterrupt:
        _LOGGER.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
