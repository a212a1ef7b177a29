from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path

from pyrad.dictionary import ParseError

from radgen import __version__
from radgen.errors import log_fatal_error
from radgen.exceptions import ConfigValidationError, RadgenError
from radgen.logger import session_logger as logger

from loadgen.api.report import build_run_report
from loadgen.core.attributes import parse_nas_address
from loadgen.core.custom_fields import parse_custom_fields
from loadgen.core.engine import DispatchEngine
from loadgen.core.models import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_NAS_IP_ADDRESS,
    DEFAULT_NAS_PORT,
    DEFAULT_PORT,
    DEFAULT_RATE_PER_SEC,
    DEFAULT_RETRY_INTERVAL_SECONDS,
    UNBOUNDED_REQUESTS,
    DispatchConfig,
)
from loadgen.core.records import SyntheticRecordSource
from loadgen.core.transport import RadiusTransport, load_dictionary


class _ArgumentParser(argparse.ArgumentParser):
    """Usage errors exit with status 1 like every other validation failure."""

    def error(self, message: str):  # type: ignore[override]
        self.print_usage(sys.stderr)
        self.exit(1, f"{self.prog}: error: {message}\n")


def _build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="radius-gen-acct",
        description="RADIUS accounting (RFC 2866) load generator: sends synthetic "
        "SIP call Accounting-Requests at a fixed rate.",
    )
    parser.add_argument(
        "--pps",
        "-p",
        type=float,
        default=DEFAULT_RATE_PER_SEC,
        help="Accounting-Requests issued per second (must be > 0)",
    )
    parser.add_argument(
        "--server",
        "-s",
        type=str,
        default=os.environ.get("RADGEN_SERVER"),
        help="Accounting server host (default: $RADGEN_SERVER)",
    )
    parser.add_argument(
        "--port",
        "-P",
        type=int,
        default=DEFAULT_PORT,
        help="Accounting server UDP port",
    )
    parser.add_argument(
        "--key",
        "-k",
        type=str,
        default=os.environ.get("RADGEN_KEY"),
        help="Shared secret (default: $RADGEN_KEY)",
    )
    parser.add_argument(
        "--nas-ip",
        type=str,
        default=DEFAULT_NAS_IP_ADDRESS,
        help="NAS-IP-Address placed in every request",
    )
    parser.add_argument(
        "--nas-port",
        type=int,
        default=DEFAULT_NAS_PORT,
        help="NAS-Port placed in every request",
    )
    parser.add_argument(
        "--max-req",
        "-m",
        type=int,
        default=UNBOUNDED_REQUESTS,
        help="Stop after this many successful exchanges (default: unbounded)",
    )
    parser.add_argument(
        "--retry-int",
        "-r",
        type=float,
        default=DEFAULT_RETRY_INTERVAL_SECONDS,
        help="Seconds between resends of one request (zero or negative disables retry)",
    )
    parser.add_argument(
        "--max-retry",
        type=int,
        default=DEFAULT_MAX_RETRIES,
        help="Maximum sends per request before the run is aborted",
    )
    parser.add_argument(
        "--custom-fields",
        type=str,
        default="",
        help='Extra attributes as "ID=VALUE,ID=VALUE"',
    )
    parser.add_argument(
        "--stats",
        "-c",
        action="store_true",
        help="Log requests per second and the running total every second",
    )
    parser.add_argument(
        "--log-file",
        type=str,
        default=None,
        help="Also write log lines to this file",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Log level (default: $RADGEN_LOG_LEVEL or INFO)",
    )
    parser.add_argument(
        "--dictionary",
        type=str,
        default=None,
        help="RADIUS dictionary file (default: bundled dictionary.routecall)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the synthetic call records",
    )
    parser.add_argument(
        "--output",
        type=str,
        default=None,
        help="Write summary report JSON to this path",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def build_config(args: argparse.Namespace) -> DispatchConfig:
    """Validate parsed options into a DispatchConfig.

    Raises:
        ConfigValidationError: a required option is missing or out of range.
        InvalidAddressError: --nas-ip is not an IPv4 address.
    """
    if args.pps <= 0:
        raise ConfigValidationError("INVALID_RATE", "pps must be greater than 0", {"provided": args.pps})

    server = (args.server or "").strip()
    if not server:
        raise ConfigValidationError("MISSING_SERVER", "server not defined")

    if not args.key:
        raise ConfigValidationError("MISSING_KEY", "key not defined")

    if not 1 <= args.port <= 65535:
        raise ConfigValidationError("INVALID_PORT", "port must be between 1 and 65535", {"provided": args.port})

    if args.nas_port < 0:
        raise ConfigValidationError("INVALID_NAS_PORT", "nas-port must be >= 0", {"provided": args.nas_port})

    if args.max_req < 1:
        raise ConfigValidationError("INVALID_MAX_REQ", "max-req must be >= 1", {"provided": args.max_req})

    if args.max_retry < 1:
        raise ConfigValidationError("INVALID_MAX_RETRY", "max-retry must be >= 1", {"provided": args.max_retry})

    parse_nas_address(args.nas_ip)

    return DispatchConfig(
        server=server,
        secret=args.key,
        port=args.port,
        nas_ip_address=args.nas_ip.strip(),
        nas_port=args.nas_port,
        rate_per_sec=args.pps,
        total_requests=args.max_req,
        retry_interval_seconds=args.retry_int,
        max_retries=args.max_retry,
        custom_fields=args.custom_fields,
        show_stats=args.stats,
    )


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.log_level:
        logger.set_level(args.log_level)
    if args.log_file:
        logger.add_file_output(args.log_file)

    try:
        return _run(args)
    finally:
        if args.log_file:
            logger.close()


def _run(args: argparse.Namespace) -> int:
    try:
        config = build_config(args)
        custom_fields = parse_custom_fields(config.custom_fields)
    except RadgenError as exc:
        log_fatal_error("gen.invalid_config", exc)
        return 1

    try:
        dictionary = load_dictionary(args.dictionary)
    except (OSError, ParseError) as exc:
        logger.error(
            "gen.invalid_dictionary",
            event="gen.invalid_dictionary",
            path=args.dictionary,
            error=str(exc),
            recovery="Pass a readable FreeRADIUS-format dictionary to --dictionary",
        )
        return 1

    engine = DispatchEngine(
        config,
        transport=RadiusTransport(dictionary, logger=logger),
        record_source=SyntheticRecordSource(seed=args.seed),
        custom_fields=custom_fields,
        logger=logger,
    )

    try:
        result = asyncio.run(engine.run())
    except RadgenError as exc:
        log_fatal_error("gen.fatal", exc)
        return 1

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        payload = build_run_report(config, result)
        output_path.write_text(json.dumps(payload, indent=2, sort_keys=True), encoding="utf-8")

        logger.info(
            "gen.report_written",
            event="gen.report_written",
            path=str(output_path),
        )

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
