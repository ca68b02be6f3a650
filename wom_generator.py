"""
WOM Voucher Generator: Entry Point
==================================

Usage::

    wom-generator <privKey> <pubKey>

``privKey`` is the source's own PEM key pair, ``pubKey`` the registry's PEM
public key.  Runs the configured number of voucher generations and writes
one ``output-<n>.pdf`` per verified generation.

Exit codes: 0 success, 1 usage error, 2 any other failure.
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import List, Optional, Sequence, Tuple

from womcrypt import WomError, load_key_pair
from wom_config import ConfigError, load_settings, setup_logging
from wom_protocol import VoucherGeneration, VoucherProtocol, run_batch
from wom_render import output_path, render_voucher_pdf
from wom_transport import Transport

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_USAGE = 1
EXIT_FAILURE = 2


class UsageError(WomError):
    """The command line is not ``<privKey> <pubKey>``."""


class _ArgumentParser(argparse.ArgumentParser):
    def error(self, message: str) -> None:  # type: ignore[override]
        raise UsageError(message)


def build_parser() -> argparse.ArgumentParser:
    parser = _ArgumentParser(
        prog="wom-generator",
        description="Generate WOM voucher batches and render them as PDF.",
    )
    parser.add_argument("private_key", metavar="privKey", help="own PEM key pair")
    parser.add_argument("public_key", metavar="pubKey", help="registry PEM public key")
    return parser


def parse_args(argv: Sequence[str]) -> Tuple[str, str]:
    """Return ``(private_key_path, public_key_path)`` or raise UsageError."""
    args = build_parser().parse_args(list(argv))
    return args.private_key, args.public_key


def main(argv: Optional[List[str]] = None) -> int:
    """Application entry point."""
    if argv is None:
        argv = sys.argv[1:]

    parser = build_parser()
    try:
        private_path, public_path = parse_args(argv)
    except UsageError as exc:
        print(parser.format_usage().rstrip(), file=sys.stderr)
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE

    try:
        settings = load_settings()
    except ConfigError as exc:
        print(f"ConfigError: {exc}", file=sys.stderr)
        return EXIT_FAILURE
    setup_logging(settings.log_level)

    def render(generation: VoucherGeneration) -> None:
        render_voucher_pdf(
            output_path(settings.output_dir, generation.index),
            generation.index,
            generation.otc,
            generation.password,
            settings.redeem_url,
        )

    try:
        keys = load_key_pair(private_path, public_path)
        with Transport(settings.base_url, timeout=settings.timeout) as transport:
            protocol = VoucherProtocol(
                keys,
                transport,
                source_id=settings.source_id,
                vouchers=[settings.voucher_info()],
                password=settings.source_password,
            )
            result = run_batch(
                protocol,
                settings.generations,
                on_error=settings.on_error,
                on_generated=render,
            )
    except (WomError, OSError) as exc:
        logger.error("Aborted: %s: %s", type(exc).__name__, exc)
        return EXIT_FAILURE

    logger.info(
        "%d voucher generation(s) verified, %d failed, %d not rendered.",
        len(result.succeeded), len(result.failed), len(result.callback_failed),
    )
    return EXIT_OK if result.ok else EXIT_FAILURE


if __name__ == "__main__":
    sys.exit(main())
