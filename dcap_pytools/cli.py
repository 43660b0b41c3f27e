# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# dcap-tool - Decode, fetch collateral for, and verify SGX/TDX quotes.

import argparse
import asyncio
import sys
import time
from typing import List, Optional

from . import dcap_logging, report
from .collateral import DEFAULT_TIMEOUT, CollateralClient, PcsCollateralClient, retrieve
from .config import Settings, load_settings
from .errors import CommandError, DcapError, format_error_chain
from .quote_input import read_quote
from .qvl import DcapQvlBackend, parse_quote, verify_quote


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dcap-tool", description="Decode and verify Intel SGX/TDX DCAP quotes"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true", default=False, help="Enable debug logging"
    )
    parser.add_argument(
        "-q", "--quiet", action="store_true", default=False, help="Only log warnings and errors"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("decode", "Decode a quote file"),
        ("verify", "Verify a quote file"),
        ("collateral", "Get quote collateral"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument(
            "--hex",
            action="store_true",
            default=False,
            help="Indicate the quote file is in hex format",
        )
        sub.add_argument("quote_file", help="The quote file")

    return parser


def command_decode(args: argparse.Namespace, backend) -> None:
    try:
        quote = read_quote(args.quote_file, args.hex)
        decoded = parse_quote(quote, backend)
        report.print_json(decoded, "quote")
    except DcapError as e:
        raise CommandError("Failed to decode quote") from e


async def command_verify(
    args: argparse.Namespace,
    settings: Settings,
    backend,
    client: CollateralClient,
) -> None:
    try:
        quote = read_quote(args.quote_file, args.hex)
        collateral = await retrieve(
            quote, settings.collateral_source(), DEFAULT_TIMEOUT, client
        )
        now = int(time.time())
        result = verify_quote(quote, collateral, now, backend)
        report.print_json(result, "verification report")
    except DcapError as e:
        raise CommandError("Failed to verify quote") from e
    dcap_logging.log_status("Quote verified")


async def command_collateral(
    args: argparse.Namespace, settings: Settings, client: CollateralClient
) -> None:
    try:
        quote = read_quote(args.quote_file, args.hex)
        collateral = await retrieve(
            quote, settings.collateral_source(), DEFAULT_TIMEOUT, client
        )
        export = report.CollateralExport.from_collateral(collateral)
        report.save_collateral_export(export)
        report.print_collateral(export)
    except DcapError as e:
        raise CommandError("Failed to get quote collateral") from e


def main(
    argv: Optional[List[str]] = None,
    backend=None,
    client: Optional[CollateralClient] = None,
) -> int:
    """
    Run one dcap-tool command.

    Args:
        argv: Command line arguments (default: sys.argv[1:])
        backend: Quote parser and verifier (default: DcapQvlBackend)
        client: Collateral client (default: PcsCollateralClient)

    Returns:
        int: Exit code (0 for success, 1 for error)

    Examples:
        dcap-tool decode quote.bin
        dcap-tool verify --hex quote.hex
        PCCS_URL=https://localhost:8081 dcap-tool collateral quote.bin
    """
    args = build_parser().parse_args(argv)
    settings = load_settings()
    dcap_logging.setup_cli_logging(
        verbose=args.verbose, quiet=args.quiet, level=settings.log_level
    )

    try:
        if backend is None:
            backend = DcapQvlBackend()
        if client is None:
            client = PcsCollateralClient(parser=backend)

        if args.command == "decode":
            command_decode(args, backend)
        elif args.command == "verify":
            asyncio.run(command_verify(args, settings, backend, client))
        else:
            asyncio.run(command_collateral(args, settings, client))
    except DcapError as e:
        print(format_error_chain(e), file=sys.stderr)
        if args.verbose:
            import traceback

            traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
