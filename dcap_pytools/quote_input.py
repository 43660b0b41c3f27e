# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Quote input - Read quote files and normalize hex dumps to raw bytes.

import binascii

from . import dcap_logging
from .errors import DecodeError, ReadError

logger = dcap_logging.get_logger(__name__)

HEX_PREFIX = b"0x"


def normalize(data: bytes, is_hex: bool) -> bytes:
    """
    Convert the contents of a quote file into raw quote bytes.

    Quotes circulate both as binary dumps and as hex text, optionally
    prefixed with ``0x`` and terminated by a newline.

    Args:
        data: File contents
        is_hex: Whether ``data`` is hex text

    Returns:
        bytes: Raw quote bytes

    Raises:
        DecodeError: If the hex text has odd length or a non-hex character
    """
    if not is_hex:
        return data

    if data.startswith(HEX_PREFIX):
        data = data[len(HEX_PREFIX) :]
    if data.endswith(b"\n"):
        data = data[:-1]

    # unhexlify rejects whitespace, unlike bytes.fromhex
    try:
        return binascii.unhexlify(data)
    except (binascii.Error, ValueError) as e:
        raise DecodeError() from e


def read_quote(path: str, is_hex: bool = False) -> bytes:
    """
    Read a quote file fully into memory and normalize it.

    Args:
        path: Path to the quote file
        is_hex: Whether the file holds hex text

    Returns:
        bytes: Raw quote bytes

    Raises:
        ReadError: If the file cannot be read
        DecodeError: If the hex text is malformed
    """
    try:
        with open(path, "rb") as f:
            data = f.read()
    except OSError as e:
        raise ReadError() from e

    logger.debug(f"Read {len(data)} bytes from {path}")
    quote = normalize(data, is_hex)
    if is_hex:
        logger.debug(f"Decoded hex quote to {len(quote)} bytes")
    return quote
