# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Quote verification library boundary - Parsing and verification via dcap_qvl.

"""
Boundary between dcap_pytools and the quote verification library.

The quote binary format and the certificate chain / signature checks are
owned by ``dcap_qvl``. This module describes what dcap_pytools needs from
it as two small protocols and provides the ``dcap_qvl`` implementation.
"""

import json
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

from . import dcap_logging
from .errors import ParseError, VerifyError

if TYPE_CHECKING:
    from .collateral import Collateral

logger = dcap_logging.get_logger(__name__)

# Parsed quote sections, in wire order; auth_data is optional in the bindings
QUOTE_SECTIONS = ("header", "report", "auth_data")
MAX_DEPTH = 8


def to_plain(value: Any, depth: int = 0) -> Any:
    """
    Convert a parsed quote object into JSON-serializable data.

    Byte strings, and lists of byte values, become lowercase hex. Other
    objects are walked through their public, non-callable attributes.
    """
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).hex()
    if isinstance(value, dict):
        return {str(k): to_plain(v, depth + 1) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        if value and all(
            isinstance(v, int) and not isinstance(v, bool) and 0 <= v <= 0xFF
            for v in value
        ):
            return bytes(value).hex()
        return [to_plain(v, depth + 1) for v in value]
    if depth >= MAX_DEPTH:
        return str(value)

    fields = {}
    for name in dir(value):
        if name.startswith("_"):
            continue
        attr = getattr(value, name)
        if callable(attr):
            continue
        fields[name] = to_plain(attr, depth + 1)
    return fields or str(value)


@dataclass(frozen=True)
class QuoteInfo:
    """What a collateral service needs to know about a quote."""

    fmspc: str  # Platform FMSPC as hex
    ca: str  # PCK issuing CA: "processor" or "platform"
    is_tdx: bool


class QuoteParser(Protocol):
    def parse(self, quote: bytes) -> Dict[str, Any]:
        """Decode a quote into a JSON-serializable structure."""
        ...

    def describe(self, quote: bytes) -> QuoteInfo:
        """Extract the lookup keys used to fetch collateral."""
        ...


class QuoteVerifier(Protocol):
    def verify(
        self, quote: bytes, collateral: "Collateral", now: int
    ) -> Optional[Dict[str, Any]]:
        """Verify a quote against collateral at Unix time ``now``."""
        ...


class DcapQvlBackend:
    """
    QuoteParser and QuoteVerifier backed by the dcap_qvl package.

    Raises:
        ImportError: If dcap_qvl is not installed
    """

    def __init__(self):
        import dcap_qvl

        self._qvl = dcap_qvl

    def _parse(self, quote: bytes):
        try:
            return self._qvl.parse_quote(quote)
        except ValueError as e:
            raise ParseError() from e

    def parse(self, quote: bytes) -> Dict[str, Any]:
        """Decode the quote header and report body, byte fields as hex."""
        parsed = self._parse(quote)
        decoded = {}
        for section in QUOTE_SECTIONS:
            if not hasattr(parsed, section):
                continue
            value = getattr(parsed, section)
            decoded[section] = to_plain(value() if callable(value) else value)
        if "header" not in decoded or "report" not in decoded:
            raise ParseError("Quote library does not expose header and report")
        return decoded

    def describe(self, quote: bytes) -> QuoteInfo:
        parsed = self._parse(quote)
        return QuoteInfo(fmspc=parsed.fmspc(), ca=parsed.ca(), is_tdx=parsed.is_tdx())

    def verify(
        self, quote: bytes, collateral: "Collateral", now: int
    ) -> Optional[Dict[str, Any]]:
        native = self._qvl.QuoteCollateralV3.from_json(
            json.dumps(collateral.to_json_dict())
        )
        verified = self._qvl.verify(quote, native, now)
        if verified is None:
            return None
        return json.loads(verified.to_json())


def parse_quote(quote: bytes, parser: QuoteParser) -> Dict[str, Any]:
    """
    Decode a quote with the given parser.

    Raises:
        ParseError: If the parser rejects the quote
    """
    try:
        return parser.parse(quote)
    except ParseError:
        raise
    except (ValueError, TypeError) as e:
        raise ParseError() from e


def verify_quote(
    quote: bytes, collateral: "Collateral", now: int, verifier: QuoteVerifier
) -> Dict[str, Any]:
    """
    Verify a quote against collateral at a fixed reference time.

    Structural and cryptographic validation is left entirely to the
    verifier. Identical inputs give an identical report.

    Args:
        quote: Raw quote bytes
        collateral: Collateral retrieved for this quote
        now: Verification reference time in Unix seconds
        verifier: Verification backend

    Returns:
        Dict[str, Any]: The verification report

    Raises:
        VerifyError: If the verifier fails or returns nothing
    """
    logger.debug(f"Verifying {len(quote)}-byte quote at time {now}")
    try:
        report = verifier.verify(quote, collateral, now)
    except Exception as e:
        dcap_logging.log_verification_step("Quote verification", "FAILED", str(e))
        raise VerifyError() from e

    if not report:
        dcap_logging.log_verification_step(
            "Quote verification", "FAILED", "no report returned"
        )
        raise VerifyError()

    dcap_logging.log_verification_step(
        "Quote verification", "PASS", str(report.get("status", ""))
    )
    return report
