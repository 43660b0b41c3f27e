# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Error types - One exception per failing step of a quote command.

from typing import List, Optional


class DcapError(Exception):
    """
    Base class for all failures raised by dcap_pytools.

    Each instance carries a short context phrase naming the step that
    failed. The underlying failure is chained with ``raise ... from`` and
    only rendered at the command line boundary.
    """

    default_message = "Operation failed"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)

    @property
    def message(self) -> str:
        return str(self)


class ReadError(DcapError):
    """The quote file is missing or unreadable."""

    default_message = "Failed to read quote file"


class DecodeError(DcapError):
    """The quote file is not valid hexadecimal text."""

    default_message = "Failed to decode quote file"


class ParseError(DcapError):
    """The quote bytes are not a structurally valid quote."""

    default_message = "Failed to parse quote"


class RetrievalError(DcapError):
    """Collateral could not be fetched (network, timeout or bad response)."""

    default_message = "Failed to get collateral"


class CollateralError(DcapError):
    """A collateral service answered with something unusable."""

    default_message = "Invalid collateral response"


class VerifyError(DcapError):
    """Verification produced no result."""

    default_message = "Failed to verify quote"


class CommandError(DcapError):
    """Outermost context attached by a command."""

    pass


def error_chain(exc: BaseException) -> List[str]:
    """
    Collect the messages of an exception and all of its causes.

    Args:
        exc: Outermost exception

    Returns:
        List[str]: Messages ordered from outermost to innermost
    """
    messages = []
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        text = str(current) or type(current).__name__
        messages.append(text)
        current = current.__cause__ or (
            None if current.__suppress_context__ else current.__context__
        )
    return messages


def format_error_chain(exc: BaseException) -> str:
    """
    Render an exception chain the way the command line reports it.

    Example:
        Error: Failed to verify quote
        Caused by:
            0: Failed to get collateral
            1: Connection refused
    """
    messages = error_chain(exc)
    lines = [f"Error: {messages[0]}"]
    if len(messages) > 1:
        lines.append("Caused by:")
        for index, text in enumerate(messages[1:]):
            lines.append(f"    {index}: {text}")
    return "\n".join(lines)
