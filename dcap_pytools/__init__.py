# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# dcap_pytools - Python tools for Intel SGX/TDX DCAP quote verification.

"""
dcap_pytools - Python tools for Intel SGX/TDX DCAP quote verification

This package decodes DCAP quotes, retrieves their collateral from Intel PCS
or a caching service (PCCS), and verifies quotes against that collateral.
"""

# Collateral retrieval
from .collateral import (
    DEFAULT_TIMEOUT,
    PCS_URL,
    Collateral,
    CollateralClient,
    CollateralSource,
    CustomSource,
    DefaultSource,
    PcsCollateralClient,
    resolve_source,
    retrieve,
    validate_fmspc,
)

# Configuration
from .config import Settings, load_settings

# Logging utilities
from .dcap_logging import get_logger, log_status, setup_cli_logging

# Error types
from .errors import (
    CollateralError,
    CommandError,
    DcapError,
    DecodeError,
    ParseError,
    ReadError,
    RetrievalError,
    VerifyError,
    format_error_chain,
)

# Quote input
from .quote_input import normalize, read_quote

# Verification library boundary
from .qvl import (
    DcapQvlBackend,
    QuoteInfo,
    QuoteParser,
    QuoteVerifier,
    parse_quote,
    verify_quote,
)

# Reporting
from .report import COLLATERAL_EXPORT_FILE, CollateralExport, print_json

__version__ = "0.1.0"

__all__ = [
    # Collateral
    "DEFAULT_TIMEOUT",
    "PCS_URL",
    "Collateral",
    "CollateralClient",
    "CollateralSource",
    "CustomSource",
    "DefaultSource",
    "PcsCollateralClient",
    "resolve_source",
    "retrieve",
    "validate_fmspc",
    # Configuration
    "Settings",
    "load_settings",
    # Logging
    "get_logger",
    "log_status",
    "setup_cli_logging",
    # Errors
    "CollateralError",
    "CommandError",
    "DcapError",
    "DecodeError",
    "ParseError",
    "ReadError",
    "RetrievalError",
    "VerifyError",
    "format_error_chain",
    # Quote input
    "normalize",
    "read_quote",
    # Verification
    "DcapQvlBackend",
    "QuoteInfo",
    "QuoteParser",
    "QuoteVerifier",
    "parse_quote",
    "verify_quote",
    # Reporting
    "COLLATERAL_EXPORT_FILE",
    "CollateralExport",
    "print_json",
]
