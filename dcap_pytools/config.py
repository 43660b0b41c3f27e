# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Configuration - Environment settings read once at the command entry point.

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .collateral import CollateralSource, resolve_source

PCCS_URL_ENV = "PCCS_URL"
LOG_LEVEL_ENV = "DCAP_LOG_LEVEL"


@dataclass(frozen=True)
class Settings:
    """Settings for one command invocation."""

    pccs_url: str = ""
    log_level: str = "INFO"

    def collateral_source(self) -> CollateralSource:
        return resolve_source(self.pccs_url)


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Read settings from the environment.

    Args:
        environ: Mapping to read from (default: os.environ)

    Returns:
        Settings: Settings for this invocation
    """
    if environ is None:
        environ = os.environ
    return Settings(
        pccs_url=environ.get(PCCS_URL_ENV, ""),
        log_level=environ.get(LOG_LEVEL_ENV) or "INFO",
    )
