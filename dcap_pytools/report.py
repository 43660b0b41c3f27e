# Copyright 2025 Hewlett Packard Enterprise Development LP.
# SPDX-License-Identifier: MIT
#
# Result reporting - Render command results and export collateral.

import json
import os
import sys
from dataclasses import asdict, dataclass
from typing import Any, Dict, Optional, TextIO

from . import dcap_logging
from .collateral import Collateral
from .errors import DcapError

logger = dcap_logging.get_logger(__name__)

COLLATERAL_EXPORT_FILE = "quote_collateral.json"


@dataclass
class CollateralExport:
    """
    The six collateral fields as exported, signatures as hex text.

    The dataclass repr is what the ``collateral`` command prints.
    """

    tcb_info_issuer_chain: str
    tcb_info: str
    tcb_info_signature: str
    qe_identity_issuer_chain: str
    qe_identity: str
    qe_identity_signature: str

    @classmethod
    def from_collateral(cls, collateral: Collateral) -> "CollateralExport":
        return cls(
            tcb_info_issuer_chain=collateral.tcb_info_issuer_chain,
            tcb_info=collateral.tcb_info,
            tcb_info_signature=collateral.tcb_info_signature.hex(),
            qe_identity_issuer_chain=collateral.qe_identity_issuer_chain,
            qe_identity=collateral.qe_identity,
            qe_identity_signature=collateral.qe_identity_signature.hex(),
        )

    def to_dict(self) -> Dict[str, str]:
        return asdict(self)


def print_json(data: Any, what: str = "result", stream: Optional[TextIO] = None) -> None:
    """
    Print ``data`` as a single line of compact JSON.

    Raises:
        DcapError: If ``data`` is not JSON serializable
    """
    try:
        line = json.dumps(data, separators=(",", ":"))
    except (TypeError, ValueError) as e:
        raise DcapError(f"Failed to serialize {what}") from e
    print(line, file=stream or sys.stdout)


def write_json_data(directory: str, filename: str, data: dict) -> str:
    """
    Write JSON data to a file.

    The write is not atomic; an interrupted process can leave a partial file.

    Args:
        directory: Directory to save the file
        filename: Name of the JSON file
        data: Dictionary data to write as JSON

    Returns:
        str: Path of the written file

    Raises:
        OSError: If unable to create directory or write file
    """
    if directory and not os.path.exists(directory):
        os.makedirs(directory)

    filepath = os.path.join(directory, filename)

    with open(filepath, "w") as f:
        json.dump(data, f, indent=2)
        f.write("\n")

    logger.info(f"Saved collateral to {filepath}")
    return filepath


def save_collateral_export(
    export: CollateralExport,
    directory: str = ".",
    filename: str = COLLATERAL_EXPORT_FILE,
) -> str:
    """
    Persist the six exported collateral fields as JSON.

    Raises:
        DcapError: If the file cannot be written
    """
    try:
        return write_json_data(directory, filename, export.to_dict())
    except OSError as e:
        raise DcapError(f"Failed to write {filename}") from e


def print_collateral(export: CollateralExport, stream: Optional[TextIO] = None) -> None:
    print(repr(export), file=stream or sys.stdout)
