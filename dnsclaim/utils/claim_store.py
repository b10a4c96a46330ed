"""
Claim file persistence.

Claims are stored as pretty-printed JSON objects named ``<unique_id>.json``
inside a claims directory (``claims/`` by default).
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dnsclaim.claims.generator import Claim
from dnsclaim.errors import InvalidClaimFile

logger = logging.getLogger(__name__)


def claim_path(claims_dir: str | Path, unique_id: str) -> Path:
    """Return the file path for claim *unique_id* inside *claims_dir*."""
    return Path(claims_dir) / f"{unique_id}.json"


def save_claim_data(claims_dir: str | Path, data: dict[str, Any]) -> Path:
    """Validate raw claim-file *data* and write it to *claims_dir*.

    The id is validated before it becomes part of a file name.

    Raises:
        InvalidClaimFile: if *data* is not a valid claim file.
    """
    claim = Claim.from_claim_file(data)
    directory = Path(claims_dir)
    directory.mkdir(parents=True, exist_ok=True)

    path = claim_path(directory, claim.unique_id)
    path.write_text(json.dumps(data, indent=2), encoding="utf-8")
    logger.info("Claim %s saved to %s", claim.unique_id, path)
    return path


def save_claim(claims_dir: str | Path, claim: Claim) -> Path:
    """Write *claim* to ``<claims_dir>/<unique_id>.json``."""
    return save_claim_data(claims_dir, claim.to_claim_file())


def load_claim(path: str | Path) -> Claim:
    """Read and validate a claim file.

    Raises:
        InvalidClaimFile: if the file is missing, not JSON or incomplete.
    """
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise InvalidClaimFile(f"Claim file not found: {path}") from exc
    except (OSError, UnicodeDecodeError) as exc:
        raise InvalidClaimFile(f"Cannot read claim file {path}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise InvalidClaimFile(f"Claim file {path} is not valid JSON: {exc}") from exc
    return Claim.from_claim_file(data)
