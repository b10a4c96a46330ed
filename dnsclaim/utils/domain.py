"""Domain name normalisation and claim DNS naming helpers."""
from __future__ import annotations

import logging
import re

from dnsclaim.errors import InvalidDomain

logger = logging.getLogger(__name__)

# Hostname validation pattern: lowercase labels separated by dots, min 2-char TLD
_HOSTNAME_RE = re.compile(
    r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?(\.[a-z0-9]([a-z0-9-]*[a-z0-9])?)*\.[a-z]{2,}$"
)

BASE_LABEL = "_aw"
LEGACY_PREFIX = "aqua"


def normalize_domain(domain: str) -> str:
    """Lowercase and validate *domain*.

    A single trailing dot (absolute name) is dropped.

    Raises:
        InvalidDomain: if the result is not a syntactically valid hostname.
    """
    value = (domain or "").strip().lower()
    if value.endswith("."):
        value = value[:-1]
    if len(value) > 253 or not _HOSTNAME_RE.match(value):
        raise InvalidDomain(f"Invalid domain format: {domain!r}")
    if any(len(label) > 63 for label in value.split(".")):
        raise InvalidDomain(f"Domain label longer than 63 characters: {domain!r}")
    if "xn--" in value:
        logger.warning("Internationalized domain name %s: ensure this is the intended domain", value)
    return value


def claim_label(index: int) -> str:
    """Return the claim subdomain label for slot *index* (1 -> _aw, 2 -> _aw2)."""
    if index < 1:
        raise ValueError("claim subdomain index starts at 1")
    return BASE_LABEL if index == 1 else f"{BASE_LABEL}{index}"


def base_subdomain(domain: str) -> str:
    """Return ``_aw.<domain>``."""
    return f"{BASE_LABEL}.{domain}"


def qualify(label: str, domain: str) -> str:
    """Turn a continuation label into a full name under *domain*.

    Labels that are already fully qualified under *domain* are returned
    unchanged.
    """
    label = label.strip().rstrip(".").lower()
    if label == domain or label.endswith(f".{domain}"):
        return label
    return f"{label}.{domain}"


def legacy_record_name(domain: str, lookup_key: str = "wallet") -> str:
    """Return ``aqua._<lookup_key>.<domain>``."""
    return f"{LEGACY_PREFIX}._{lookup_key}.{domain}"


def split_legacy_record_name(name: str) -> tuple[str, str] | None:
    """Split ``aqua._<key>.<domain>`` into ``(key, domain)``.

    Returns None if *name* is not of that form.
    """
    parts = name.strip().lower().split(".")
    if len(parts) >= 3 and parts[0] == LEGACY_PREFIX and parts[1].startswith("_"):
        return parts[1][1:], ".".join(parts[2:])
    return None
