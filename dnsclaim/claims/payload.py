"""
TXT record payload codec.

Claim records are flat ``key=value`` pairs joined by ``&``:

    private:       id=<8hex>&itime=<unix>&etime=<unix>&sig=<0x+130hex>
    public:        id=<8hex>&wallet=<0x+40hex>&itime=<unix>&etime=<unix>&sig=<0x+130hex>
    continuations: continuations=_aw2,_aw3
    legacy:        wallet=<addr>&timestamp=<unix>&expiration=<unix>&sig=<sig>

``parse_payload`` returns one of the tagged variants below so callers match
on the type instead of probing the raw string.  Any repeated key rejects
the whole record (parameter pollution).
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from dnsclaim.claims.signature import ADDRESS_RE, SIGNATURE_RE
from dnsclaim.errors import DuplicateKeyError, PayloadError

CLAIM_ID_RE = re.compile(r"^[0-9a-f]{8}$")
CONTINUATIONS_KEY = "continuations"

# Legacy records without an expiration field are valid for 90 days.
LEGACY_DEFAULT_LIFETIME = 90 * 24 * 60 * 60


@dataclass(frozen=True)
class PrivatePayload:
    """Claim record without a wallet; the claim secret is the message prefix."""

    id: str
    itime: str
    etime: str
    sig: str

    def is_well_formed(self) -> bool:
        return bool(CLAIM_ID_RE.match(self.id)) and bool(SIGNATURE_RE.match(self.sig))


@dataclass(frozen=True)
class PublicPayload:
    """Claim record carrying the wallet address; the wallet is the message prefix."""

    id: str
    wallet: str
    itime: str
    etime: str
    sig: str

    def has_valid_wallet(self) -> bool:
        return bool(ADDRESS_RE.match(self.wallet))

    def is_well_formed(self) -> bool:
        return (
            bool(CLAIM_ID_RE.match(self.id))
            and self.has_valid_wallet()
            and bool(SIGNATURE_RE.match(self.sig))
        )


@dataclass(frozen=True)
class LegacyPayload:
    """Pre-claim single wallet binding published at ``aqua._wallet.<domain>``."""

    wallet: str
    timestamp: str
    expiration: str
    sig: str
    has_expiration: bool = True


@dataclass(frozen=True)
class ContinuationIndex:
    """Ordered list of overflow labels recorded at the base subdomain."""

    labels: tuple[str, ...]

    def to_txt(self) -> str:
        return format_continuations(self.labels)


ParsedPayload = PrivatePayload | PublicPayload | LegacyPayload | ContinuationIndex
ClaimPayload = PrivatePayload | PublicPayload


def split_pairs(text: str) -> dict[str, str]:
    """Split ``k=v&k=v`` into a dict.

    Splitting is tolerant: empty segments are ignored, a segment without
    ``=`` maps to an empty value and only the first ``=`` separates key
    from value.  Repeated keys are rejected.

    Raises:
        DuplicateKeyError: if a key occurs more than once.
    """
    pairs: dict[str, str] = {}
    for segment in text.strip().split("&"):
        if not segment:
            continue
        key, _, value = segment.partition("=")
        key = key.strip()
        if not key:
            continue
        if key in pairs:
            raise DuplicateKeyError(f"Duplicate key {key!r} in TXT record")
        pairs[key] = value.strip()
    return pairs


def _require(pairs: dict[str, str], keys: tuple[str, ...], kind: str) -> None:
    missing = [key for key in keys if not pairs.get(key)]
    if missing:
        raise PayloadError(f"{kind} record missing required field(s): {', '.join(missing)}")


def parse_payload(text: str) -> ParsedPayload:
    """Parse one TXT string into its tagged variant.

    Raises:
        DuplicateKeyError: on repeated keys.
        PayloadError: if required keys are missing or the shape is unknown.
    """
    pairs = split_pairs(text)

    if CONTINUATIONS_KEY in pairs:
        labels = tuple(label.strip() for label in pairs[CONTINUATIONS_KEY].split(",") if label.strip())
        return ContinuationIndex(labels=labels)

    if "id" in pairs:
        if "wallet" in pairs:
            _require(pairs, ("id", "wallet", "itime", "etime", "sig"), "Public claim")
            return PublicPayload(
                id=pairs["id"],
                wallet=pairs["wallet"],
                itime=pairs["itime"],
                etime=pairs["etime"],
                sig=pairs["sig"],
            )
        _require(pairs, ("id", "itime", "etime", "sig"), "Private claim")
        return PrivatePayload(
            id=pairs["id"],
            itime=pairs["itime"],
            etime=pairs["etime"],
            sig=pairs["sig"],
        )

    if "wallet" in pairs and "timestamp" in pairs:
        _require(pairs, ("wallet", "timestamp", "sig"), "Legacy wallet")
        expiration = pairs.get("expiration", "")
        has_expiration = bool(expiration)
        if not has_expiration:
            try:
                expiration = str(int(pairs["timestamp"]) + LEGACY_DEFAULT_LIFETIME)
            except ValueError:
                expiration = ""
        return LegacyPayload(
            wallet=pairs["wallet"],
            timestamp=pairs["timestamp"],
            expiration=expiration,
            sig=pairs["sig"],
            has_expiration=has_expiration,
        )

    raise PayloadError("Unrecognised TXT record format")


def try_parse(text: str) -> ParsedPayload | None:
    """Like ``parse_payload`` but return None for unparseable strings."""
    try:
        return parse_payload(text)
    except PayloadError:
        return None


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def format_private(unique_id: str, itime: int, etime: int, sig: str) -> str:
    return f"id={unique_id}&itime={itime}&etime={etime}&sig={sig}"


def format_public(unique_id: str, wallet: str, itime: int, etime: int, sig: str) -> str:
    return f"id={unique_id}&wallet={wallet}&itime={itime}&etime={etime}&sig={sig}"


def format_legacy(wallet: str, timestamp: int, expiration: int, sig: str) -> str:
    return f"wallet={wallet}&timestamp={timestamp}&expiration={expiration}&sig={sig}"


def format_continuations(labels) -> str:
    return f"{CONTINUATIONS_KEY}={','.join(labels)}"


# ---------------------------------------------------------------------------
# Signed messages
# ---------------------------------------------------------------------------


def claim_message(prefix: str, itime: int | str, domain: str, etime: int | str) -> str:
    """Build the exact string signed for a claim: ``prefix&itime&domain&etime``."""
    return f"{prefix}&{itime}&{domain}&{etime}"


def legacy_message(timestamp: str, domain: str, expiration: str | None) -> str:
    """Build the legacy signed string ``timestamp|domain|expiration``.

    Records published before expirations existed signed ``timestamp|domain``.
    """
    if expiration is None:
        return f"{timestamp}|{domain}"
    return f"{timestamp}|{domain}|{expiration}"
