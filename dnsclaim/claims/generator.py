"""
Claim generation.

A claim binds the wallet of a signing key to a domain for a limited time.
The signed message is ``prefix&itime&domain&etime`` where the prefix is a
fresh 16-hex-char claim secret (private mode) or the wallet address itself
(public mode, the wallet is then also published in the TXT record).
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from dnsclaim.claims.allocator import SubdomainAllocator
from dnsclaim.claims.payload import CLAIM_ID_RE, claim_message, format_private, format_public
from dnsclaim.claims.signature import load_account, sign
from dnsclaim.errors import GenerationError, InvalidClaimFile, InvalidDomain
from dnsclaim.utils.domain import normalize_domain

logger = logging.getLogger(__name__)

CLAIM_TYPE = "dns_claim"
SIGNATURE_TYPE = "ethereum:eip-191"
SECONDS_PER_DAY = 24 * 60 * 60
DEFAULT_EXPIRATION_DAYS = 90

_REQUIRED_FILE_FIELDS = (
    "forms_unique_id",
    "forms_txt_name",
    "forms_wallet_address",
    "forms_domain",
    "itime",
    "etime",
    "sig",
)


@dataclass(frozen=True)
class Claim:
    """Signed wallet-to-domain claim.  Immutable once generated."""

    unique_id: str
    claim_secret: str
    txt_subdomain_name: str
    txt_record: str
    wallet_address: str
    domain_name: str
    issued_at: int
    expires_at: int
    signature: str
    is_public: bool = False
    # Index value to publish at the base subdomain when generation opened a
    # new overflow label.  Never written to the claim file.
    continuation_update: str | None = field(default=None, compare=False)

    @property
    def message_prefix(self) -> str:
        return self.wallet_address if self.is_public else self.claim_secret

    @property
    def message(self) -> str:
        """The exact string that was signed."""
        return claim_message(self.message_prefix, self.issued_at, self.domain_name, self.expires_at)

    def to_claim_file(self) -> dict[str, Any]:
        """Return the JSON-serialisable claim file mapping."""
        return {
            "forms_unique_id": self.unique_id,
            "forms_claim_secret": self.claim_secret,
            "forms_txt_name": self.txt_subdomain_name,
            "forms_txt_record": self.txt_record,
            "forms_wallet_address": self.wallet_address,
            "forms_domain": self.domain_name,
            "forms_type": CLAIM_TYPE,
            "signature_type": SIGNATURE_TYPE,
            "itime": str(self.issued_at),
            "etime": str(self.expires_at),
            "sig": self.signature,
            "public_association": self.is_public,
        }

    @classmethod
    def from_claim_file(cls, data: Any) -> Claim:
        """Build a Claim from a parsed claim file.

        Raises:
            InvalidClaimFile: if required fields are missing or malformed.
        """
        if not isinstance(data, dict):
            raise InvalidClaimFile("Claim file must contain a JSON object")

        missing = [name for name in _REQUIRED_FILE_FIELDS if data.get(name) in (None, "")]
        if missing:
            raise InvalidClaimFile(f"Claim file missing field(s): {', '.join(missing)}")

        forms_type = data.get("forms_type", CLAIM_TYPE)
        if forms_type != CLAIM_TYPE:
            raise InvalidClaimFile(f"Unsupported forms_type {forms_type!r}")
        signature_type = data.get("signature_type", SIGNATURE_TYPE)
        if signature_type != SIGNATURE_TYPE:
            raise InvalidClaimFile(f"Unsupported signature_type {signature_type!r}")

        unique_id = str(data["forms_unique_id"]).lower()
        if not CLAIM_ID_RE.match(unique_id):
            raise InvalidClaimFile(f"forms_unique_id must be 8 hex characters, got {unique_id!r}")

        try:
            domain = normalize_domain(str(data["forms_domain"]))
        except InvalidDomain as exc:
            raise InvalidClaimFile(str(exc)) from exc

        try:
            issued_at = int(data["itime"])
            expires_at = int(data["etime"])
        except (TypeError, ValueError) as exc:
            raise InvalidClaimFile("itime and etime must be Unix timestamps") from exc

        public = data.get("public_association", False)
        if isinstance(public, str):
            public = public.strip().lower() == "true"

        return cls(
            unique_id=unique_id,
            claim_secret=str(data.get("forms_claim_secret") or ""),
            txt_subdomain_name=str(data["forms_txt_name"]).strip().rstrip(".").lower(),
            txt_record=str(data.get("forms_txt_record") or ""),
            wallet_address=str(data["forms_wallet_address"]),
            domain_name=domain,
            issued_at=issued_at,
            expires_at=expires_at,
            signature=str(data["sig"]),
            is_public=bool(public),
        )


class ClaimGenerator:
    """Build and sign claims.

    Args:
        allocator: SubdomainAllocator used to pick the subdomain and claim id.
        clock: Returns the current Unix time in seconds.
        default_expiration_days: Lifetime used when the caller passes none.
    """

    def __init__(
        self,
        allocator: SubdomainAllocator,
        clock: Callable[[], float] = time.time,
        default_expiration_days: int = DEFAULT_EXPIRATION_DAYS,
    ) -> None:
        self.allocator = allocator
        self._clock = clock
        self.default_expiration_days = default_expiration_days

    async def generate_claim(
        self,
        domain: str,
        private_key: str,
        target_subdomain: str | None = None,
        expiration_days: int | None = None,
        is_public: bool = False,
    ) -> Claim:
        """Generate a signed claim for *domain*.

        When *target_subdomain* is None the allocator chooses one and the
        returned claim's ``continuation_update`` tells the caller whether the
        base continuation index must be republished.

        Raises:
            InvalidDomain: malformed domain.
            InvalidKey: malformed private key.
            IdGenerationExhausted: no free claim id at the target subdomain.
            DnsTimeout, DnsLookupError: the subdomain lookups failed.
        """
        domain = normalize_domain(domain)
        account = load_account(private_key)

        if expiration_days is None:
            expiration_days = self.default_expiration_days
        if int(expiration_days) < 1:
            raise GenerationError("expiration_days must be at least 1")

        continuation_update = None
        if target_subdomain is None:
            allocation = await self.allocator.find_available_subdomain(domain)
            target_subdomain = allocation.subdomain
            continuation_update = allocation.continuation_update
        else:
            target_subdomain = target_subdomain.strip().rstrip(".").lower()

        unique_id = await self.allocator.generate_unique_id(target_subdomain)

        issued_at = int(self._clock())
        expires_at = issued_at + int(expiration_days) * SECONDS_PER_DAY

        if is_public:
            claim_secret = ""
            prefix = account.address
        else:
            claim_secret = secrets.token_hex(8)
            prefix = claim_secret

        message = claim_message(prefix, issued_at, domain, expires_at)
        signature = await asyncio.to_thread(sign, message, private_key)

        if is_public:
            txt_record = format_public(unique_id, account.address, issued_at, expires_at, signature)
        else:
            txt_record = format_private(unique_id, issued_at, expires_at, signature)

        logger.info(
            "Generated %s claim %s for %s at %s (wallet=%s, expires=%d)",
            "public" if is_public else "private",
            unique_id,
            domain,
            target_subdomain,
            account.address,
            expires_at,
        )

        return Claim(
            unique_id=unique_id,
            claim_secret=claim_secret,
            txt_subdomain_name=target_subdomain,
            txt_record=txt_record,
            wallet_address=account.address,
            domain_name=domain,
            issued_at=issued_at,
            expires_at=expires_at,
            signature=signature,
            is_public=is_public,
            continuation_update=continuation_update,
        )
