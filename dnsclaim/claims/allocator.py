"""
Subdomain allocation for new claims.

Claims for ``example.com`` live at ``_aw.example.com`` until that name holds
MAX_CLAIMS_PER_SUBDOMAIN well-formed claim records.  Further claims overflow
to ``_aw2``, ``_aw3``, ... and the base name carries a
``continuations=_aw2,_aw3`` record listing them in allocation order.

The allocator only reads DNS.  Publishing the TXT record and the updated
continuation index is the caller's job; ``Allocation.continuation_update``
holds the complete index value to publish when a new label was opened.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from dnsclaim.claims.payload import (
    ContinuationIndex,
    PrivatePayload,
    PublicPayload,
    format_continuations,
    try_parse,
)
from dnsclaim.claims.resolver import TxtRecordSet, TxtResolver, raise_for_error
from dnsclaim.errors import IdGenerationExhausted
from dnsclaim.utils.domain import base_subdomain, claim_label, qualify

logger = logging.getLogger(__name__)

MAX_CLAIMS_PER_SUBDOMAIN = 49
MAX_ID_ATTEMPTS = 10


@dataclass(frozen=True)
class Allocation:
    """Where the next claim should be published."""

    subdomain: str
    is_new: bool
    continuation_update: str | None = None


def _claim_records(record_set: TxtRecordSet) -> list[PrivatePayload | PublicPayload]:
    claims = []
    for text in record_set.records:
        parsed = try_parse(text)
        if isinstance(parsed, (PrivatePayload, PublicPayload)) and parsed.is_well_formed():
            claims.append(parsed)
    return claims


def claim_ids(record_set: TxtRecordSet) -> set[str]:
    """Return the ids of the well-formed claim records in *record_set*."""
    return {payload.id for payload in _claim_records(record_set)}


def claim_count(record_set: TxtRecordSet) -> int:
    """Count well-formed claim records in *record_set*; records sharing an id count separately."""
    return len(_claim_records(record_set))


def continuation_labels(record_set: TxtRecordSet) -> list[str]:
    """Return the labels listed by the first ``continuations=`` record, if any."""
    for text in record_set.records:
        parsed = try_parse(text)
        if isinstance(parsed, ContinuationIndex):
            return list(parsed.labels)
    return []


class SubdomainAllocator:
    """Pick the claim subdomain for *domain* and avoid claim id collisions.

    Args:
        resolver: TxtResolver used for read-only lookups.
        max_claims: Records per subdomain before overflowing.
    """

    def __init__(self, resolver: TxtResolver, max_claims: int = MAX_CLAIMS_PER_SUBDOMAIN) -> None:
        self.resolver = resolver
        self.max_claims = max_claims

    async def count_claims(self, subdomain: str) -> int:
        """Count well-formed claim records published at *subdomain*."""
        record_set = raise_for_error(await self.resolver.resolve_txt(subdomain))
        return claim_count(record_set)

    async def find_available_subdomain(self, domain: str) -> Allocation:
        """Return the lowest-numbered subdomain of *domain* with room for a claim."""
        base = base_subdomain(domain)
        base_records = raise_for_error(await self.resolver.resolve_txt(base))
        base_count = claim_count(base_records)

        if base_count < self.max_claims:
            logger.info("Allocating %s (%d/%d claims)", base, base_count, self.max_claims)
            return Allocation(subdomain=base, is_new=base_count == 0)

        labels = continuation_labels(base_records)
        for label in labels:
            name = qualify(label, domain)
            count = await self.count_claims(name)
            if count < self.max_claims:
                logger.info("Allocating continuation %s (%d/%d claims)", name, count, self.max_claims)
                return Allocation(subdomain=name, is_new=count == 0)
            logger.debug("Continuation %s is full", name)

        index = len(labels) + 2
        known = {label.lower() for label in labels}
        while claim_label(index) in known:
            index += 1
        new_label = claim_label(index)
        update = format_continuations([*labels, new_label])
        logger.info(
            "All %d claim subdomain(s) of %s are full; opening %s",
            len(labels) + 1,
            domain,
            new_label,
        )
        return Allocation(
            subdomain=qualify(new_label, domain),
            is_new=True,
            continuation_update=update,
        )

    async def generate_unique_id(self, subdomain: str) -> str:
        """Return a random 8-hex-char claim id unused at *subdomain*.

        Only records resolvable right now are checked; two generators racing
        on the same subdomain can still pick the same id.

        Raises:
            IdGenerationExhausted: if MAX_ID_ATTEMPTS candidates all collided.
        """
        existing = claim_ids(raise_for_error(await self.resolver.resolve_txt(subdomain)))

        for attempt in range(1, MAX_ID_ATTEMPTS + 1):
            candidate = secrets.token_hex(4)
            if candidate not in existing:
                return candidate
            logger.warning("Claim id %s already used at %s (attempt %d)", candidate, subdomain, attempt)

        raise IdGenerationExhausted(
            f"Could not generate a unique claim id for {subdomain} after {MAX_ID_ATTEMPTS} attempts"
        )
