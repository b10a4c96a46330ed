"""
Claim verification pipeline.

Stages run in order and the first failure is terminal:

  1. rate check          - per-domain fixed window (RateLimited)
  2. resolve             - TXT records at the claim subdomain, DNSSEC first
  3. continuations       - union records of every listed overflow subdomain
  4. locate              - parse candidates, pick the record with the claim id
  5. reconstruct         - prefix&itime&domain&etime, prefix by record mode
  6. recover & compare   - EIP-191 signer must equal the expected wallet
  7. timing              - positive integers, no future issue time, not expired
  8. success             - advisory when DNSSEC was not validated

Public entry points never raise ClaimError; failures are logged and
returned in the outcome.
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from eth_utils import is_checksum_address

from dnsclaim.claims import signature as codec
from dnsclaim.claims.generator import Claim
from dnsclaim.claims.payload import (
    ClaimPayload,
    ContinuationIndex,
    LegacyPayload,
    PrivatePayload,
    PublicPayload,
    claim_message,
    legacy_message,
    parse_payload,
)
from dnsclaim.claims.resolver import TxtRecordSet, TxtResolver, raise_for_error
from dnsclaim.errors import (
    Cancelled,
    ClaimError,
    ClaimNotFound,
    ClockSkew,
    DomainMismatch,
    Expired,
    InvalidTimestamp,
    NoRecordsFound,
    PayloadError,
    RateLimited,
    SignatureMismatch,
)
from dnsclaim.utils.domain import (
    base_subdomain,
    legacy_record_name,
    normalize_domain,
    qualify,
    split_legacy_record_name,
)
from dnsclaim.utils.rate_limit import RateLimiter

logger = logging.getLogger(__name__)

MAX_CLOCK_SKEW_SECONDS = 300
DNSSEC_ADVISORY = "DNSSEC not validated for this query; DNS responses may be spoofed"

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class VerificationOutcome:
    """Result of verifying one claim record."""

    domain: str
    claim_id: str | None = None
    record_name: str | None = None
    valid: bool = False
    mode: str | None = None  # public / private / legacy
    wallet: str | None = None
    issued_at: int | None = None
    expires_at: int | None = None
    dnssec_validated: bool = False
    error: ClaimError | None = None
    advisories: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return self.valid

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "domain": self.domain,
            "claim_id": self.claim_id,
            "record_name": self.record_name,
            "mode": self.mode,
            "wallet": self.wallet,
            "issued_at": self.issued_at,
            "expires_at": self.expires_at,
            "dnssec_validated": self.dnssec_validated,
            "error": self.error_code,
            "message": self.error.message if self.error else None,
            "advisories": list(self.advisories),
        }


@dataclass
class DnsScanResult:
    """Result of scanning every claim record published for a domain."""

    domain: str
    record_name: str
    valid_claims: list[VerificationOutcome] = field(default_factory=list)
    failures: list[VerificationOutcome] = field(default_factory=list)
    dnssec_validated: bool = False
    error: ClaimError | None = None
    advisories: list[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return bool(self.valid_claims)

    def __bool__(self) -> bool:
        return self.valid

    @property
    def wallets(self) -> list[str]:
        """Distinct wallets proven by at least one valid claim, in discovery order."""
        seen: dict[str, str] = {}
        for outcome in self.valid_claims:
            if outcome.wallet:
                seen.setdefault(outcome.wallet.lower(), outcome.wallet)
        return list(seen.values())

    def to_dict(self) -> dict[str, Any]:
        return {
            "valid": self.valid,
            "domain": self.domain,
            "record_name": self.record_name,
            "wallets": self.wallets,
            "valid_claims": [outcome.to_dict() for outcome in self.valid_claims],
            "failures": [outcome.to_dict() for outcome in self.failures],
            "dnssec_validated": self.dnssec_validated,
            "error": self.error.code if self.error else None,
            "message": self.error.message if self.error else None,
            "advisories": list(self.advisories),
        }


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


_DECIMAL_RE = re.compile(r"[0-9]+")


def _positive_int(value: str) -> int | None:
    # ASCII digits only: str.isdigit() also admits superscripts that int() rejects.
    value = (value or "").strip()
    if not _DECIMAL_RE.fullmatch(value):
        return None
    number = int(value)
    return number if number > 0 else None


def _within_domain(name: str, domain: str) -> bool:
    name = name.rstrip(".").lower()
    return name == domain or name.endswith(f".{domain}")


# ---------------------------------------------------------------------------
# Verifier
# ---------------------------------------------------------------------------


class ClaimVerifier:
    """Verify published claims.

    Args:
        resolver: TxtResolver used for every lookup.
        rate_limiter: Shared RateLimiter; None disables throttling.
        clock: Returns the current Unix time in seconds.
        max_clock_skew: Seconds an issue time may lie in the future.
    """

    def __init__(
        self,
        resolver: TxtResolver,
        rate_limiter: RateLimiter | None = None,
        clock: Callable[[], float] = time.time,
        max_clock_skew: int = MAX_CLOCK_SKEW_SECONDS,
    ) -> None:
        self.resolver = resolver
        self.rate_limiter = rate_limiter
        self._clock = clock
        self.max_clock_skew = max_clock_skew

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    async def verify_claim(
        self,
        claim: Claim,
        cancel_event: asyncio.Event | None = None,
    ) -> VerificationOutcome:
        """Verify *claim* (typically loaded from a claim file) against DNS."""
        outcome = VerificationOutcome(
            domain=claim.domain_name,
            claim_id=claim.unique_id,
            record_name=claim.txt_subdomain_name,
        )
        logger.info(
            "Verifying claim %s for %s at %s",
            claim.unique_id,
            claim.domain_name,
            claim.txt_subdomain_name,
        )
        try:
            await self._verify_claim(claim, outcome, cancel_event)
        except ClaimError as exc:
            outcome.valid = False
            outcome.error = exc
            logger.warning(
                "FAIL claim %s for %s: %s (%s)",
                claim.unique_id,
                claim.domain_name,
                exc.message,
                exc.code,
            )
        return outcome

    async def verify_from_dns(
        self,
        domain: str,
        expected_wallet: str | None = None,
        claim_id: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> DnsScanResult:
        """Verify every public claim published for *domain*.

        No claim file is needed: public records carry the wallet that is
        the message prefix.  Private records are skipped.  With
        *expected_wallet* only that wallet's records are checked and the
        scan stops at its first valid claim; *claim_id* restricts the scan
        to one record id.
        """
        result = DnsScanResult(domain=domain, record_name="")
        try:
            domain = normalize_domain(domain)
            result.domain = domain
            result.record_name = base_subdomain(domain)
            await self._scan_public_claims(result, expected_wallet, claim_id, cancel_event)
        except ClaimError as exc:
            result.error = exc
            logger.warning("FAIL DNS scan for %s: %s (%s)", domain, exc.message, exc.code)

        self._log_scan_summary(result)
        return result

    async def verify_wallet_binding(
        self,
        domain: str,
        lookup_key: str = "wallet",
        expected_wallet: str | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> DnsScanResult:
        """Verify legacy ``aqua._<lookup_key>.<domain>`` wallet bindings.

        *domain* may already be the full ``aqua._wallet.example.com`` name.
        """
        split = split_legacy_record_name(domain)
        if split is not None:
            lookup_key, domain = split

        result = DnsScanResult(domain=domain, record_name="")
        try:
            domain = normalize_domain(domain)
            result.domain = domain
            result.record_name = legacy_record_name(domain, lookup_key)
            await self._scan_legacy_bindings(result, expected_wallet, cancel_event)
        except ClaimError as exc:
            result.error = exc
            logger.warning("FAIL wallet binding for %s: %s (%s)", domain, exc.message, exc.code)

        self._log_scan_summary(result)
        return result

    # ------------------------------------------------------------------
    # Pipelines
    # ------------------------------------------------------------------

    async def _verify_claim(
        self,
        claim: Claim,
        outcome: VerificationOutcome,
        cancel_event: asyncio.Event | None,
    ) -> None:
        domain = claim.domain_name

        # 1. Rate check
        self._check_rate(domain)

        # 2. Resolve
        record_set = await self._resolve(claim.txt_subdomain_name, cancel_event)

        # 3. Follow continuations
        candidates, dnssec_validated = await self._collect_candidates(record_set, domain, cancel_event)
        outcome.dnssec_validated = dnssec_validated

        # 4. Locate target
        payload = self._locate(candidates, claim.unique_id)

        # 5. Reconstruct message
        if isinstance(payload, PublicPayload):
            outcome.mode = "public"
            self._check_wallet_format(payload)
            prefix = payload.wallet
            expected_wallet = payload.wallet
            if not codec.addresses_match(payload.wallet, claim.wallet_address):
                raise SignatureMismatch(
                    f"Record wallet {payload.wallet} does not match claim file wallet "
                    f"{claim.wallet_address}"
                )
        else:
            outcome.mode = "private"
            prefix = claim.claim_secret
            expected_wallet = claim.wallet_address
        message = claim_message(prefix, payload.itime, domain, payload.etime)
        logger.debug("Reconstructed %s message for claim %s", outcome.mode, payload.id)

        # 6. Recover & compare
        outcome.wallet = self._check_signature(message, payload.sig, expected_wallet)
        if not _within_domain(claim.txt_subdomain_name, domain):
            raise DomainMismatch(
                f"Record name {claim.txt_subdomain_name} is not inside domain {domain}"
            )

        # 7. Timing checks
        outcome.issued_at, outcome.expires_at = self._check_timing(payload.itime, payload.etime)

        # 8. Success
        self._finish(outcome)

    async def _scan_public_claims(
        self,
        result: DnsScanResult,
        expected_wallet: str | None,
        claim_id: str | None,
        cancel_event: asyncio.Event | None,
    ) -> None:
        domain = result.domain
        self._check_rate(domain)

        record_set = await self._resolve(result.record_name, cancel_event)
        candidates, result.dnssec_validated = await self._collect_candidates(
            record_set, domain, cancel_event
        )
        if not result.dnssec_validated:
            result.advisories.append(DNSSEC_ADVISORY)

        payloads = [
            payload
            for payload in self._parse_candidates(candidates)
            if isinstance(payload, PublicPayload)
        ]
        if claim_id:
            payloads = [payload for payload in payloads if payload.id == claim_id.lower()]
        if expected_wallet:
            available = [payload.wallet for payload in payloads]
            payloads = [
                payload for payload in payloads if codec.addresses_match(payload.wallet, expected_wallet)
            ]
            if not payloads:
                logger.warning(
                    "Expected wallet %s not found; available wallets: %s",
                    expected_wallet,
                    ", ".join(available) or "none",
                )
        if not payloads:
            raise ClaimNotFound(f"No matching public claim records at {result.record_name}")

        logger.info("Found %d public claim record(s) to verify", len(payloads))
        for payload in payloads:
            outcome = VerificationOutcome(
                domain=domain,
                claim_id=payload.id,
                record_name=result.record_name,
                mode="public",
                wallet=payload.wallet,
                dnssec_validated=result.dnssec_validated,
            )
            try:
                self._check_wallet_format(payload)
                message = claim_message(payload.wallet, payload.itime, domain, payload.etime)
                outcome.wallet = self._check_signature(message, payload.sig, payload.wallet)
                outcome.issued_at, outcome.expires_at = self._check_timing(payload.itime, payload.etime)
                self._finish(outcome)
            except ClaimError as exc:
                outcome.error = exc
                logger.warning("FAIL claim %s: %s (%s)", payload.id, exc.message, exc.code)
                result.failures.append(outcome)
                continue

            result.valid_claims.append(outcome)
            if expected_wallet:
                break

    async def _scan_legacy_bindings(
        self,
        result: DnsScanResult,
        expected_wallet: str | None,
        cancel_event: asyncio.Event | None,
    ) -> None:
        domain = result.domain
        self._check_rate(domain)

        record_set = await self._resolve(result.record_name, cancel_event)
        result.dnssec_validated = record_set.dnssec_validated
        if not result.dnssec_validated:
            result.advisories.append(DNSSEC_ADVISORY)

        bindings = [
            payload
            for payload in self._parse_candidates(list(record_set.records))
            if isinstance(payload, LegacyPayload)
        ]
        if expected_wallet:
            bindings = [
                payload for payload in bindings if codec.addresses_match(payload.wallet, expected_wallet)
            ]
        if not bindings:
            raise ClaimNotFound(f"No matching wallet records at {result.record_name}")

        for payload in bindings:
            outcome = VerificationOutcome(
                domain=domain,
                record_name=result.record_name,
                mode="legacy",
                wallet=payload.wallet,
                dnssec_validated=result.dnssec_validated,
            )
            if not payload.has_expiration:
                logger.warning(
                    "Legacy format without expiration for %s; using default 90-day expiration",
                    payload.wallet,
                )
                outcome.advisories.append("Legacy record without expiration; regenerate the signature")
            try:
                message = legacy_message(
                    payload.timestamp,
                    domain,
                    payload.expiration if payload.has_expiration else None,
                )
                outcome.wallet = self._check_signature(message, payload.sig, payload.wallet)
                outcome.issued_at, outcome.expires_at = self._check_timing(
                    payload.timestamp, payload.expiration
                )
                self._finish(outcome)
            except ClaimError as exc:
                outcome.error = exc
                logger.warning("FAIL wallet record %s: %s (%s)", payload.wallet, exc.message, exc.code)
                result.failures.append(outcome)
                continue

            result.valid_claims.append(outcome)
            if expected_wallet:
                break

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _check_rate(self, domain: str) -> None:
        if self.rate_limiter is None:
            return
        if not self.rate_limiter.hit(domain):
            raise RateLimited(
                f"Rate limit exceeded for {domain}: maximum {self.rate_limiter.max_requests} "
                f"verifications per {self.rate_limiter.window_seconds:g}s"
            )

    async def _cancellable(self, awaitable: Awaitable[T], cancel_event: asyncio.Event | None) -> T:
        """Await *awaitable*, aborting with Cancelled once *cancel_event* is set."""
        if cancel_event is None:
            return await awaitable

        task = asyncio.ensure_future(awaitable)
        if cancel_event.is_set():
            task.cancel()
            raise Cancelled("Verification cancelled")

        waiter = asyncio.ensure_future(cancel_event.wait())
        try:
            done, _ = await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()

        if task in done:
            return task.result()
        raise Cancelled("Verification cancelled while waiting for DNS")

    async def _resolve(self, name: str, cancel_event: asyncio.Event | None) -> TxtRecordSet:
        record_set = raise_for_error(
            await self._cancellable(self.resolver.resolve_txt(name), cancel_event)
        )
        if not record_set.records:
            raise NoRecordsFound(record_set.error_message or f"No TXT records found at {name}")

        logger.info(
            "PASS found %d TXT record(s) at %s (DNSSEC %s)",
            len(record_set.records),
            name,
            "validated" if record_set.dnssec_validated else "not validated",
        )
        return record_set

    async def _collect_candidates(
        self,
        record_set: TxtRecordSet,
        domain: str,
        cancel_event: asyncio.Event | None,
    ) -> tuple[list[str], bool]:
        """Return the union of record strings at *record_set* and its continuations."""
        candidates = list(record_set.records)
        dnssec_validated = record_set.dnssec_validated

        labels: list[str] = []
        for text in record_set.records:
            try:
                parsed = parse_payload(text)
            except PayloadError:
                continue
            if isinstance(parsed, ContinuationIndex):
                labels.extend(parsed.labels)

        names: list[str] = []
        for label in labels:
            name = qualify(label, domain)
            if name != record_set.name and name not in names and _within_domain(name, domain):
                names.append(name)
        if not names:
            return candidates, dnssec_validated

        logger.info("Following %d continuation(s): %s", len(names), ", ".join(names))
        lookups = asyncio.gather(
            *(self.resolver.resolve_txt(name) for name in names),
            return_exceptions=True,
        )
        results = await self._cancellable(lookups, cancel_event)

        for name, continuation in zip(names, results):
            if isinstance(continuation, BaseException):
                logger.warning("Skipping continuation %s: %s", name, continuation)
                continue
            if not continuation.records:
                logger.warning(
                    "Skipping continuation %s: %s",
                    name,
                    continuation.error_message or "no records",
                )
                continue
            candidates.extend(continuation.records)
            dnssec_validated = dnssec_validated and continuation.dnssec_validated

        return candidates, dnssec_validated

    def _parse_candidates(self, candidates: list[str]) -> list[Any]:
        parsed: list[Any] = []
        for text in candidates:
            try:
                parsed.append(parse_payload(text))
            except PayloadError as exc:
                logger.warning("Rejected TXT record: %s", exc.message)
        return parsed

    def _locate(self, candidates: list[str], unique_id: str) -> ClaimPayload:
        matches = [
            payload
            for payload in self._parse_candidates(candidates)
            if isinstance(payload, (PrivatePayload, PublicPayload)) and payload.id == unique_id
        ]
        if not matches:
            raise ClaimNotFound(f"No TXT record with id={unique_id}")
        if len(matches) > 1:
            logger.warning("%d records share id=%s; using the first", len(matches), unique_id)
        logger.info("PASS located claim record id=%s", unique_id)
        return matches[0]

    def _check_wallet_format(self, payload: PublicPayload) -> None:
        if not payload.has_valid_wallet():
            raise PayloadError(f"Record {payload.id} has a malformed wallet address {payload.wallet!r}")

    def _check_signature(self, message: str, signature: str, expected_wallet: str) -> str:
        """Recover the signer of *message* and compare it with *expected_wallet*."""
        recovered = codec.recover(message, signature)
        if not codec.addresses_match(recovered, expected_wallet):
            raise SignatureMismatch(
                f"Signature was not created by {expected_wallet} (recovered {recovered})"
            )
        if not is_checksum_address(expected_wallet):
            logger.warning("Wallet %s is not in checksum format (expected %s)", expected_wallet, recovered)
        logger.info("PASS signature recovered to %s", recovered)
        return recovered

    def _check_timing(self, itime_raw: str, etime_raw: str) -> tuple[int, int]:
        itime = _positive_int(itime_raw)
        etime = _positive_int(etime_raw)
        if itime is None or etime is None:
            raise InvalidTimestamp(f"Timestamps must be positive integers (itime={itime_raw!r}, etime={etime_raw!r})")
        if etime <= itime:
            raise InvalidTimestamp(f"Expiration {etime} is not after issue time {itime}")

        now = int(self._clock())
        if itime > now + self.max_clock_skew:
            raise ClockSkew(f"Issue time {itime} is {itime - now}s in the future")
        if etime < now:
            raise Expired(f"Claim expired at {etime} (now {now})")

        logger.info("PASS timing: issued %d, valid for %d more day(s)", itime, (etime - now) // 86400)
        return itime, etime

    def _finish(self, outcome: VerificationOutcome) -> None:
        outcome.valid = True
        if not outcome.dnssec_validated:
            outcome.advisories.append(DNSSEC_ADVISORY)
            logger.warning("%s (%s)", DNSSEC_ADVISORY, outcome.record_name)
        logger.info(
            "SUCCESS wallet %s is bound to %s until %s",
            outcome.wallet,
            outcome.domain,
            outcome.expires_at,
        )

    def _log_scan_summary(self, result: DnsScanResult) -> None:
        checked = len(result.valid_claims) + len(result.failures)
        logger.info(
            "Verification results for %s: %d/%d record(s) passed; wallets: %s",
            result.domain,
            len(result.valid_claims),
            checked,
            ", ".join(result.wallets) or "none",
        )
