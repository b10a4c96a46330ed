"""
Asynchronous DNS TXT resolver.

Wraps ``dns.asyncresolver`` with an explicit per-query timeout and the
same error classification used across the project (NXDOMAIN, NO_ANSWER,
TIMEOUT, DNS_ERROR).  A DNSSEC probe is attempted first; when it fails
the query is repeated as a plain lookup and the result is marked as not
DNSSEC-validated.  Only the AD (Authenticated Data) flag is checked; no
chain-of-trust validation happens here.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

import dns.asyncresolver
import dns.exception
import dns.flags
import dns.resolver

from dnsclaim.errors import DnsLookupError, DnsTimeout

logger = logging.getLogger(__name__)

_FALLBACK_NAMESERVERS = ["8.8.8.8", "1.1.1.1"]
_EDNS_PAYLOAD = 1232


@dataclass
class ResolverSettings:
    """Resolver configuration (nameservers, per-query timeout, retries)."""

    nameservers: list[str] = field(default_factory=list)
    timeout_seconds: float = 10.0
    retries: int = 1

    @classmethod
    def from_config(cls, config: Any) -> ResolverSettings:
        """Build settings from a Config class or a Flask ``app.config`` mapping."""
        if isinstance(config, dict):
            get = config.get
        else:
            def get(key, default=None):
                return getattr(config, key, default)

        return cls(
            nameservers=list(get("DNS_NAMESERVERS", None) or []),
            timeout_seconds=float(get("DNS_TIMEOUT_SECONDS", 10.0)),
            retries=int(get("DNS_RETRIES", 1)),
        )


@dataclass(frozen=True)
class TxtRecordSet:
    """TXT strings returned for one name, plus how they were obtained."""

    name: str
    records: tuple[str, ...] = ()
    dnssec_validated: bool = False
    error_type: str | None = None
    error_message: str | None = None

    @property
    def success(self) -> bool:
        return self.error_type is None and bool(self.records)


class TxtResolver(Protocol):
    """Anything that can resolve TXT records for a name."""

    async def resolve_txt(self, name: str) -> TxtRecordSet: ...


@runtime_checkable
class DnssecProbe(Protocol):
    """Capability returning ``(records, validated)`` for a DNSSEC-aware lookup.

    Implementations raise on any failure; the resolver then falls back to
    a plain lookup.
    """

    async def probe(self, name: str) -> tuple[list[str], bool]: ...


def create_resolver(settings: ResolverSettings) -> dns.asyncresolver.Resolver:
    """Create a fresh dns.asyncresolver.Resolver configured from *settings*.

    Args:
        settings: ResolverSettings holding nameservers and timeouts.

    Returns:
        A configured dns.asyncresolver.Resolver instance.
    """
    resolver = dns.asyncresolver.Resolver(configure=False)

    if settings.nameservers:
        resolver.nameservers = list(settings.nameservers)
    else:
        resolver.nameservers = list(_FALLBACK_NAMESERVERS)

    resolver.timeout = float(settings.timeout_seconds)
    resolver.lifetime = float(settings.timeout_seconds * max(settings.retries, 1))
    resolver.retry_servfail = True

    return resolver


def _txt_strings(answer: Any) -> list[str]:
    records: list[str] = []
    for rdata in answer:
        # TXT records come as multiple byte strings that need joining
        records.append(b"".join(rdata.strings).decode("utf-8", errors="replace"))
    return records


class AdFlagProbe:
    """DNSSEC probe that sets the DO bit and reads the AD flag of the answer."""

    def __init__(self, settings: ResolverSettings) -> None:
        self.settings = settings

    async def probe(self, name: str) -> tuple[list[str], bool]:
        resolver = create_resolver(self.settings)
        resolver.use_edns(0, dns.flags.DO, _EDNS_PAYLOAD)
        resolver.flags = dns.flags.RD | dns.flags.AD

        answer = await resolver.resolve(name, "TXT")
        validated = bool(answer.response.flags & dns.flags.AD)
        return _txt_strings(answer), validated


class DnsTxtResolver:
    """Resolve TXT records with a DNSSEC attempt and plain fallback.

    Args:
        settings: ResolverSettings; defaults to public resolvers and a 10s timeout.
        dnssec_probe: DnssecProbe to try first.  Defaults to ``AdFlagProbe``;
            pass ``use_dnssec=False`` to skip the probe entirely.
    """

    def __init__(
        self,
        settings: ResolverSettings | None = None,
        dnssec_probe: DnssecProbe | None = None,
        use_dnssec: bool = True,
    ) -> None:
        self.settings = settings or ResolverSettings()
        if use_dnssec:
            self.dnssec_probe = dnssec_probe or AdFlagProbe(self.settings)
        else:
            self.dnssec_probe = None

    async def resolve_txt(self, name: str) -> TxtRecordSet:
        """Resolve TXT records at *name*.

        Never raises for DNS failures; they are classified into
        ``TxtRecordSet.error_type`` instead.  ``asyncio.CancelledError``
        propagates.
        """
        timeout = self.settings.timeout_seconds

        if self.dnssec_probe is not None:
            try:
                records, validated = await asyncio.wait_for(self.dnssec_probe.probe(name), timeout)
                logger.debug(
                    "DNSSEC probe %s returned %d records (validated=%s)",
                    name,
                    len(records),
                    validated,
                )
                return TxtRecordSet(name=name, records=tuple(records), dnssec_validated=validated)
            except Exception as exc:
                logger.info(
                    "DNSSEC lookup unavailable for %s (%s), falling back to standard DNS",
                    name,
                    type(exc).__name__,
                )

        return await self._plain_lookup(name, timeout)

    async def _plain_lookup(self, name: str, timeout: float) -> TxtRecordSet:
        resolver = create_resolver(self.settings)

        try:
            answer = await asyncio.wait_for(resolver.resolve(name, "TXT"), timeout)
            records = _txt_strings(answer)
            logger.debug("DNS query %s/TXT returned %d records", name, len(records))
            return TxtRecordSet(name=name, records=tuple(records))

        except dns.resolver.NXDOMAIN:
            logger.info("NXDOMAIN for %s/TXT", name)
            return TxtRecordSet(
                name=name,
                error_type="NXDOMAIN",
                error_message=f"Domain {name} does not exist (NXDOMAIN)",
            )

        except dns.resolver.NoAnswer:
            logger.info("NoAnswer for %s/TXT", name)
            return TxtRecordSet(
                name=name,
                error_type="NO_ANSWER",
                error_message=f"No TXT records found for {name}",
            )

        except dns.resolver.NoNameservers:
            logger.warning("NoNameservers for %s/TXT", name)
            return TxtRecordSet(
                name=name,
                error_type="DNS_ERROR",
                error_message=f"No nameservers available for {name} (SERVFAIL or all failed)",
            )

        except (asyncio.TimeoutError, dns.exception.Timeout):
            logger.warning("Timeout for %s/TXT after %.1fs", name, timeout)
            return TxtRecordSet(
                name=name,
                error_type="TIMEOUT",
                error_message=f"DNS query timed out for {name}/TXT",
            )

        except dns.exception.DNSException as exc:
            logger.error("DNSException for %s/TXT: %s", name, exc)
            return TxtRecordSet(
                name=name,
                error_type="DNS_ERROR",
                error_message=f"DNS error for {name}/TXT: {exc}",
            )

        except Exception as exc:
            logger.exception("Unexpected error querying %s/TXT", name)
            return TxtRecordSet(
                name=name,
                error_type="DNS_ERROR",
                error_message=f"Unexpected error for {name}/TXT: {exc}",
            )


def raise_for_error(record_set: TxtRecordSet) -> TxtRecordSet:
    """Raise for lookups that failed rather than found nothing.

    NXDOMAIN and NO_ANSWER mean "no records" and pass through.

    Raises:
        DnsTimeout: for TIMEOUT results.
        DnsLookupError: for DNS_ERROR results.
    """
    if record_set.error_type == "TIMEOUT":
        raise DnsTimeout(record_set.error_message or f"DNS query timed out for {record_set.name}")
    if record_set.error_type == "DNS_ERROR":
        raise DnsLookupError(record_set.error_message or f"DNS error for {record_set.name}")
    return record_set
