"""
Exception taxonomy for claim generation and verification.

Every failure carries a stable ``code`` string.  The verifier records the
code in VerificationRecord rows and returns it from the JSON API, so it
must not change once published.
"""

from __future__ import annotations


class ClaimError(Exception):
    """Base class for every claim-protocol failure."""

    code: str = "CLAIM_ERROR"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = str(self.args[0])


# ---------------------------------------------------------------------------
# Local generation failures
# ---------------------------------------------------------------------------


class GenerationError(ClaimError):
    """Claim could not be generated."""

    code = "GENERATION_ERROR"


class InvalidDomain(GenerationError):
    """Domain fails basic hostname syntax."""

    code = "INVALID_DOMAIN"


class InvalidKey(GenerationError):
    """Private key is malformed."""

    code = "INVALID_KEY"


class IdGenerationExhausted(GenerationError):
    """Every candidate claim id collided with an existing record."""

    code = "ID_GENERATION_EXHAUSTED"


# ---------------------------------------------------------------------------
# Resolution-layer failures
# ---------------------------------------------------------------------------


class ResolutionError(ClaimError):
    """DNS resolution did not yield a usable claim record."""

    code = "RESOLUTION_ERROR"


class DnsTimeout(ResolutionError):
    """DNS query exceeded its timeout."""

    code = "DNS_TIMEOUT"


class DnsLookupError(ResolutionError):
    """DNS query failed (SERVFAIL, no nameservers, unexpected error)."""

    code = "DNS_ERROR"


class NoRecordsFound(ResolutionError):
    """No TXT records exist at the queried name."""

    code = "NO_RECORDS_FOUND"


class ClaimNotFound(ResolutionError):
    """No TXT record matches the requested claim."""

    code = "CLAIM_NOT_FOUND"


# ---------------------------------------------------------------------------
# Cryptographic failures
# ---------------------------------------------------------------------------


class CryptoError(ClaimError):
    """Signature verification failed."""

    code = "CRYPTO_ERROR"


class SignatureMismatch(CryptoError):
    """Recovered signer differs from the expected wallet."""

    code = "SIGNATURE_MISMATCH"


class InvalidSignatureFormat(SignatureMismatch):
    """Signature is not 0x followed by 130 hex characters."""

    code = "INVALID_SIGNATURE_FORMAT"


class RecoveryError(SignatureMismatch):
    """Public key recovery failed (malformed r/s/v)."""

    code = "RECOVERY_ERROR"


# ---------------------------------------------------------------------------
# Temporal policy violations
# ---------------------------------------------------------------------------


class TemporalError(ClaimError):
    """Claim timestamps violate the timing policy."""

    code = "TEMPORAL_ERROR"


class InvalidTimestamp(TemporalError):
    """itime/etime are not positive integers, or etime <= itime."""

    code = "INVALID_TIMESTAMP"


class ClockSkew(TemporalError):
    """Issue time lies too far in the future."""

    code = "CLOCK_SKEW"


class Expired(TemporalError):
    """Claim expiration time has passed."""

    code = "EXPIRED"


# ---------------------------------------------------------------------------
# Other
# ---------------------------------------------------------------------------


class RateLimited(ClaimError):
    """Too many verification requests for this domain."""

    code = "RATE_LIMITED"


class Cancelled(ClaimError):
    """Verification was cancelled by the caller."""

    code = "CANCELLED"


class PayloadError(ClaimError):
    """TXT record payload could not be parsed."""

    code = "INVALID_PAYLOAD"


class DuplicateKeyError(PayloadError):
    """TXT record payload repeats a key."""

    code = "DUPLICATE_KEY"


class InvalidClaimFile(ClaimError):
    """Claim file is missing fields or holds malformed values."""

    code = "INVALID_CLAIM_FILE"


class DomainMismatch(ClaimError):
    """Claim record name is not inside the claimed domain."""

    code = "DOMAIN_MISMATCH"
