"""
API blueprint routes.

Provides JSON endpoints for claim verification, DNS scans, legacy wallet
bindings, subdomain allocation and lookup of claims saved through the
signer endpoint.

Verification failures are normal results and return 200 with
``"valid": false``; malformed input returns 400 and throttled requests 429.
"""

from __future__ import annotations

import asyncio
import time
from datetime import datetime, timezone

from flask import current_app, jsonify, request

from dnsclaim import db
from dnsclaim.api import bp
from dnsclaim.claims.generator import Claim
from dnsclaim.errors import ClaimError, InvalidClaimFile, RateLimited
from dnsclaim.models import StoredClaim, VerificationRecord
from dnsclaim.utils.domain import normalize_domain


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _verifier():
    return current_app.extensions["dnsclaim.verifier"]


def _record(kind: str, result, claim_id: str | None, elapsed_ms: int) -> None:
    """Persist a VerificationRecord for *result*."""
    if kind == "claim":
        wallets = [result.wallet] if result.valid and result.wallet else []
        mode = result.mode
    else:
        wallets = result.wallets
        mode = "legacy" if kind == "wallet_binding" else "public"

    record = VerificationRecord(
        kind=kind,
        domain=result.domain,
        claim_id=claim_id,
        mode=mode,
        valid=result.valid,
        error_code=result.error.code if result.error else None,
        dnssec_validated=result.dnssec_validated,
        execution_time_ms=elapsed_ms,
    )
    record.set_wallets(wallets)
    db.session.add(record)
    db.session.commit()


def _status_for(result) -> int:
    return 429 if isinstance(result.error, RateLimited) else 200


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@bp.route("/health")
def health():
    """Public health-check endpoint."""
    return jsonify(
        {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "service": "DNS wallet claims",
        }
    )


@bp.route("/verify", methods=["POST"])
def verify():
    """Verify the claim file posted as the JSON body."""
    try:
        claim = Claim.from_claim_file(request.get_json(silent=True))
    except InvalidClaimFile as exc:
        return jsonify({"valid": False, "error": exc.code, "message": exc.message}), 400

    start = time.monotonic()
    outcome = asyncio.run(_verifier().verify_claim(claim))
    _record("claim", outcome, claim.unique_id, int((time.monotonic() - start) * 1000))

    return jsonify(outcome.to_dict()), _status_for(outcome)


@bp.route("/verify-dns/<domain>")
def verify_dns(domain: str):
    """Scan and verify every public claim for *domain*.

    Query parameters:
        wallet:   only check records for this wallet address.
        claim_id: only check the record with this id.
    """
    wallet = request.args.get("wallet") or None
    claim_id = request.args.get("claim_id") or None

    start = time.monotonic()
    result = asyncio.run(_verifier().verify_from_dns(domain, expected_wallet=wallet, claim_id=claim_id))
    _record("dns_scan", result, claim_id, int((time.monotonic() - start) * 1000))

    return jsonify(result.to_dict()), _status_for(result)


@bp.route("/verify-wallet/<domain>")
def verify_wallet(domain: str):
    """Verify the legacy ``aqua._<lookup_key>.<domain>`` wallet binding.

    Query parameters:
        wallet:     only check records for this wallet address.
        lookup_key: record key, ``wallet`` by default.
    """
    wallet = request.args.get("wallet") or None
    lookup_key = request.args.get("lookup_key") or "wallet"

    start = time.monotonic()
    result = asyncio.run(
        _verifier().verify_wallet_binding(domain, lookup_key=lookup_key, expected_wallet=wallet)
    )
    _record("wallet_binding", result, None, int((time.monotonic() - start) * 1000))

    return jsonify(result.to_dict()), _status_for(result)


@bp.route("/allocate/<domain>")
def allocate(domain: str):
    """Return the subdomain and a fresh claim id for the next claim of *domain*."""
    allocator = current_app.extensions["dnsclaim.allocator"]

    async def _plan():
        allocation = await allocator.find_available_subdomain(normalize_domain(domain))
        unique_id = await allocator.generate_unique_id(allocation.subdomain)
        return allocation, unique_id

    try:
        allocation, unique_id = asyncio.run(_plan())
    except ClaimError as exc:
        return jsonify({"error": exc.code, "message": exc.message}), 400

    return jsonify(
        {
            "subdomain": allocation.subdomain,
            "is_new": allocation.is_new,
            "continuation_update": allocation.continuation_update,
            "unique_id": unique_id,
        }
    )


@bp.route("/claims/<unique_id>")
def claim_detail(unique_id: str):
    """Return a claim saved through the signer endpoint."""
    stored = db.session.execute(
        db.select(StoredClaim).where(StoredClaim.unique_id == unique_id.lower())
    ).scalar_one_or_none()
    if stored is None:
        return jsonify({"error": "Claim not found"}), 404

    history = (
        db.session.execute(
            db.select(VerificationRecord)
            .where(VerificationRecord.claim_id == stored.unique_id)
            .order_by(VerificationRecord.checked_at.desc())
            .limit(10)
        )
        .scalars()
        .all()
    )

    return jsonify(
        {
            "claim": stored.get_claim_data(),
            "saved_at": stored.saved_at.isoformat(),
            "verifications": [
                {
                    "checked_at": r.checked_at.isoformat(),
                    "valid": r.valid,
                    "error": r.error_code,
                    "dnssec_validated": r.dnssec_validated,
                }
                for r in history
            ],
        }
    )
