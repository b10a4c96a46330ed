"""
Claim save endpoint.

The browser signing page builds the claim, signs it with the user's wallet
and POSTs the claim file here.  The claim is validated, written to the
claims directory as ``<unique_id>.json`` and recorded in StoredClaim.
"""

from __future__ import annotations

import logging

from flask import current_app, jsonify, request

from dnsclaim import db
from dnsclaim.claims.generator import Claim
from dnsclaim.errors import InvalidClaimFile
from dnsclaim.models import StoredClaim
from dnsclaim.signer import bp
from dnsclaim.utils.claim_store import save_claim_data

logger = logging.getLogger(__name__)


@bp.route("/save-claim", methods=["POST", "OPTIONS"])
def save_claim():
    """Validate and persist a claim file posted as JSON."""
    if request.method == "OPTIONS":
        return "", 200

    data = request.get_json(silent=True)
    try:
        claim = Claim.from_claim_file(data)
        path = save_claim_data(current_app.config["CLAIMS_DIR"], data)
    except InvalidClaimFile as exc:
        logger.warning("Rejected claim file: %s", exc.message)
        return jsonify({"success": False, "error": exc.message}), 400

    stored = db.session.execute(
        db.select(StoredClaim).where(StoredClaim.unique_id == claim.unique_id)
    ).scalar_one_or_none()
    if stored is None:
        stored = StoredClaim(unique_id=claim.unique_id)
        db.session.add(stored)

    stored.domain = claim.domain_name
    stored.txt_name = claim.txt_subdomain_name
    stored.txt_record = claim.txt_record or None
    stored.wallet_address = claim.wallet_address
    stored.is_public = claim.is_public
    stored.issued_at = claim.issued_at
    stored.expires_at = claim.expires_at
    stored.set_claim_data(data)
    db.session.commit()

    return jsonify({"success": True, "message": f"Claim saved to {path.name}"})
