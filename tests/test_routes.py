"""
Route tests for the claim server.

Covers the JSON API and the save-claim endpoint.  All tests use the Flask
test client and the FakeResolver; no real server or DNS calls occur.
"""

from __future__ import annotations

import json

from conftest import TEST_PRIVATE_KEY, TEST_WALLET
from dnsclaim.claims.payload import format_legacy, legacy_message
from dnsclaim.claims.signature import sign
from dnsclaim.models import StoredClaim, VerificationRecord

# Verification uses the real clock; these timestamps keep the claim valid
# for any plausible test run date.
ITIME = 1700000000
ETIME = 4102444800  # 2100-01-01


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


def test_health(client):
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.get_json()["status"] == "ok"
    assert response.headers["Access-Control-Allow-Origin"] == "*"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


# ---------------------------------------------------------------------------
# POST /save-claim
# ---------------------------------------------------------------------------


def test_save_claim_writes_file_and_row(client, app, db, make_claim):
    claim = make_claim(etime=ETIME)

    response = client.post("/save-claim", json=claim.to_claim_file())

    assert response.status_code == 200
    assert response.get_json() == {"success": True, "message": "Claim saved to 1a2b3c4d.json"}

    path = f"{app.config['CLAIMS_DIR']}/1a2b3c4d.json"
    with open(path, encoding="utf-8") as handle:
        assert json.load(handle)["forms_unique_id"] == "1a2b3c4d"

    stored = db.session.execute(db.select(StoredClaim)).scalar_one()
    assert stored.domain == "example.com"
    assert stored.wallet_address == TEST_WALLET
    assert stored.get_claim_data()["sig"] == claim.signature


def test_save_claim_twice_updates_row(client, db, make_claim):
    claim = make_claim(etime=ETIME)
    client.post("/save-claim", json=claim.to_claim_file())
    client.post("/save-claim", json=claim.to_claim_file())

    assert len(db.session.execute(db.select(StoredClaim)).scalars().all()) == 1


def test_save_claim_rejects_invalid_file(client, db):
    response = client.post("/save-claim", json={"forms_unique_id": "1a2b3c4d"})

    assert response.status_code == 400
    assert response.get_json()["success"] is False
    assert db.session.execute(db.select(StoredClaim)).first() is None


def test_save_claim_rejects_non_json(client):
    response = client.post("/save-claim", data="not json", content_type="text/plain")
    assert response.status_code == 400


def test_save_claim_preflight(client):
    response = client.open("/save-claim", method="OPTIONS")

    assert response.status_code == 200
    assert "POST" in response.headers["Access-Control-Allow-Methods"]


# ---------------------------------------------------------------------------
# POST /api/v1/verify
# ---------------------------------------------------------------------------


def test_verify_valid_claim(client, db, fake_resolver, make_claim):
    claim = make_claim(itime=ITIME, etime=ETIME)
    fake_resolver.add(claim.txt_subdomain_name, claim.txt_record)

    response = client.post("/api/v1/verify", json=claim.to_claim_file())

    assert response.status_code == 200
    body = response.get_json()
    assert body["valid"] is True
    assert body["wallet"] == TEST_WALLET

    record = db.session.execute(db.select(VerificationRecord)).scalar_one()
    assert record.valid is True
    assert record.kind == "claim"
    assert record.get_wallets() == [TEST_WALLET]


def test_verify_failed_claim_returns_200(client, db, make_claim):
    claim = make_claim(itime=ITIME, etime=ETIME)

    response = client.post("/api/v1/verify", json=claim.to_claim_file())

    assert response.status_code == 200
    body = response.get_json()
    assert body["valid"] is False
    assert body["error"] == "NO_RECORDS_FOUND"

    record = db.session.execute(db.select(VerificationRecord)).scalar_one()
    assert record.error_code == "NO_RECORDS_FOUND"


def test_verify_malformed_body_returns_400(client):
    response = client.post("/api/v1/verify", json={"hello": "world"})

    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_CLAIM_FILE"


def test_verify_rate_limited_returns_429(client, fake_resolver, make_claim):
    claim = make_claim(itime=ITIME, etime=ETIME)
    fake_resolver.add(claim.txt_subdomain_name, claim.txt_record)

    statuses = [client.post("/api/v1/verify", json=claim.to_claim_file()).status_code for _ in range(11)]

    assert statuses[:10] == [200] * 10
    assert statuses[10] == 429


# ---------------------------------------------------------------------------
# GET /api/v1/verify-dns/<domain>
# ---------------------------------------------------------------------------


def test_verify_dns_public_claims(client, fake_resolver, make_claim):
    claim = make_claim(public=True, itime=ITIME, etime=ETIME)
    fake_resolver.add("_aw.example.com", claim.txt_record)

    response = client.get("/api/v1/verify-dns/example.com")

    assert response.status_code == 200
    body = response.get_json()
    assert body["valid"] is True
    assert body["wallets"] == [TEST_WALLET]


def test_verify_dns_wallet_filter(client, fake_resolver, make_claim):
    claim = make_claim(public=True, itime=ITIME, etime=ETIME)
    fake_resolver.add("_aw.example.com", claim.txt_record)

    response = client.get("/api/v1/verify-dns/example.com?wallet=0x0000000000000000000000000000000000000001")

    body = response.get_json()
    assert body["valid"] is False
    assert body["error"] == "CLAIM_NOT_FOUND"


# ---------------------------------------------------------------------------
# GET /api/v1/verify-wallet/<domain>
# ---------------------------------------------------------------------------


def _legacy_binding() -> str:
    signature = sign(legacy_message(str(ITIME), "example.com", str(ETIME)), TEST_PRIVATE_KEY)
    return format_legacy(TEST_WALLET, ITIME, ETIME, signature)


def test_verify_wallet_legacy_binding(client, db, fake_resolver):
    fake_resolver.add("aqua._wallet.example.com", _legacy_binding())

    response = client.get("/api/v1/verify-wallet/example.com")

    assert response.status_code == 200
    body = response.get_json()
    assert body["valid"] is True
    assert body["record_name"] == "aqua._wallet.example.com"
    assert body["wallets"] == [TEST_WALLET]

    record = db.session.execute(db.select(VerificationRecord)).scalar_one()
    assert record.kind == "wallet_binding"
    assert record.mode == "legacy"


def test_verify_wallet_custom_lookup_key(client, fake_resolver):
    fake_resolver.add("aqua._treasury.example.com", _legacy_binding())

    body = client.get("/api/v1/verify-wallet/example.com?lookup_key=treasury").get_json()

    assert body["valid"] is True


def test_verify_wallet_missing_binding(client):
    body = client.get("/api/v1/verify-wallet/example.com").get_json()

    assert body["valid"] is False
    assert body["error"] == "NO_RECORDS_FOUND"


# ---------------------------------------------------------------------------
# GET /api/v1/allocate/<domain>
# ---------------------------------------------------------------------------


def test_allocate_new_domain(client):
    response = client.get("/api/v1/allocate/Example.com")

    assert response.status_code == 200
    body = response.get_json()
    assert body["subdomain"] == "_aw.example.com"
    assert body["is_new"] is True
    assert body["continuation_update"] is None
    assert len(body["unique_id"]) == 8


def test_allocate_invalid_domain(client):
    response = client.get("/api/v1/allocate/not_a_domain")

    assert response.status_code == 400
    assert response.get_json()["error"] == "INVALID_DOMAIN"


# ---------------------------------------------------------------------------
# GET /api/v1/claims/<unique_id>
# ---------------------------------------------------------------------------


def test_claim_detail_with_history(client, fake_resolver, make_claim):
    claim = make_claim(itime=ITIME, etime=ETIME)
    fake_resolver.add(claim.txt_subdomain_name, claim.txt_record)
    client.post("/save-claim", json=claim.to_claim_file())
    client.post("/api/v1/verify", json=claim.to_claim_file())

    response = client.get("/api/v1/claims/1A2B3C4D")

    assert response.status_code == 200
    body = response.get_json()
    assert body["claim"]["forms_unique_id"] == "1a2b3c4d"
    assert body["verifications"][0]["valid"] is True


def test_claim_detail_not_found(client):
    assert client.get("/api/v1/claims/ffffffff").status_code == 404
