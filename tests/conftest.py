"""
Shared pytest fixtures for the DNS wallet claim test suite.

All fixtures use an in-memory SQLite database and a FakeResolver so tests
are fully isolated and require no external services or real DNS lookups.
"""

from __future__ import annotations

import asyncio

import pytest

from dnsclaim import create_app
from dnsclaim import db as _db
from dnsclaim.claims.generator import Claim
from dnsclaim.claims.payload import claim_message, format_private, format_public
from dnsclaim.claims.resolver import TxtRecordSet
from dnsclaim.claims.signature import address_of, sign

# Well-known development keys (never hold funds with these).
TEST_PRIVATE_KEY = "0xac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
TEST_WALLET = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
OTHER_PRIVATE_KEY = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
OTHER_WALLET = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"

ISSUED_AT = 1700000000
EXPIRES_AT = 1707776000
NOW = 1700000100


# ---------------------------------------------------------------------------
# Fake DNS
# ---------------------------------------------------------------------------


class FakeResolver:
    """In-memory TxtResolver.

    ``records`` maps a name to a list of TXT strings, a TxtRecordSet, or an
    exception instance to raise.  Unknown names answer NXDOMAIN.  Names in
    ``blocked`` never answer (until cancelled).
    """

    def __init__(self, records: dict | None = None) -> None:
        self.records: dict = dict(records or {})
        self.dnssec: set[str] = set()
        self.blocked: set[str] = set()
        self.queries: list[str] = []

    def add(self, name: str, *txt: str) -> None:
        self.records.setdefault(name, [])
        self.records[name].extend(txt)

    async def resolve_txt(self, name: str) -> TxtRecordSet:
        self.queries.append(name)
        if name in self.blocked:
            await asyncio.sleep(3600)

        value = self.records.get(name)
        if value is None:
            return TxtRecordSet(
                name=name,
                error_type="NXDOMAIN",
                error_message=f"Domain {name} does not exist (NXDOMAIN)",
            )
        if isinstance(value, BaseException):
            raise value
        if isinstance(value, TxtRecordSet):
            return value
        return TxtRecordSet(name=name, records=tuple(value), dnssec_validated=name in self.dnssec)


def build_claim(
    domain: str = "example.com",
    unique_id: str = "1a2b3c4d",
    secret: str = "deadbeefcafef00d",
    itime: int = ISSUED_AT,
    etime: int = EXPIRES_AT,
    private_key: str = TEST_PRIVATE_KEY,
    public: bool = False,
    txt_name: str | None = None,
) -> Claim:
    """Return a correctly signed Claim without touching DNS."""
    wallet = address_of(private_key)
    prefix = wallet if public else secret
    signature = sign(claim_message(prefix, itime, domain, etime), private_key)
    if public:
        record = format_public(unique_id, wallet, itime, etime, signature)
    else:
        record = format_private(unique_id, itime, etime, signature)
    return Claim(
        unique_id=unique_id,
        claim_secret="" if public else secret,
        txt_subdomain_name=txt_name or f"_aw.{domain}",
        txt_record=record,
        wallet_address=wallet,
        domain_name=domain,
        issued_at=itime,
        expires_at=etime,
        signature=signature,
        is_public=public,
    )


# ---------------------------------------------------------------------------
# Test configuration
# ---------------------------------------------------------------------------


class TestConfig:
    """Minimal Flask config for automated testing."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SECRET_KEY = "test-secret-key-not-for-production"
    DNS_TIMEOUT_SECONDS = 2.0
    RATE_LIMIT_MAX = 10
    RATE_LIMIT_WINDOW_SECONDS = 60


# ---------------------------------------------------------------------------
# Core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(scope="function")
def fake_resolver():
    """Return an empty FakeResolver."""
    return FakeResolver()


@pytest.fixture(scope="function")
def make_claim():
    """Return the ``build_claim`` factory."""
    return build_claim


@pytest.fixture(scope="function")
def app(fake_resolver, tmp_path):
    """Create a Flask application backed by an in-memory database.

    The application resolves DNS through ``fake_resolver`` and writes
    claim files below ``tmp_path``.
    """
    config = type(
        "PerTestConfig",
        (TestConfig,),
        {"CLAIM_RESOLVER": fake_resolver, "CLAIMS_DIR": str(tmp_path / "claims")},
    )
    flask_app = create_app(config)

    with flask_app.app_context():
        _db.create_all()

        yield flask_app

        _db.session.remove()
        _db.drop_all()


@pytest.fixture(scope="function")
def client(app):
    """Return a Flask test client."""
    return app.test_client()


@pytest.fixture(scope="function")
def db(app):
    """Yield the SQLAlchemy db object within an active application context."""
    with app.app_context():
        yield _db
