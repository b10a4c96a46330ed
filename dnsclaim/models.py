"""
SQLAlchemy models for the DNS claim service.

  StoredClaim        - claims saved through POST /save-claim
  VerificationRecord - one row per verification attempt made by the API
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from dnsclaim import db

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# StoredClaim
# ---------------------------------------------------------------------------


class StoredClaim(db.Model):
    """A claim file received by the server."""

    __tablename__ = "stored_claims"

    id: db.Mapped[int] = db.mapped_column(db.Integer, primary_key=True)
    unique_id: db.Mapped[str] = db.mapped_column(db.String(8), unique=True, nullable=False, index=True)
    domain: db.Mapped[str] = db.mapped_column(db.String(255), nullable=False, index=True)
    txt_name: db.Mapped[str] = db.mapped_column(db.String(255), nullable=False)
    txt_record: db.Mapped[str | None] = db.mapped_column(db.Text, nullable=True)
    wallet_address: db.Mapped[str] = db.mapped_column(db.String(42), nullable=False)
    is_public: db.Mapped[bool] = db.mapped_column(db.Boolean, default=False, nullable=False)
    issued_at: db.Mapped[int] = db.mapped_column(db.BigInteger, nullable=False)
    expires_at: db.Mapped[int] = db.mapped_column(db.BigInteger, nullable=False)
    claim_json: db.Mapped[str] = db.mapped_column(db.Text, nullable=False)  # JSON string
    saved_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )

    # ------------------------------------------------------------------
    # JSON helpers
    # ------------------------------------------------------------------

    def get_claim_data(self) -> dict:
        """Return the stored claim file as a dict."""
        return json.loads(self.claim_json) if self.claim_json else {}

    def set_claim_data(self, data: dict) -> None:
        """Serialise a claim file dict."""
        self.claim_json = json.dumps(data)

    def __repr__(self) -> str:
        return f"<StoredClaim {self.unique_id} domain={self.domain!r}>"


# ---------------------------------------------------------------------------
# VerificationRecord
# ---------------------------------------------------------------------------


class VerificationRecord(db.Model):
    """Snapshot of one verification attempt."""

    __tablename__ = "verification_records"
    __table_args__ = (
        db.Index("ix_verification_records_domain_checked", "domain", "checked_at"),
    )

    id: db.Mapped[int] = db.mapped_column(db.Integer, primary_key=True)
    checked_at: db.Mapped[datetime] = db.mapped_column(
        db.DateTime(timezone=True), default=_utcnow, nullable=False
    )
    kind: db.Mapped[str] = db.mapped_column(db.String(20), nullable=False)  # claim/dns_scan/wallet_binding
    domain: db.Mapped[str] = db.mapped_column(db.String(255), nullable=False)
    claim_id: db.Mapped[str | None] = db.mapped_column(db.String(8), nullable=True)
    mode: db.Mapped[str | None] = db.mapped_column(db.String(20), nullable=True)
    valid: db.Mapped[bool] = db.mapped_column(db.Boolean, nullable=False)
    error_code: db.Mapped[str | None] = db.mapped_column(db.String(40), nullable=True)
    dnssec_validated: db.Mapped[bool] = db.mapped_column(db.Boolean, default=False, nullable=False)
    wallets: db.Mapped[str | None] = db.mapped_column(db.Text, nullable=True)  # JSON list
    execution_time_ms: db.Mapped[int | None] = db.mapped_column(db.Integer, nullable=True)

    def get_wallets(self) -> list[str]:
        return json.loads(self.wallets) if self.wallets else []

    def set_wallets(self, wallets: list[str]) -> None:
        self.wallets = json.dumps(wallets)

    def __repr__(self) -> str:
        return f"<VerificationRecord {self.kind} {self.domain} valid={self.valid}>"
