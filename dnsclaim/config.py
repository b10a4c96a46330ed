"""
Configuration module for the DNS claim service.

Loads settings from environment variables with sensible defaults.
"""

import os


def _split_list(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Config:
    """Base configuration shared by the server and the CLI."""

    # Security
    SECRET_KEY: str = os.environ.get("SECRET_KEY", "dev-secret-change-me")

    # Database (claims saved through the server, verification history)
    SQLALCHEMY_DATABASE_URI: str = os.environ.get(
        "DATABASE_URL",
        "sqlite:///dnsclaim.db",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    # Claim files written by `generate` and POST /save-claim
    CLAIMS_DIR: str = os.environ.get("CLAIMS_DIR", "claims")

    # Upload / payload limits
    MAX_CONTENT_LENGTH: int = 1 * 1024 * 1024  # 1 MB

    # DNS resolution
    DNS_NAMESERVERS: list[str] = _split_list(
        os.environ.get("DNS_NAMESERVERS", "8.8.8.8,8.8.4.4,1.1.1.1,1.0.0.1")
    )
    DNS_TIMEOUT_SECONDS: float = float(os.environ.get("DNS_TIMEOUT_SECONDS", "10"))
    DNS_RETRIES: int = int(os.environ.get("DNS_RETRIES", "1"))

    # Verification throttling, per domain
    RATE_LIMIT_MAX: int = int(os.environ.get("RATE_LIMIT_MAX", "10"))
    RATE_LIMIT_WINDOW_SECONDS: float = float(os.environ.get("RATE_LIMIT_WINDOW_SECONDS", "60"))

    # Claim protocol constants
    MAX_CLAIMS_PER_SUBDOMAIN: int = 49
    DEFAULT_EXPIRATION_DAYS: int = int(os.environ.get("DEFAULT_EXPIRATION_DAYS", "90"))
    MAX_CLOCK_SKEW_SECONDS: int = 300
