"""API blueprint - JSON endpoints for claim verification and lookup."""

from __future__ import annotations

from flask import Blueprint

bp: Blueprint = Blueprint("api", __name__, url_prefix="/api/v1")

from dnsclaim.api import routes  # noqa: E402, F401
