"""Signer blueprint - endpoint the browser signing page posts claims to."""

from __future__ import annotations

from flask import Blueprint

bp: Blueprint = Blueprint("signer", __name__)

from dnsclaim.signer import routes  # noqa: E402, F401
