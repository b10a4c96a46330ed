"""
Unit tests for dnsclaim/utils/claim_store.py and dnsclaim/utils/domain.py
"""

from __future__ import annotations

import json

import pytest

from dnsclaim.errors import InvalidClaimFile, InvalidDomain
from dnsclaim.utils.claim_store import claim_path, load_claim, save_claim, save_claim_data
from dnsclaim.utils.domain import base_subdomain, claim_label, normalize_domain, qualify


# ---------------------------------------------------------------------------
# Tests - claim files
# ---------------------------------------------------------------------------


def test_save_and_load_claim(tmp_path, make_claim):
    claim = make_claim()
    path = save_claim(tmp_path / "claims", claim)

    assert path == tmp_path / "claims" / "1a2b3c4d.json"
    data = json.loads(path.read_text())
    assert data["forms_domain"] == "example.com"
    assert path.read_text().startswith("{\n  ")
    assert load_claim(path) == claim


def test_save_claim_data_rejects_invalid_id(tmp_path, make_claim):
    data = make_claim().to_claim_file()
    data["forms_unique_id"] = "../escape"
    with pytest.raises(InvalidClaimFile):
        save_claim_data(tmp_path, data)
    assert list(tmp_path.iterdir()) == []


def test_load_missing_file(tmp_path):
    with pytest.raises(InvalidClaimFile):
        load_claim(tmp_path / "missing.json")


def test_load_invalid_json(tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json")
    with pytest.raises(InvalidClaimFile):
        load_claim(path)


def test_load_incomplete_file(tmp_path):
    path = tmp_path / "partial.json"
    path.write_text(json.dumps({"forms_unique_id": "1a2b3c4d"}))
    with pytest.raises(InvalidClaimFile, match="missing field"):
        load_claim(path)


def test_claim_path():
    assert str(claim_path("claims", "1a2b3c4d")).endswith("1a2b3c4d.json")


# ---------------------------------------------------------------------------
# Tests - domain helpers
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("Example.COM", "example.com"),
        ("example.com.", "example.com"),
        ("  sub.example.co.uk ", "sub.example.co.uk"),
        ("xn--bcher-kva.example", "xn--bcher-kva.example"),
    ],
)
def test_normalize_domain(raw, expected):
    assert normalize_domain(raw) == expected


@pytest.mark.parametrize("raw", ["", "localhost", "exa mple.com", "-bad.com", "a" * 64 + ".com", "example.c"])
def test_normalize_domain_rejects(raw):
    with pytest.raises(InvalidDomain):
        normalize_domain(raw)


def test_claim_labels():
    assert claim_label(1) == "_aw"
    assert claim_label(2) == "_aw2"
    assert base_subdomain("example.com") == "_aw.example.com"
    assert qualify("_aw2", "example.com") == "_aw2.example.com"
    assert qualify("_aw2.example.com.", "example.com") == "_aw2.example.com"
