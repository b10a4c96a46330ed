"""
EIP-191 personal-message signing and signer recovery.

The signed digest is keccak256("\\x19Ethereum Signed Message:\\n" + len(msg) + msg),
the same convention wallets use for "sign message" (personal_sign).
eth-account applies the prefix through ``encode_defunct``.
"""

from __future__ import annotations

import logging
import re

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_keys.exceptions import BadSignature

from dnsclaim.errors import InvalidKey, InvalidSignatureFormat, RecoveryError

logger = logging.getLogger(__name__)

SIGNATURE_RE = re.compile(r"^0x[0-9a-fA-F]{130}$")
ADDRESS_RE = re.compile(r"^0x[0-9a-fA-F]{40}$")
_PRIVATE_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def load_account(private_key: str):
    """Return the eth-account ``LocalAccount`` for a hex private key.

    Raises:
        InvalidKey: if *private_key* is not 32 bytes of hex or is out of range.
    """
    key = (private_key or "").strip()
    if not _PRIVATE_KEY_RE.match(key):
        raise InvalidKey("Private key must be 64 hex characters (optionally 0x-prefixed)")
    if not key.startswith("0x"):
        key = "0x" + key
    try:
        return Account.from_key(key)
    except (ValueError, TypeError) as exc:
        raise InvalidKey(f"Invalid private key: {exc}") from exc


def address_of(private_key: str) -> str:
    """Return the checksummed address derived from *private_key*."""
    return load_account(private_key).address


def sign(message: str, private_key: str) -> str:
    """Sign *message* with EIP-191 and return ``0x`` + 130 hex chars.

    ECDSA signing here is deterministic (RFC 6979), so the same message and
    key always produce the same signature.
    """
    account = load_account(private_key)
    signed = account.sign_message(encode_defunct(text=message))
    return "0x" + bytes(signed.signature).hex()


def recover(message: str, signature: str) -> str:
    """Recover the checksummed signer address of *message*.

    Raises:
        InvalidSignatureFormat: if *signature* is not 0x + 130 hex chars.
        RecoveryError: if r/s/v do not describe a recoverable signature.
    """
    if not isinstance(signature, str) or not SIGNATURE_RE.match(signature):
        raise InvalidSignatureFormat("Expected 0x followed by 130 hex characters")

    try:
        return Account.recover_message(
            encode_defunct(text=message),
            signature=bytes.fromhex(signature[2:]),
        )
    except BadSignature as exc:
        raise RecoveryError(f"Signature recovery failed: {exc}") from exc
    except Exception as exc:
        # eth-keys reports out-of-range r/s/v through several validation
        # exception types depending on the release.
        logger.debug("Signature recovery raised %s", type(exc).__name__)
        raise RecoveryError(f"Signature recovery failed: {exc}") from exc


def addresses_match(left: str, right: str) -> bool:
    """Compare two addresses case-insensitively."""
    return bool(left) and bool(right) and left.lower() == right.lower()
