"""Reversible obfuscation for secrets kept in configuration and in transit.

Tokens are sealed with Fernet under a key derived from a shared passphrase, so
the setup page and the gateway can exchange them without exposing them in
plain text. Anyone holding the passphrase can reveal them.
"""
from __future__ import annotations

import base64
from functools import lru_cache

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

DEFAULT_PASSPHRASE = "onedrive-vercel-index"


@lru_cache(maxsize=8)
def _fernet(passphrase: str) -> Fernet:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=b"odindex-obfuscation",
        info=b"token",
    )
    return Fernet(base64.urlsafe_b64encode(hkdf.derive(passphrase.encode("utf-8"))))


def obfuscate_token(token: str, passphrase: str = DEFAULT_PASSPHRASE) -> str:
    """Return the obfuscated form of ``token``."""

    return _fernet(passphrase).encrypt(token.encode("utf-8")).decode("ascii")


def reveal_obfuscated_token(obfuscated: object, passphrase: str = DEFAULT_PASSPHRASE) -> str | None:
    """Return the original token, or ``None`` when ``obfuscated`` cannot be revealed."""

    if not isinstance(obfuscated, str) or not obfuscated:
        return None
    try:
        return _fernet(passphrase).decrypt(obfuscated.encode("utf-8")).decode("utf-8")
    except (InvalidToken, UnicodeError):
        return None
