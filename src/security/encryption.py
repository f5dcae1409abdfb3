"""Symmetric encryption for tenant tokens and GA4 secrets (Fernet)."""

from __future__ import annotations

from cryptography.fernet import Fernet, InvalidToken


class EncryptionError(Exception):
    pass


def _fernet(key: str) -> Fernet:
    if not key:
        raise EncryptionError("Encryption key is not configured")
    try:
        return Fernet(key.encode("utf-8"))
    except (ValueError, TypeError) as exc:
        raise EncryptionError("Encryption key is not a valid Fernet key") from exc


def encrypt(plaintext: str, key: str) -> str:
    return _fernet(key).encrypt(plaintext.encode("utf-8")).decode("utf-8")


def decrypt(ciphertext: str, key: str) -> str:
    try:
        return _fernet(key).decrypt(ciphertext.encode("utf-8")).decode("utf-8")
    except InvalidToken as exc:
        raise EncryptionError("Ciphertext could not be decrypted") from exc
