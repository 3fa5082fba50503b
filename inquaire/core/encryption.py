"""Symmetric encryption for platform credentials stored at rest.

Values are sealed with AES-256-GCM using a key derived from the configured
secret with PBKDF2-SHA512 and a per-value random salt. The stored form is
``salt:iv:tag:ciphertext`` with every part base64 encoded.
"""

from __future__ import annotations

import base64
import binascii
import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from inquaire.core.config import get_settings

IV_LENGTH = 16
SALT_LENGTH = 64
KEY_LENGTH = 32
TAG_LENGTH = 16


class EncryptionError(Exception):
    pass


def generate_encryption_key() -> str:
    return os.urandom(KEY_LENGTH).hex()


def _derive_key(secret: str, salt: bytes, iterations: int) -> bytes:
    kdf = PBKDF2HMAC(algorithm=hashes.SHA512(), length=KEY_LENGTH, salt=salt, iterations=iterations)
    return kdf.derive(secret.encode("utf-8"))


def _resolve(secret: str | None, iterations: int | None) -> tuple[str, int]:
    settings = get_settings()
    return secret if secret is not None else settings.encryption_key, iterations or settings.encryption_kdf_iterations


def encrypt(plaintext: str, secret: str | None = None, *, iterations: int | None = None) -> str:
    key_material, rounds = _resolve(secret, iterations)
    if not plaintext:
        raise EncryptionError("Cannot encrypt empty string")
    if not key_material:
        raise EncryptionError("Encryption key is required")

    salt = os.urandom(SALT_LENGTH)
    iv = os.urandom(IV_LENGTH)
    sealed = AESGCM(_derive_key(key_material, salt, rounds)).encrypt(iv, plaintext.encode("utf-8"), None)
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return ":".join(base64.b64encode(part).decode("ascii") for part in (salt, iv, tag, ciphertext))


def decrypt(payload: str, secret: str | None = None, *, iterations: int | None = None) -> str:
    key_material, rounds = _resolve(secret, iterations)
    if not payload:
        raise EncryptionError("Cannot decrypt empty string")
    if not key_material:
        raise EncryptionError("Decryption key is required")

    parts = payload.split(":")
    if len(parts) != 4:
        raise EncryptionError("Invalid encrypted data format")
    try:
        salt, iv, tag, ciphertext = (base64.b64decode(part, validate=True) for part in parts)
    except (binascii.Error, ValueError) as exc:
        raise EncryptionError("Invalid encrypted data format") from exc

    try:
        plaintext = AESGCM(_derive_key(key_material, salt, rounds)).decrypt(iv, ciphertext + tag, None)
    except InvalidTag as exc:
        raise EncryptionError("Decryption failed: invalid key or data has been tampered with") from exc
    return plaintext.decode("utf-8")


def is_encrypted(value: str | None) -> bool:
    if not value:
        return False
    parts = value.split(":")
    if len(parts) != 4:
        return False
    try:
        salt, iv, tag = (base64.b64decode(part, validate=True) for part in parts[:3])
    except (binascii.Error, ValueError):
        return False
    return len(salt) == SALT_LENGTH and len(iv) == IV_LENGTH and len(tag) == TAG_LENGTH
