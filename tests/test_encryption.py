from __future__ import annotations

import pytest

from inquaire.core.encryption import EncryptionError, decrypt, encrypt, generate_encryption_key, is_encrypted


def test_encrypt_produces_salted_four_part_payload() -> None:
    first = encrypt("secret-token")
    second = encrypt("secret-token")

    assert first != second
    assert len(first.split(":")) == 4
    assert is_encrypted(first)
    assert decrypt(first) == "secret-token"


def test_decrypt_with_other_key_fails() -> None:
    sealed = encrypt("secret-token", "key-one")

    with pytest.raises(EncryptionError, match="tampered"):
        decrypt(sealed, "key-two")


def test_rejects_empty_and_malformed_values() -> None:
    with pytest.raises(EncryptionError):
        encrypt("")
    with pytest.raises(EncryptionError, match="format"):
        decrypt("not-encrypted")
    with pytest.raises(EncryptionError, match="format"):
        decrypt("a:b:c:!!!")

    assert not is_encrypted("plain text")
    assert not is_encrypted(None)
    assert len(generate_encryption_key()) == 64
