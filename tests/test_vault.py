"""Credential vault: Fernet encryption keyed by a derived secret."""

import pytest

from app.core.errors import CredentialError
from app.core.vault import CredentialVault, derive_key


def test_ciphertext_never_contains_the_token(vault):
    blob = vault.encrypt("EAAB-secret-token")
    assert "EAAB-secret-token" not in blob
    assert vault.decrypt(blob) == "EAAB-secret-token"


def test_encryption_is_randomized(vault):
    assert vault.encrypt("same") != vault.encrypt("same")


def test_other_secret_cannot_decrypt(vault):
    blob = vault.encrypt("token")
    with pytest.raises(CredentialError):
        CredentialVault("another-secret", "test-salt").decrypt(blob)


def test_tampered_ciphertext_is_rejected(vault):
    blob = vault.encrypt("token")
    tampered = blob[:-4] + ("AAAA" if not blob.endswith("AAAA") else "BBBB")
    with pytest.raises(CredentialError):
        vault.decrypt(tampered)


def test_missing_secret_or_token_is_a_credential_error(vault):
    with pytest.raises(CredentialError):
        CredentialVault("")
    with pytest.raises(CredentialError):
        vault.encrypt("")
    with pytest.raises(CredentialError):
        vault.decrypt("")


def test_key_derivation_is_deterministic():
    assert derive_key("s", "salt") == derive_key("s", "salt")
    assert derive_key("s", "salt") != derive_key("s", "other-salt")
