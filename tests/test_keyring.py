"""
Tests for the scoped vault key holder.
"""
import os

import pytest

from custos_client.envelope import encrypt
from custos_client.errors import KeyClearedError
from custos_client.keyring import VaultKey


class TestVaultKey:
    """VaultKey lifetime."""

    def test_material_round_trip(self):
        raw = os.urandom(32)

        assert VaultKey(raw).material() == raw

    def test_wrong_length_rejected(self):
        with pytest.raises(ValueError):
            VaultKey(b"too short")

    def test_clear_zeroes_buffer(self):
        key = VaultKey(os.urandom(32))
        buffer = key._buffer

        key.clear()

        assert key.cleared
        assert buffer == bytearray(32)

    def test_use_after_clear_raises(self):
        key = VaultKey(os.urandom(32))
        key.clear()

        with pytest.raises(KeyClearedError):
            key.material()
        with pytest.raises(KeyClearedError):
            encrypt({"a": 1}, key)

    def test_clear_is_idempotent(self):
        key = VaultKey(os.urandom(32))
        key.clear()
        key.clear()

        assert key.cleared

    def test_context_manager_clears(self):
        with VaultKey(os.urandom(32)) as key:
            assert not key.cleared

        assert key.cleared

    def test_repr_redacted(self):
        raw = os.urandom(32)
        key = VaultKey(raw)

        assert raw.hex() not in repr(key)
        assert "redacted" in repr(key)
