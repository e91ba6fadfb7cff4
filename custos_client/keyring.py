"""Scoped in-memory holder for the vault encryption key."""
from custos_client.errors import KeyClearedError


class VaultKey:
    """
    Owns the 32 raw key bytes in a mutable buffer.

    clear() overwrites the buffer with zeros; every later use raises
    KeyClearedError. Use it as a context manager to clear on exit.
    """

    __slots__ = ("_buffer",)

    def __init__(self, key: bytes):
        if len(key) != 32:
            raise ValueError("Vault key must be 32 bytes")
        self._buffer: bytearray | None = bytearray(key)

    @property
    def cleared(self) -> bool:
        return self._buffer is None

    def material(self) -> bytes:
        """Copy of the key bytes for a single cipher operation."""
        if self._buffer is None:
            raise KeyClearedError("Vault key has been cleared")
        return bytes(self._buffer)

    def clear(self) -> None:
        if self._buffer is None:
            return
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self._buffer = None

    def __enter__(self) -> "VaultKey":
        if self._buffer is None:
            raise KeyClearedError("Vault key has been cleared")
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.clear()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, VaultKey):
            return NotImplemented
        return self.material() == other.material()

    __hash__ = None

    def __repr__(self) -> str:
        return "VaultKey(<cleared>)" if self._buffer is None else "VaultKey(<redacted>)"
