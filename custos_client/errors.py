class CustosClientError(Exception):
    """Base class for client-side failures."""


class EnvelopeError(CustosClientError):
    """Ciphertext is malformed or failed authentication (wrong key or tampered)."""


class KeyClearedError(CustosClientError):
    """A VaultKey was used after clear()."""


class ApiError(CustosClientError):
    def __init__(self, status_code: int, detail: str):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")
