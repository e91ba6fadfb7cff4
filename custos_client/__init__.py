"""
Client side of the zero-knowledge protocol.

The master secret is stretched locally into an authentication proof (sent to
the server) and a vault key (kept in memory, never sent).
"""
from custos_client.api import LoginResult, VaultClient
from custos_client.envelope import decrypt, encrypt, open_item, seal_item
from custos_client.errors import ApiError, CustosClientError, EnvelopeError, KeyClearedError
from custos_client.kdf import SECURITY_LEVELS, DerivedCredentials, derive
from custos_client.keyring import VaultKey

__all__ = [
    "ApiError",
    "CustosClientError",
    "DerivedCredentials",
    "EnvelopeError",
    "KeyClearedError",
    "LoginResult",
    "SECURITY_LEVELS",
    "VaultClient",
    "VaultKey",
    "decrypt",
    "derive",
    "encrypt",
    "open_item",
    "seal_item",
]
