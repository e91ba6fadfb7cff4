"""
Key derivation from the master secret.

Two scrypt derivations with domain-separated salts turn one master secret into
an authentication proof and a vault encryption key. Knowing the proof does not
help recover the key, so the server can verify logins without being able to
read the vault.
"""
import base64
from dataclasses import dataclass

from cryptography.hazmat.primitives.kdf.scrypt import Scrypt

from custos_client.keyring import VaultKey

KEY_LENGTH = 32

# level -> (N, r, p)
SECURITY_LEVELS: dict[str, tuple[int, int, int]] = {
    "fast": (2 ** 13, 8, 1),      # ~8 MiB
    "balanced": (2 ** 14, 8, 1),  # ~16 MiB
    "strong": (2 ** 15, 8, 1),    # ~32 MiB
    "maximum": (2 ** 17, 8, 1),   # ~128 MiB
}

DEFAULT_SECURITY_LEVEL = "balanced"


@dataclass(frozen=True)
class DerivedCredentials:
    auth_proof: str
    encryption_key: VaultKey

    def __repr__(self) -> str:
        return "DerivedCredentials(auth_proof=<redacted>, encryption_key=<redacted>)"


def auth_salt(email: str) -> bytes:
    return f"{email.strip().lower()}:auth".encode("utf-8")


def encryption_salt(email: str) -> bytes:
    return f"{email.strip().lower()}:encryption".encode("utf-8")


def _scrypt(secret: bytes, salt: bytes, level: str) -> bytes:
    try:
        n, r, p = SECURITY_LEVELS[level]
    except KeyError:
        raise ValueError(f"Unsupported security level: {level}") from None
    return Scrypt(salt=salt, length=KEY_LENGTH, n=n, r=r, p=p).derive(secret)


def derive(email: str, master_secret: str, level: str = DEFAULT_SECURITY_LEVEL) -> DerivedCredentials:
    """
    Derive the authentication proof and vault key for ``email``.

    Deterministic for the same (email, secret, level); email case does not
    matter. Raises ValueError for an unknown level.
    """
    secret = master_secret.encode("utf-8")
    proof = _scrypt(secret, auth_salt(email), level)
    key = _scrypt(secret, encryption_salt(email), level)
    return DerivedCredentials(
        auth_proof=base64.b64encode(proof).decode("ascii"),
        encryption_key=VaultKey(key),
    )
