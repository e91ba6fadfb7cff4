# backend/app/security/hashing.py
"""
Slow hashing of authentication proofs.

The client already stretched the master secret with scrypt; the server adds
bcrypt on top so a database leak does not hand out replayable proofs.
"""
import hashlib

import bcrypt

from backend.app.core.config import settings


def _prepare_for_bcrypt(value: str) -> bytes:
    """
    Bcrypt only looks at the first 72 bytes, so longer inputs are
    pre-hashed with SHA-256.
    """
    value_bytes = value.encode("utf-8")
    if len(value_bytes) > 72:
        return hashlib.sha256(value_bytes).hexdigest().encode("utf-8")
    return value_bytes


def get_password_hash(auth_proof: str) -> str:
    salt = bcrypt.gensalt(rounds=settings.BCRYPT_ROUNDS)
    return bcrypt.hashpw(_prepare_for_bcrypt(auth_proof), salt).decode("utf-8")


def verify_password(auth_proof: str, hashed: str) -> bool:
    """Constant-time check of a proof against its stored hash."""
    try:
        return bcrypt.checkpw(_prepare_for_bcrypt(auth_proof), hashed.encode("utf-8"))
    except (ValueError, TypeError):
        return False
