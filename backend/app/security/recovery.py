# backend/app/security/recovery.py
"""Recovery code generation and hashing."""
import hashlib
import secrets
import string

RECOVERY_CODE_BYTES = 4  # 8 hex characters


def generate_recovery_codes(count: int) -> list[str]:
    return [secrets.token_hex(RECOVERY_CODE_BYTES) for _ in range(count)]


def normalize_recovery_code(code: str) -> str:
    return (code or "").strip().replace(" ", "").replace("-", "").lower()


def hash_recovery_code(code: str) -> str:
    """SHA-256 of the normalized code, hex encoded."""
    return hashlib.sha256(normalize_recovery_code(code).encode("utf-8")).hexdigest()


def looks_like_recovery_code(code: str) -> bool:
    normalized = normalize_recovery_code(code)
    return len(normalized) == RECOVERY_CODE_BYTES * 2 and all(
        c in string.hexdigits for c in normalized
    )
