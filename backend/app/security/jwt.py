# backend/app/security/jwt.py
"""
Bearer token (JWT) minting and validation.

Every token carries a unique ``jti`` so an individual token can be revoked
before it expires (see services/revocation.py).
"""
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from jose import jwt, JWTError

from backend.app.core.config import settings
from backend.app.core.exceptions import InvalidToken

REQUIRED_CLAIMS = ("sub", "jti", "exp", "iat")


@dataclass(frozen=True)
class AccessToken:
    token: str
    jti: str
    expires_at: datetime


def create_access_token(
    subject: str | int,
    claims: dict[str, Any] | None = None,
    expires_delta: timedelta | None = None,
) -> AccessToken:
    now = datetime.now(timezone.utc)
    expire = now + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    # exp is serialized with second precision, keep expires_at consistent with it
    expire = expire.replace(microsecond=0)
    jti = uuid.uuid4().hex

    to_encode = dict(claims or {})
    to_encode.update(
        {
            "sub": str(subject),
            "jti": jti,
            "iat": int(now.timestamp()),
            "exp": int(expire.timestamp()),
            "iss": settings.JWT_ISSUER,
            "aud": settings.JWT_AUDIENCE,
        }
    )
    encoded = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return AccessToken(token=encoded, jti=jti, expires_at=expire)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Validate signature, expiry, issuer and audience.

    Raises InvalidToken on any failure; callers map it to the status code
    that fits their endpoint.
    """
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
        )
    except JWTError as exc:
        raise InvalidToken() from exc

    if any(not payload.get(claim) for claim in REQUIRED_CLAIMS):
        raise InvalidToken()
    return payload
