# backend/app/schemas/auth.py
"""
Pydantic schemas for the authentication endpoints.

authProof is the base64 scrypt output derived on the client. The master
password itself never appears in any schema.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr, Field

from backend.app.schemas.base import CamelModel

SecurityLevel = Literal["fast", "balanced", "strong", "maximum"]


class RegisterRequest(CamelModel):
    email: EmailStr
    auth_proof: str = Field(..., min_length=16, max_length=512)
    display_name: Optional[str] = Field(None, max_length=100)
    security_level: Optional[SecurityLevel] = None


class LoginRequest(CamelModel):
    email: EmailStr
    auth_proof: str = Field(..., min_length=1, max_length=512)
    mfa_code: Optional[str] = Field(None, max_length=32)


class RefreshRequest(CamelModel):
    refresh_token: Optional[str] = None


class LogoutRequest(CamelModel):
    refresh_token: Optional[str] = None


class ChangePasswordRequest(CamelModel):
    old_proof: str = Field(..., min_length=1, max_length=512)
    new_proof: str = Field(..., min_length=16, max_length=512)


class ChangeSecurityLevelRequest(ChangePasswordRequest):
    security_level: SecurityLevel


class AccountProfile(CamelModel):
    """Public view of an account. Never includes hashes or MFA secrets."""
    id: int
    email: str
    display_name: str
    roles: List[str]
    security_level: str
    mfa_enabled: bool
    created_at: Optional[datetime] = None
    last_login_at: Optional[datetime] = None


class TokenResponse(CamelModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_at: datetime
    profile: AccountProfile


class MfaRequiredResponse(CamelModel):
    requires_mfa: bool = True


class SecurityLevelResponse(CamelModel):
    email: str
    security_level: str


class SuccessResponse(CamelModel):
    success: bool = True


class RevokeAllResponse(SuccessResponse):
    revoked: int
