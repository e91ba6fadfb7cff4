# backend/app/api/v1/endpoints/auth.py
"""
Authentication endpoints.

Endpoints:
- POST /auth/register - Create an account, returns a token bundle
- POST /auth/login - Proof (+ optional MFA code) for a token bundle
- POST /auth/refresh - Rotate a refresh token
- POST /auth/logout - Best-effort revocation of the current session
- POST /auth/change-password - Replace the proof, revokes every session
- POST /auth/security-level - Change KDF tier together with the proof
- GET /auth/security-level/{email} - KDF tier to use before login (public)
- GET /auth/me - Current account profile
- POST /auth/revoke-all - Sign out everywhere
"""
from typing import Any, Optional, Union

from fastapi import APIRouter, Depends

from backend.app.api import deps
from backend.app.models.account import Account
from backend.app.schemas.auth import (
    AccountProfile,
    ChangePasswordRequest,
    ChangeSecurityLevelRequest,
    LoginRequest,
    LogoutRequest,
    MfaRequiredResponse,
    RefreshRequest,
    RegisterRequest,
    RevokeAllResponse,
    SecurityLevelResponse,
    SuccessResponse,
    TokenResponse,
)
from backend.app.services.credentials import CredentialStore, normalize_email
from backend.app.services.sessions import MfaRequired, SessionOrchestrator
from backend.app.services.tokens import TokenPair

router = APIRouter()


def _token_response(pair: TokenPair) -> TokenResponse:
    return TokenResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        token_type=pair.token_type,
        expires_at=pair.expires_at,
        profile=AccountProfile.model_validate(pair.account),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
        request: RegisterRequest,
        sessions: SessionOrchestrator = Depends(deps.get_sessions),
):
    pair = await sessions.register(
        request.email,
        request.auth_proof,
        display_name=request.display_name,
        security_level=request.security_level,
    )
    return _token_response(pair)


@router.post("/login", response_model=Union[TokenResponse, MfaRequiredResponse])
async def login(
        request: LoginRequest,
        sessions: SessionOrchestrator = Depends(deps.get_sessions),
):
    """
    Exchange an authentication proof for a token bundle.

    When the account has MFA enabled and no code was sent, the answer is
    ``{"requiresMfa": true}`` with status 200 and no tokens.
    """
    result = await sessions.login(request.email, request.auth_proof, request.mfa_code)
    if isinstance(result, MfaRequired):
        return MfaRequiredResponse()
    return _token_response(result)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
        request: RefreshRequest,
        sessions: SessionOrchestrator = Depends(deps.get_sessions),
):
    pair = await sessions.refresh(request.refresh_token or "")
    return _token_response(pair)


@router.post("/logout", response_model=SuccessResponse)
async def logout(
        request: LogoutRequest,
        sessions: SessionOrchestrator = Depends(deps.get_sessions),
        claims: Optional[dict[str, Any]] = Depends(deps.get_optional_claims),
):
    await sessions.logout(claims, request.refresh_token)
    return SuccessResponse()


@router.post("/change-password", response_model=SuccessResponse)
async def change_password(
        request: ChangePasswordRequest,
        sessions: SessionOrchestrator = Depends(deps.get_sessions),
        account: Account = Depends(deps.get_current_account),
        claims: dict[str, Any] = Depends(deps.get_current_claims),
):
    await sessions.change_password(account, claims, request.old_proof, request.new_proof)
    return SuccessResponse()


@router.post("/security-level", response_model=SuccessResponse)
async def change_security_level(
        request: ChangeSecurityLevelRequest,
        sessions: SessionOrchestrator = Depends(deps.get_sessions),
        account: Account = Depends(deps.get_current_account),
        claims: dict[str, Any] = Depends(deps.get_current_claims),
):
    await sessions.change_security_level(
        account, claims, request.old_proof, request.new_proof, request.security_level
    )
    return SuccessResponse()


@router.get("/security-level/{email}", response_model=SecurityLevelResponse)
async def get_security_level(
        email: str,
        credentials: CredentialStore = Depends(deps.get_credentials),
):
    """Public: clients need the KDF tier before they can derive a proof."""
    level = await credentials.get_security_level(email)
    return SecurityLevelResponse(email=normalize_email(email), security_level=level)


@router.get("/me", response_model=AccountProfile)
async def read_me(account: Account = Depends(deps.get_current_account)):
    return account


@router.post("/revoke-all", response_model=RevokeAllResponse)
async def revoke_all(
        sessions: SessionOrchestrator = Depends(deps.get_sessions),
        account: Account = Depends(deps.get_current_account),
        claims: dict[str, Any] = Depends(deps.get_current_claims),
):
    revoked = await sessions.sign_out_everywhere(account, claims)
    return RevokeAllResponse(revoked=revoked)
