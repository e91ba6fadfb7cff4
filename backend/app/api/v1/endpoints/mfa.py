# backend/app/api/v1/endpoints/mfa.py
"""
Two-factor authentication endpoints. All require a bearer token.

Endpoints:
- GET /mfa/setup - Start enrollment, returns secret + QR code
- POST /mfa/enable - Confirm enrollment with a code, returns recovery codes
- POST /mfa/disable - Turn MFA off (proof + code)
- POST /mfa/recovery-codes - Replace the recovery code batch
- GET /mfa/status - Enabled / pending flags and codes left
- POST /mfa/verify - Check a code without signing in
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api import deps
from backend.app.db.base import get_db
from backend.app.models.account import Account
from backend.app.schemas.auth import SuccessResponse
from backend.app.schemas.mfa import (
    MfaCodeRequest,
    MfaDisableRequest,
    MfaSetupResponse,
    MfaStatusResponse,
    MfaVerifyResponse,
    RecoveryCodesResponse,
)
from backend.app.services.mfa import MfaEnroller

router = APIRouter()


@router.get("/setup", response_model=MfaSetupResponse)
async def setup_mfa(
        db: AsyncSession = Depends(get_db),
        mfa: MfaEnroller = Depends(deps.get_mfa),
        account: Account = Depends(deps.get_current_account),
):
    setup = await mfa.begin_enrollment(account)
    await db.commit()
    return MfaSetupResponse.model_validate(setup)


@router.post("/enable", response_model=RecoveryCodesResponse)
async def enable_mfa(
        request: MfaCodeRequest,
        db: AsyncSession = Depends(get_db),
        mfa: MfaEnroller = Depends(deps.get_mfa),
        account: Account = Depends(deps.get_current_account),
):
    codes = await mfa.confirm_enrollment(account, request.code)
    await db.commit()
    return RecoveryCodesResponse(recovery_codes=codes)


@router.post("/disable", response_model=SuccessResponse)
async def disable_mfa(
        request: MfaDisableRequest,
        db: AsyncSession = Depends(get_db),
        mfa: MfaEnroller = Depends(deps.get_mfa),
        account: Account = Depends(deps.get_current_account),
):
    await mfa.disable(account, request.proof, request.code)
    await db.commit()
    return SuccessResponse()


@router.post("/recovery-codes", response_model=RecoveryCodesResponse)
async def regenerate_recovery_codes(
        db: AsyncSession = Depends(get_db),
        mfa: MfaEnroller = Depends(deps.get_mfa),
        account: Account = Depends(deps.get_current_account),
):
    codes = await mfa.regenerate_recovery_codes(account)
    await db.commit()
    return RecoveryCodesResponse(recovery_codes=codes)


@router.get("/status", response_model=MfaStatusResponse)
async def mfa_status(
        mfa: MfaEnroller = Depends(deps.get_mfa),
        account: Account = Depends(deps.get_current_account),
):
    return MfaStatusResponse.model_validate(mfa.status(account))


@router.post("/verify", response_model=MfaVerifyResponse)
async def verify_mfa(
        request: MfaCodeRequest,
        db: AsyncSession = Depends(get_db),
        mfa: MfaEnroller = Depends(deps.get_mfa),
        account: Account = Depends(deps.get_current_account),
):
    """A matching recovery code is consumed, exactly as at login."""
    outcome = await mfa.verify(account, request.code)
    await db.commit()
    return MfaVerifyResponse(valid=outcome.ok, method=outcome.value)
