# backend/app/schemas/mfa.py
from datetime import datetime
from typing import List, Optional

from pydantic import Field

from backend.app.schemas.base import CamelModel


class MfaSetupResponse(CamelModel):
    secret: str
    manual_entry_key: str
    provisioning_uri: str
    qr_code: str  # data:image/png;base64,...


class MfaCodeRequest(CamelModel):
    code: str = Field(..., min_length=6, max_length=32)


class MfaDisableRequest(CamelModel):
    proof: str = Field(..., min_length=1, max_length=512)
    code: str = Field(..., min_length=6, max_length=32)


class RecoveryCodesResponse(CamelModel):
    """Shown once. Only hashes are kept on the server."""
    recovery_codes: List[str]


class MfaStatusResponse(CamelModel):
    enabled: bool
    pending: bool
    enabled_at: Optional[datetime] = None
    recovery_codes_remaining: int


class MfaVerifyResponse(CamelModel):
    valid: bool
    method: str
