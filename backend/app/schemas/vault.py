# backend/app/schemas/vault.py
from datetime import datetime
from typing import Optional

from pydantic import Field

from backend.app.schemas.base import CamelModel


class VaultItemCreate(CamelModel):
    item_type: str = Field(..., min_length=1, max_length=32)
    # base64(nonce || ciphertext) sealed on the client
    ciphertext: str = Field(..., min_length=1)


class VaultItemResponse(CamelModel):
    id: int
    item_type: str
    ciphertext: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
