# backend/app/api/v1/endpoints/vault.py
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.api import deps
from backend.app.db.base import get_db
from backend.app.models.account import Account
from backend.app.models.vault_item import VaultItem
from backend.app.schemas.vault import VaultItemCreate, VaultItemResponse

router = APIRouter()


# The server stores envelopes as-is; it has no key to open them
@router.get("/items", response_model=List[VaultItemResponse])
async def read_vault_items(
        db: AsyncSession = Depends(get_db),
        account: Account = Depends(deps.get_current_account),
        item_type: Optional[str] = Query(None, alias="itemType"),
        skip: int = 0,
        limit: int = 100
):
    query = select(VaultItem).where(VaultItem.account_id == account.id)
    if item_type:
        query = query.where(VaultItem.item_type == item_type)

    query = query.order_by(VaultItem.id).offset(skip).limit(limit)

    result = await db.execute(query)
    return result.scalars().all()


@router.post("/items", response_model=VaultItemResponse, status_code=201)
async def create_vault_item(
        item_in: VaultItemCreate,
        db: AsyncSession = Depends(get_db),
        account: Account = Depends(deps.get_current_account),
):
    new_item = VaultItem(
        **item_in.model_dump(),
        account_id=account.id
    )
    db.add(new_item)
    await db.commit()
    await db.refresh(new_item)
    return new_item
