# backend/app/models/vault_item.py
from sqlalchemy import Column, Integer, String, Text, ForeignKey, DateTime
from sqlalchemy.sql import func

from backend.app.db.base import Base


class VaultItem(Base):
    __tablename__ = "vault_items"

    id = Column(Integer, primary_key=True, index=True)
    account_id = Column(
        Integer,
        ForeignKey("accounts.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # --- METADATA (visible to the server) ---
    # Item type discriminator ("login", "card", "note", ...) used for filtering
    item_type = Column(String(32), nullable=False, index=True)

    # --- SECRET DATA (opaque to the server) ---
    # base64(nonce || AES-GCM ciphertext) produced by the client with a key
    # the server never receives
    ciphertext = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now()
    )
