# backend/app/models/__init__.py
# Importing every model registers its table on Base.metadata
from backend.app.models.account import Account
from backend.app.models.refresh_token import RefreshToken
from backend.app.models.revoked_token import RevokedToken
from backend.app.models.recovery_code import RecoveryCode
from backend.app.models.vault_item import VaultItem

__all__ = ["Account", "RefreshToken", "RevokedToken", "RecoveryCode", "VaultItem"]
