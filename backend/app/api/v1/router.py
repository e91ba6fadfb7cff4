# backend/app/api/v1/router.py
from fastapi import APIRouter
from backend.app.api.v1.endpoints import auth, mfa, vault

api_router = APIRouter()
api_router.include_router(auth.router, prefix="/auth", tags=["auth"])
api_router.include_router(mfa.router, prefix="/mfa", tags=["mfa"])
api_router.include_router(vault.router, prefix="/vault", tags=["vault"])
