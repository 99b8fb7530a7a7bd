"""
Routers API pour trainlog.

Ce module regroupe tous les sous-routers et expose un router principal
a inclure dans l'application FastAPI.
"""
from fastapi import APIRouter

from trainlog.api.routers.reconciliation_router import router as reconciliation_router

router = APIRouter()

router.include_router(reconciliation_router)

__all__ = ["router"]
