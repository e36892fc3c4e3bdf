"""
API routes and endpoints.
"""

from fastapi import APIRouter
from .v1 import cards, gates, scans

api_router = APIRouter()

api_router.include_router(scans.router, prefix="/accommodation", tags=["accommodation"])
api_router.include_router(gates.router, prefix="/gates", tags=["gates"])
api_router.include_router(cards.router, prefix="/cards", tags=["cards"])
