"""API v1 router - includes all v1 endpoints."""

from fastapi import APIRouter

from app.api.v1.endpoints import auth, entitlements, health, orders, pdfs, search

api_router = APIRouter()

api_router.include_router(health.router, prefix="", tags=["Health"])
api_router.include_router(auth.router, prefix="/auth", tags=["Auth"])
api_router.include_router(pdfs.router, prefix="/pdfs", tags=["PDFs"])
api_router.include_router(search.router, prefix="", tags=["Search"])
api_router.include_router(entitlements.router, prefix="/entitlements", tags=["Entitlements"])
api_router.include_router(orders.router, prefix="/orders", tags=["Orders"])
