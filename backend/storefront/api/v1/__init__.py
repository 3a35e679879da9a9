"""Versioned API router."""

from fastapi import APIRouter

from . import checkout, delivery, health, pickup

router = APIRouter()
router.include_router(health.router, prefix="/health", tags=["health"])
router.include_router(delivery.router)
router.include_router(pickup.router)
router.include_router(checkout.router)

__all__ = ["router"]
