"""API routers for the barberpay backend."""
from fastapi import APIRouter

from . import appointments, barbers, health, payments, webhooks


def get_api_router() -> APIRouter:
    """Return the root API router."""

    api_router = APIRouter()
    api_router.include_router(health.router)
    api_router.include_router(webhooks.router)
    api_router.include_router(payments.router)
    api_router.include_router(barbers.router)
    api_router.include_router(appointments.router)
    return api_router
