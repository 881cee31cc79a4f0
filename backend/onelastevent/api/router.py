"""
Central API router that aggregates all route modules.
"""

from fastapi import APIRouter
from onelastevent.api.routes import auth, users, events, inscriptions, payments

api_router = APIRouter(prefix="/api/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(events.router)
api_router.include_router(inscriptions.router)
api_router.include_router(payments.router)
