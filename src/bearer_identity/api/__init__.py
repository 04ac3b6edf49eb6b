"""API route aggregation.

All routers registered here get mounted in main.py. Every route is open:
the identity endpoints are how a caller obtains credentials in the first
place.
"""

from fastapi import APIRouter

from bearer_identity.api.health import router as health_router
from bearer_identity.api.identity import router as identity_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(identity_router, tags=["identity"])
