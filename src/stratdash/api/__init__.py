"""API route aggregation.

All routers registered here get mounted in main.py under /api.

Learn: Auth is enforced per route inside the auth router (register,
login and refresh are open; everything else needs a bearer token).
Feature routers added later should be included with
dependencies=[Depends(get_current_account)] or require_admin.
"""

from fastapi import APIRouter

from stratdash.api.auth import router as auth_router
from stratdash.api.health import router as health_router

api_router = APIRouter(prefix="/api")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
