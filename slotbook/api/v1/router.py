"""
API v1 router setup
Organized into: public (slug-addressed) and dashboard (JWT) routes
"""
from fastapi import APIRouter

from slotbook.api.v1.public import booking
from slotbook.api.v1.dashboard import appointments, availability, business, notifications, services

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (No authentication required)
# ============================================================================
api_v1_router.include_router(
    booking.router,
    # No prefix needed - booking.router already has "/public/b/{slug}" prefix
    tags=["Public"]
)

# ============================================================================
# DASHBOARD ROUTES (JWT authentication required)
# ============================================================================
for dashboard_router in (
        business.router,
        availability.router,
        appointments.router,
        services.router,
        notifications.router,
):
    api_v1_router.include_router(
        dashboard_router,
        prefix="/businesses/me",
        tags=["Dashboard"]
    )


# ============================================================================
# ROOT ENDPOINT - API Info
# ============================================================================
@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """
    API information and available endpoints.
    """
    return {
        "version": "1.0",
        "authentication": {
            "public": "No authentication required",
            "dashboard": "JWT Bearer token required (owner, manager or staff)"
        }
    }
