# joeyjob/api/v1/router.py
"""
API v1 router setup
Organized into: public (booking form) and dashboard routes
"""
from fastapi import APIRouter

from joeyjob.api.v1.public import availability, bookings
from joeyjob.api.v1.dashboard import bookings as dashboard_bookings, employees

api_v1_router = APIRouter()

# ============================================================================
# PUBLIC ROUTES (hosted booking forms)
# ============================================================================
api_v1_router.include_router(
    bookings.router,
    prefix="/public",
    tags=["Public"]
)

api_v1_router.include_router(
    availability.router,
    prefix="/public",
    tags=["Public"]
)

# ============================================================================
# DASHBOARD ROUTES
# ============================================================================
api_v1_router.include_router(
    dashboard_bookings.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)

api_v1_router.include_router(
    employees.router,
    prefix="/dashboard",
    tags=["Dashboard"]
)


@api_v1_router.get("/", tags=["Info"])
async def api_info():
    """API information and available endpoints."""
    return {
        "version": "1.0",
        "endpoints": {
            "public": ["/public/bookings/submit", "/public/services/{service_id}/availability"],
            "dashboard": ["/dashboard/bookings", "/dashboard/employees"],
        }
    }
