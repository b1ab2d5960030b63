"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from hostelhub.api.v1 import bookings, hostels, payments

api_router = APIRouter()

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Hostel inventory
api_router.include_router(hostels.router, prefix="/hostels", tags=["Hostels"])

# Advance payments
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])
