"""Database models."""

from hostelhub.models.admin import AuditLog
from hostelhub.models.booking import Booking
from hostelhub.models.hostel import Bed, Hostel, HostelStaff, Room
from hostelhub.models.payment import AdvancePayment

__all__ = [
    # Inventory
    "Hostel",
    "HostelStaff",
    "Room",
    "Bed",
    # Booking
    "Booking",
    # Payment
    "AdvancePayment",
    # Admin
    "AuditLog",
]
