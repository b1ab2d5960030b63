"""Booking and receipt number generation utilities."""

import random
import string
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

BOOKING_NUMBER_PREFIX = "HST"


async def generate_booking_number(db: AsyncSession) -> str:
    """Generate a unique booking number in format HST-XXXXXX.

    Args:
        db: Database session for uniqueness check

    Returns:
        str: Unique booking number like 'HST-A3B7K9'
    """
    from hostelhub.models.booking import Booking

    chars = string.ascii_uppercase + string.digits
    while True:
        random_part = "".join(random.choices(chars, k=6))
        booking_number = f"{BOOKING_NUMBER_PREFIX}-{random_part}"

        result = await db.execute(
            select(Booking.id).where(Booking.booking_number == booking_number)
        )
        if result.scalar_one_or_none() is None:
            return booking_number


def generate_receipt_number() -> str:
    """Generate a receipt number for advance payments.

    Returns:
        str: Receipt number like 'RCP-20240115-A3B7'
    """
    date_part = datetime.now().strftime("%Y%m%d")
    random_part = "".join(random.choices(string.ascii_uppercase + string.digits, k=4))
    return f"RCP-{date_part}-{random_part}"
