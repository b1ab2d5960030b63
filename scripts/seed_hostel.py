#!/usr/bin/env python3
"""Create a hostel with rooms and beds for local testing."""

import asyncio
from uuid import UUID, uuid4

from hostelhub.database import AsyncSessionLocal, init_db
from hostelhub.models.hostel import Hostel, HostelStaff
from hostelhub.services.allocation_service import AllocationEngine
from hostelhub.core.locks import LocalLockProvider

# room_number -> (floor, room_type, beds)
DEFAULT_ROOMS = {
    "101": (1, "single", 1),
    "102": (1, "double", 2),
    "201": (2, "triple", 3),
    "202": (2, "dormitory", 6),
}


async def seed_hostel(
    owner_id: UUID,
    name: str = "Sunrise Boys Hostel",
    city: str = "Pune",
    advance: int = 500000,
    staff_id: UUID | None = None,
) -> None:
    """Create the hostel and its inventory."""
    await init_db()
    engine = AllocationEngine(LocalLockProvider())

    async with AsyncSessionLocal() as session:
        hostel = Hostel(owner_id=owner_id, name=name, city=city, advance_payment_amount=advance)
        session.add(hostel)
        if staff_id:
            session.add(HostelStaff(hostel=hostel, user_id=staff_id))
        await session.commit()

        for room_number, (floor, room_type, beds) in DEFAULT_ROOMS.items():
            await engine.add_room(
                session,
                hostel.id,
                room_number=room_number,
                room_type=room_type,
                bed_count=beds,
                floor_number=floor,
            )

        print(f"Created hostel: {hostel.name} ({hostel.id})")
        print(f"Owner: {owner_id}")
        print(f"Rooms: {', '.join(DEFAULT_ROOMS)}")


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Seed a hostel with rooms and beds")
    parser.add_argument("--owner-id", default=None, help="Owner UUID (random if omitted)")
    parser.add_argument("--staff-id", default=None, help="Staff member UUID")
    parser.add_argument("--name", default="Sunrise Boys Hostel", help="Hostel name")
    parser.add_argument("--city", default="Pune", help="City")
    parser.add_argument("--advance", type=int, default=500000, help="Advance amount in paise")

    args = parser.parse_args()

    asyncio.run(
        seed_hostel(
            owner_id=UUID(args.owner_id) if args.owner_id else uuid4(),
            name=args.name,
            city=args.city,
            advance=args.advance,
            staff_id=UUID(args.staff_id) if args.staff_id else None,
        )
    )
