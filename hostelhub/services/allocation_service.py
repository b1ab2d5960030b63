"""Allocation engine: binds bookings to free beds and releases them again.

Bed occupancy flags and room aggregate counts are only ever changed here,
and only inside :meth:`AllocationEngine.transaction`, which holds the
hostel lock (plus a ``FOR UPDATE`` read of the hostel row) until the
surrounding database transaction has committed or rolled back.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from sqlalchemy import and_, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hostelhub.core.exceptions import NoCapacityError, NotFoundError, ValidationError
from hostelhub.core.locks import LockProvider, hostel_lock_key
from hostelhub.models.hostel import Bed, Hostel, Room, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Allocation:
    """Room and bed chosen for a booking."""

    room_id: UUID
    bed_id: UUID
    room_number: str
    bed_number: str
    floor_number: int
    room_type: str


class InventoryTransaction:
    """Occupancy mutations for one hostel.

    Only handed out by :meth:`AllocationEngine.transaction`; never construct it
    directly or the hostel lock is bypassed.
    """

    def __init__(self, db: AsyncSession, hostel_id: UUID, allow_room_type_fallback: bool = True) -> None:
        self.db = db
        self.hostel_id = hostel_id
        self.allow_room_type_fallback = allow_room_type_fallback

    async def _first_free_bed(
        self, room_type: str | None, floor_number: int | None = None
    ) -> tuple[Bed, Room] | None:
        query = (
            select(Bed, Room)
            .join(Room, Bed.room_id == Room.id)
            .where(
                Bed.hostel_id == self.hostel_id,
                Bed.is_occupied.is_(False),
                Bed.is_active.is_(True),
                Room.is_active.is_(True),
            )
            .order_by(Room.room_number, Bed.bed_number)
            .limit(1)
            .execution_options(populate_existing=True)
        )
        if room_type:
            query = query.where(Room.room_type == room_type)
        if floor_number is not None:
            query = query.where(Room.floor_number == floor_number)

        row = (await self.db.execute(query)).first()
        if row is None:
            return None
        return row[0], row[1]

    async def _find_bed(
        self, room_type_preference: str | None, floor_preference: int | None = None
    ) -> tuple[Bed, Room] | None:
        """First free bed, trying the preferred floor before the rest of the hostel."""
        searches = []
        if floor_preference is not None:
            searches.append((room_type_preference, floor_preference))
        searches.append((room_type_preference, None))
        if room_type_preference and self.allow_room_type_fallback:
            if floor_preference is not None:
                searches.append((None, floor_preference))
            searches.append((None, None))

        for room_type, floor_number in searches:
            found = await self._first_free_bed(room_type, floor_number)
            if found is not None:
                if room_type != room_type_preference:
                    logger.info(
                        f"No free {room_type_preference} bed in hostel {self.hostel_id}, "
                        f"falling back to room type {found[1].room_type}"
                    )
                return found
        return None

    async def _occupy(self, bed: Bed, room: Room, booking_id: UUID) -> Allocation:
        bed.is_occupied = True
        bed.booking_id = booking_id
        bed.occupied_from = utcnow()
        room.occupied_beds = room.occupied_beds + 1
        await self.db.flush()

        logger.info(
            f"Reserved bed {room.room_number}/{bed.bed_number} ({bed.id}) "
            f"in hostel {self.hostel_id} for booking {booking_id}"
        )
        return Allocation(
            room_id=room.id,
            bed_id=bed.id,
            room_number=room.room_number,
            bed_number=bed.bed_number,
            floor_number=room.floor_number,
            room_type=room.room_type,
        )

    async def reserve(
        self,
        room_type_preference: str | None,
        booking_id: UUID,
        floor_preference: int | None = None,
    ) -> Allocation:
        """Occupy the first free bed, preferring the requested room type and floor.

        Raises:
            NoCapacityError: No free bed anywhere in the hostel (or none of the
                requested type when fallback is disabled).
        """
        found = await self._find_bed(room_type_preference, floor_preference)
        if found is None:
            raise NoCapacityError(f"No beds available in hostel {self.hostel_id}")

        bed, room = found
        return await self._occupy(bed, room, booking_id)

    async def transfer(
        self,
        booking_id: UUID,
        from_bed_id: UUID,
        to_bed_id: UUID | None = None,
        room_type_preference: str | None = None,
        floor_preference: int | None = None,
    ) -> Allocation:
        """Move a booking from the bed it holds to another free bed.

        With ``to_bed_id`` the named bed is taken, otherwise the first free bed
        matching the preferences. The old bed is released and the new one
        occupied in the caller's transaction, so a failure leaves both as they
        were.
        """
        current = await self.db.scalar(
            select(Bed).where(Bed.id == from_bed_id).execution_options(populate_existing=True)
        )
        if current is None:
            raise NotFoundError("Bed", str(from_bed_id))
        if current.hostel_id != self.hostel_id:
            raise ValidationError(f"Bed {from_bed_id} does not belong to hostel {self.hostel_id}")
        if not current.is_occupied or current.booking_id != booking_id:
            raise ValidationError(f"Bed {from_bed_id} is not held by booking {booking_id}")

        if to_bed_id is not None:
            if to_bed_id == from_bed_id:
                raise ValidationError("The booking already holds this bed")
            row = (
                await self.db.execute(
                    select(Bed, Room)
                    .join(Room, Bed.room_id == Room.id)
                    .where(Bed.id == to_bed_id)
                    .execution_options(populate_existing=True)
                )
            ).first()
            if row is None:
                raise NotFoundError("Bed", str(to_bed_id))
            target, target_room = row
            if target.hostel_id != self.hostel_id:
                raise ValidationError(f"Bed {to_bed_id} does not belong to hostel {self.hostel_id}")
            if target.is_occupied or not target.is_active or not target_room.is_active:
                raise NoCapacityError(f"Bed {to_bed_id} is not available")
        else:
            found = await self._find_bed(room_type_preference, floor_preference)
            if found is None:
                raise NoCapacityError(f"No other beds available in hostel {self.hostel_id}")
            target, target_room = found

        await self.release(from_bed_id)
        allocation = await self._occupy(target, target_room, booking_id)
        logger.info(f"Transferred booking {booking_id} from bed {from_bed_id} to bed {allocation.bed_id}")
        return allocation

    async def release(self, bed_id: UUID) -> bool:
        """Free a bed. Returns False (and changes nothing) if it was already free."""
        bed = await self.db.scalar(
            select(Bed).where(Bed.id == bed_id).execution_options(populate_existing=True)
        )
        if bed is None:
            raise NotFoundError("Bed", str(bed_id))
        if bed.hostel_id != self.hostel_id:
            raise ValidationError(f"Bed {bed_id} does not belong to hostel {self.hostel_id}")

        if not bed.is_occupied:
            logger.info(f"Bed {bed_id} already free, nothing to release")
            return False

        room = await self.db.get(Room, bed.room_id, populate_existing=True)
        previous_booking = bed.booking_id
        bed.is_occupied = False
        bed.booking_id = None
        bed.occupied_from = None
        room.occupied_beds = room.occupied_beds - 1
        await self.db.flush()

        logger.info(
            f"Released bed {room.room_number}/{bed.bed_number} ({bed.id}) "
            f"held by booking {previous_booking}"
        )
        return True

    async def add_room(
        self,
        room_number: str,
        room_type: str,
        bed_count: int,
        floor_number: int = 0,
        monthly_rent: int = 0,
    ) -> Room:
        """Add a room with ``bed_count`` free beds numbered 01, 02, ..."""
        existing = await self.db.scalar(
            select(Room.id).where(Room.hostel_id == self.hostel_id, Room.room_number == room_number)
        )
        if existing is not None:
            raise ValidationError(f"Room {room_number} already exists in this hostel")

        room = Room(
            hostel_id=self.hostel_id,
            room_number=room_number,
            floor_number=floor_number,
            room_type=room_type,
            monthly_rent=monthly_rent,
            occupied_beds=0,
            beds=[
                Bed(hostel_id=self.hostel_id, bed_number=f"{n:02d}", is_occupied=False)
                for n in range(1, bed_count + 1)
            ],
        )
        self.db.add(room)
        await self.db.flush()
        logger.info(f"Added {room_type} room {room_number} with {bed_count} bed(s) to hostel {self.hostel_id}")
        return room

    async def recount(self) -> list[dict[str, Any]]:
        """Recompute room aggregates from bed flags, returning the rooms that drifted."""
        counts_result = await self.db.execute(
            select(Bed.room_id, func.count(Bed.id))
            .where(Bed.hostel_id == self.hostel_id, Bed.is_occupied.is_(True))
            .group_by(Bed.room_id)
        )
        actual = {room_id: count for room_id, count in counts_result.all()}

        rooms = await self.db.scalars(
            select(Room)
            .where(Room.hostel_id == self.hostel_id)
            .order_by(Room.room_number)
            .execution_options(populate_existing=True)
        )
        corrected = []
        for room in rooms:
            occupied = actual.get(room.id, 0)
            if room.occupied_beds != occupied:
                logger.warning(
                    f"Room {room.room_number} in hostel {self.hostel_id} drifted: "
                    f"recorded {room.occupied_beds}, actual {occupied}"
                )
                corrected.append(
                    {
                        "room_id": room.id,
                        "room_number": room.room_number,
                        "recorded": room.occupied_beds,
                        "actual": occupied,
                    }
                )
                room.occupied_beds = occupied
        await self.db.flush()
        return corrected


class AllocationEngine:
    """Selects beds for bookings and maintains occupancy invariants."""

    def __init__(self, locks: LockProvider, allow_room_type_fallback: bool = True) -> None:
        self._locks = locks
        self.allow_room_type_fallback = allow_room_type_fallback

    @asynccontextmanager
    async def transaction(self, db: AsyncSession, hostel_id: UUID) -> AsyncIterator[InventoryTransaction]:
        """Hold the hostel's inventory exclusively and commit on exit.

        Any transaction already open on ``db`` is committed before waiting for
        the lock so no database locks are held while queueing. Everything done
        inside the block, inventory and booking changes alike, is committed
        together or rolled back together.
        """
        if db.in_transaction():
            await db.commit()

        async with self._locks.lock(hostel_lock_key(hostel_id)):
            try:
                hostel = await db.scalar(
                    select(Hostel).where(Hostel.id == hostel_id).with_for_update()
                )
                if hostel is None:
                    raise NotFoundError("Hostel", str(hostel_id))

                yield InventoryTransaction(db, hostel_id, self.allow_room_type_fallback)
                await db.commit()
            except Exception:
                await db.rollback()
                raise

    async def reserve(
        self,
        db: AsyncSession,
        hostel_id: UUID,
        room_type_preference: str | None,
        booking_id: UUID,
        floor_preference: int | None = None,
    ) -> Allocation:
        """Reserve a bed in its own transaction."""
        async with self.transaction(db, hostel_id) as inventory:
            return await inventory.reserve(room_type_preference, booking_id, floor_preference)

    async def release(self, db: AsyncSession, bed_id: UUID) -> bool:
        """Release a bed in its own transaction. Idempotent."""
        hostel_id = await db.scalar(select(Bed.hostel_id).where(Bed.id == bed_id))
        if hostel_id is None:
            raise NotFoundError("Bed", str(bed_id))

        async with self.transaction(db, hostel_id) as inventory:
            return await inventory.release(bed_id)

    async def recount(self, db: AsyncSession, hostel_id: UUID) -> list[dict[str, Any]]:
        """Repair room aggregates for a hostel."""
        async with self.transaction(db, hostel_id) as inventory:
            return await inventory.recount()

    async def add_room(self, db: AsyncSession, hostel_id: UUID, **room: Any) -> Room:
        """Add a room and its beds in their own transaction."""
        async with self.transaction(db, hostel_id) as inventory:
            return await inventory.add_room(**room)

    async def availability(self, db: AsyncSession, hostel_id: UUID) -> dict[str, Any]:
        """Bed availability for a hostel, overall and by room type and floor."""
        hostel = await db.get(Hostel, hostel_id)
        if hostel is None:
            raise NotFoundError("Hostel", str(hostel_id))

        result = await db.execute(
            select(
                Room.room_type,
                Room.floor_number,
                Room.occupied_beds,
                func.count(Bed.id).label("total_beds"),
            )
            .outerjoin(Bed, and_(Bed.room_id == Room.id, Bed.is_active.is_(True)))
            .where(Room.hostel_id == hostel_id, Room.is_active.is_(True))
            .group_by(Room.id, Room.room_type, Room.floor_number, Room.occupied_beds)
        )

        total_beds = occupied_beds = total_rooms = full_rooms = 0
        by_room_type: dict[str, dict[str, int]] = {}
        by_floor: dict[int, dict[str, int]] = {}
        for room_type, floor_number, occupied, total in result.all():
            total_rooms += 1
            total_beds += total
            occupied_beds += occupied
            if total and occupied >= total:
                full_rooms += 1
            for bucket in (
                by_room_type.setdefault(room_type, {"total_beds": 0, "occupied_beds": 0}),
                by_floor.setdefault(floor_number, {"total_beds": 0, "occupied_beds": 0}),
            ):
                bucket["total_beds"] += total
                bucket["occupied_beds"] += occupied

        def _summary(bucket: dict[str, int]) -> dict[str, int]:
            return {**bucket, "available_beds": bucket["total_beds"] - bucket["occupied_beds"]}

        return {
            "hostel_id": hostel_id,
            "total_rooms": total_rooms,
            "full_rooms": full_rooms,
            "available_rooms": total_rooms - full_rooms,
            "total_beds": total_beds,
            "occupied_beds": occupied_beds,
            "available_beds": total_beds - occupied_beds,
            "occupancy_rate": round(occupied_beds / total_beds * 100, 2) if total_beds else 0.0,
            "by_room_type": {k: _summary(v) for k, v in sorted(by_room_type.items())},
            "by_floor": [
                {"floor_number": floor, **_summary(bucket)} for floor, bucket in sorted(by_floor.items())
            ],
        }
