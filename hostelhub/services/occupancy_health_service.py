"""Occupancy health check service (read-only validation)."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import and_, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hostelhub.domain.booking_state import BookingStatus
from hostelhub.models.booking import Booking
from hostelhub.models.hostel import Bed, Room


class HealthStatus(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"


CONFIRMED = BookingStatus.CONFIRMED.value


class OccupancyHealthService:
    """Read-only validator for bed, room and booking consistency."""

    async def run_all_checks(self, db: AsyncSession, hostel_id: UUID | None = None) -> dict[str, Any]:
        """Run all occupancy checks, optionally for a single hostel."""
        checks = []
        overall_status = HealthStatus.OK

        check_methods = [
            self._check_room_aggregates,
            self._check_room_capacity,
            self._check_occupied_beds_have_booking,
            self._check_confirmed_bookings_hold_bed,
            self._check_duplicate_bed_references,
        ]

        for check_method in check_methods:
            result = await check_method(db, hostel_id)
            checks.append(result)

            if result["status"] == HealthStatus.ERROR:
                overall_status = HealthStatus.ERROR
            elif result["status"] == HealthStatus.WARNING and overall_status != HealthStatus.ERROR:
                overall_status = HealthStatus.WARNING

        counts = await self._get_counts(db, hostel_id)

        return {
            "status": overall_status,
            "checks": checks,
            "counts": counts,
            "timestamp": datetime.now(UTC).isoformat(),
        }

    def _ok(self, name: str, message: str) -> dict:
        return {"name": name, "status": HealthStatus.OK, "message": message, "details": {}}

    async def _check_room_aggregates(self, db: AsyncSession, hostel_id: UUID | None) -> dict:
        """A room's occupied count must equal its occupied beds."""
        actual = (
            select(func.count(Bed.id))
            .where(Bed.room_id == Room.id, Bed.is_occupied.is_(True))
            .correlate(Room)
            .scalar_subquery()
        )
        query = select(Room.id, Room.room_number, Room.occupied_beds, actual.label("actual")).where(
            Room.occupied_beds != actual
        )
        if hostel_id:
            query = query.where(Room.hostel_id == hostel_id)
        drifted = (await db.execute(query)).all()

        if drifted:
            return {
                "name": "room_aggregates",
                "status": HealthStatus.ERROR,
                "message": f"{len(drifted)} room(s) have an occupied count that disagrees with their beds",
                "details": {
                    "rooms": [
                        {"room_id": str(r[0]), "room_number": r[1], "recorded": r[2], "actual": r[3]}
                        for r in drifted
                    ]
                },
            }
        return self._ok("room_aggregates", "All room counts match their beds")

    async def _check_room_capacity(self, db: AsyncSession, hostel_id: UUID | None) -> dict:
        """No room may record more occupants than it has beds."""
        capacity = (
            select(func.count(Bed.id)).where(Bed.room_id == Room.id).correlate(Room).scalar_subquery()
        )
        query = select(func.count()).select_from(Room).where(Room.occupied_beds > capacity)
        if hostel_id:
            query = query.where(Room.hostel_id == hostel_id)
        over = (await db.execute(query)).scalar() or 0

        if over > 0:
            return {
                "name": "room_capacity",
                "status": HealthStatus.ERROR,
                "message": f"{over} room(s) record more occupants than beds",
                "details": {"overbooked_rooms": over},
            }
        return self._ok("room_capacity", "No room is over capacity")

    async def _check_occupied_beds_have_booking(self, db: AsyncSession, hostel_id: UUID | None) -> dict:
        """Every occupied bed must be held by a confirmed booking pointing at it."""
        query = select(Bed.id).where(
            Bed.is_occupied.is_(True),
            ~exists(
                select(Booking.id).where(
                    Booking.id == Bed.booking_id,
                    Booking.bed_id == Bed.id,
                    Booking.status == CONFIRMED,
                )
            ),
        )
        if hostel_id:
            query = query.where(Bed.hostel_id == hostel_id)
        orphaned = (await db.execute(query)).scalars().all()

        if orphaned:
            return {
                "name": "occupied_beds_have_booking",
                "status": HealthStatus.ERROR,
                "message": f"{len(orphaned)} occupied bed(s) without a confirmed booking",
                "details": {"bed_ids": [str(b) for b in orphaned]},
            }
        return self._ok("occupied_beds_have_booking", "Every occupied bed has a confirmed booking")

    async def _check_confirmed_bookings_hold_bed(self, db: AsyncSession, hostel_id: UUID | None) -> dict:
        """Every confirmed booking must hold an occupied bed that points back at it."""
        query = select(Booking.id).where(
            Booking.status == CONFIRMED,
            or_(
                Booking.bed_id.is_(None),
                ~exists(
                    select(Bed.id).where(
                        and_(
                            Bed.id == Booking.bed_id,
                            Bed.booking_id == Booking.id,
                            Bed.is_occupied.is_(True),
                        )
                    )
                ),
            ),
        )
        if hostel_id:
            query = query.where(Booking.hostel_id == hostel_id)
        missing = (await db.execute(query)).scalars().all()

        if missing:
            return {
                "name": "confirmed_bookings_hold_bed",
                "status": HealthStatus.ERROR,
                "message": f"{len(missing)} confirmed booking(s) without a matching bed",
                "details": {"booking_ids": [str(b) for b in missing]},
            }
        return self._ok("confirmed_bookings_hold_bed", "Every confirmed booking holds its bed")

    async def _check_duplicate_bed_references(self, db: AsyncSession, hostel_id: UUID | None) -> dict:
        """No bed may be claimed by more than one confirmed booking."""
        query = (
            select(Booking.bed_id, func.count().label("cnt"))
            .where(Booking.status == CONFIRMED, Booking.bed_id.isnot(None))
            .group_by(Booking.bed_id)
            .having(func.count() > 1)
        )
        if hostel_id:
            query = query.where(Booking.hostel_id == hostel_id)
        duplicates = (await db.execute(query)).all()

        if duplicates:
            return {
                "name": "duplicate_bed_references",
                "status": HealthStatus.ERROR,
                "message": f"{len(duplicates)} bed(s) claimed by several confirmed bookings",
                "details": {"bed_ids": [str(d[0]) for d in duplicates]},
            }
        return self._ok("duplicate_bed_references", "No bed is claimed twice")

    async def _get_counts(self, db: AsyncSession, hostel_id: UUID | None) -> dict[str, int]:
        bed_query = select(
            func.count(Bed.id),
            func.count(Bed.id).filter(Bed.is_occupied.is_(True)),
        )
        booking_query = select(Booking.status, func.count()).group_by(Booking.status)
        if hostel_id:
            bed_query = bed_query.where(Bed.hostel_id == hostel_id)
            booking_query = booking_query.where(Booking.hostel_id == hostel_id)

        total_beds, occupied_beds = (await db.execute(bed_query)).one()
        counts = {"beds": total_beds or 0, "occupied_beds": occupied_beds or 0}
        for status, count in (await db.execute(booking_query)).all():
            counts[f"{status}_bookings"] = count
        return counts


occupancy_health_service = OccupancyHealthService()
