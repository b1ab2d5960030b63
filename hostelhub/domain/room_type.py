"""Room types offered by hostels."""

from enum import Enum


class RoomType(str, Enum):
    """Room type, also used as the booking's room preference."""

    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    DORMITORY = "dormitory"


ROOM_TYPE_VALUES = frozenset(t.value for t in RoomType)
