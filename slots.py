from typing import Iterable, List, Set

from pydantic import BaseModel, ConfigDict, Field

# 1. Configuration (Bookable hours). "12" is the theory hour and is never bookable.
BOOKABLE_HOURS = ["07", "08", "09", "10", "11", "13", "14", "15", "16", "17"]
THEORY_HOUR = "12"

SLOT_CAPACITY = 4


class BookingRecord(BaseModel):
    hour: str
    student_name: str
    permanent: bool = False


class Slot(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    hour: str
    capacity: int = SLOT_CAPACITY
    booked: int
    available: int
    students: List[str]
    permanent_students: List[str] = Field(alias="permanentStudents")
    suspended: bool


def normalize_hour(value) -> str:
    """Pad an hour to two digits: 7, "7" and "07" all become "07"."""
    return str(value).strip().zfill(2)


def is_bookable(hour: str) -> bool:
    return normalize_hour(hour) in BOOKABLE_HOURS


def compute_slots(bookings: Iterable[BookingRecord], suspensions: Iterable[str]) -> List[Slot]:
    """Derive the slot grid for one day.

    Takes every booking of the day and the set of suspended hours; returns one
    Slot per bookable hour in ascending order. Rows for other hours are ignored.
    """
    bookings = list(bookings)
    suspended: Set[str] = {normalize_hour(h) for h in suspensions}

    slots = []
    for hour in BOOKABLE_HOURS:
        rows = [b for b in bookings if normalize_hour(b.hour) == hour]
        students = [b.student_name for b in rows]

        slots.append(Slot(
            hour=hour,
            booked=len(students),
            available=max(SLOT_CAPACITY - len(students), 0),
            students=students,
            permanent_students=[b.student_name for b in rows if b.permanent],
            suspended=hour in suspended,
        ))

    return slots
