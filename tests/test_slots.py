"""
Unit tests for the slot capacity model
"""
import pytest

from slots import BOOKABLE_HOURS, BookingRecord, compute_slots, normalize_hour


def _by_hour(slots):
    return {slot.hour: slot for slot in slots}


@pytest.mark.unit
class TestComputeSlots:
    """Tests for deriving the daily slot grid"""

    def test_empty_day(self):
        slots = compute_slots([], set())

        assert [s.hour for s in slots] == BOOKABLE_HOURS
        for slot in slots:
            assert slot.capacity == 4
            assert slot.booked == 0
            assert slot.available == 4
            assert slot.students == []
            assert slot.permanent_students == []
            assert slot.suspended is False

    def test_counts_students_per_hour(self):
        bookings = [
            BookingRecord(hour="07", student_name="Alice"),
            BookingRecord(hour="07", student_name="Bob", permanent=True),
            BookingRecord(hour="09", student_name="Carol"),
        ]

        slots = _by_hour(compute_slots(bookings, set()))

        assert slots["07"].booked == 2
        assert slots["07"].available == 2
        assert slots["07"].students == ["Alice", "Bob"]
        assert slots["07"].permanent_students == ["Bob"]
        assert slots["09"].students == ["Carol"]
        assert slots["08"].booked == 0

    def test_available_never_negative(self):
        bookings = [BookingRecord(hour="10", student_name=f"S{i}") for i in range(6)]

        slot = _by_hour(compute_slots(bookings, set()))["10"]

        assert slot.booked == 6
        assert slot.available == 0

    def test_theory_hour_is_never_returned(self):
        bookings = [BookingRecord(hour="12", student_name="Alice")]

        slots = compute_slots(bookings, {"12"})

        assert "12" not in [s.hour for s in slots]
        assert sum(s.booked for s in slots) == 0

    def test_suspended_flag_and_unpadded_hours(self):
        bookings = [BookingRecord(hour="8", student_name="Dan")]

        slots = _by_hour(compute_slots(bookings, {"9"}))

        assert slots["08"].students == ["Dan"]
        assert slots["09"].suspended is True
        assert slots["08"].suspended is False

    def test_serializes_with_client_field_names(self):
        slot = compute_slots([BookingRecord(hour="13", student_name="Eve", permanent=True)], set())[5]

        data = slot.model_dump(by_alias=True)

        assert data == {
            "hour": "13",
            "capacity": 4,
            "booked": 1,
            "available": 3,
            "students": ["Eve"],
            "permanentStudents": ["Eve"],
            "suspended": False,
        }


@pytest.mark.unit
@pytest.mark.parametrize("value, expected", [(7, "07"), ("7", "07"), ("07", "07"), ("13", "13")])
def test_normalize_hour(value, expected):
    assert normalize_hour(value) == expected
