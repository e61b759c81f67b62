"""Booking errors.

Rule violations are reported to the caller as ``{success: false, message}``;
validation errors are rejected before any store access.
"""


class BookingError(Exception):
    message = "Server error"

    def __init__(self, message: str | None = None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class ValidationError(BookingError):
    message = "Missing fields"


class SlotRuleViolation(BookingError):
    pass


class SlotSuspended(SlotRuleViolation):
    message = "Slot is suspended"


class SlotFull(SlotRuleViolation):
    message = "Slot full"


class DuplicateStudent(SlotRuleViolation):
    message = "Student already booked"


class SlotNotEmpty(SlotRuleViolation):
    message = "Cannot suspend slot with students"


class StoreUnavailable(BookingError):
    message = "Store unavailable"


class InternalError(BookingError):
    message = "Server error"
