"""Booking service: the only writer of the booking and suspension stores.

Each operation runs as a single check-and-mutate unit under a per-(day, hour)
lock, then re-derives the day's slots so the caller always sees fresh state.
When the primary store is unreachable before anything was written, the whole
operation is re-run once against the in-memory fallback store.
"""
import asyncio
import logging
import weakref
from datetime import date
from typing import Awaitable, Callable, List, Optional, Tuple, TypeVar

from errors import (
    BookingError,
    DuplicateStudent,
    InternalError,
    SlotFull,
    SlotNotEmpty,
    SlotSuspended,
    StoreUnavailable,
    ValidationError,
)
from slots import SLOT_CAPACITY, BookingRecord, Slot, compute_slots, is_bookable, normalize_hour
from stores import SlotStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUSPEND = "suspend"
UNSUSPEND = "unsuspend"
SUSPENSION_ACTIONS = (SUSPEND, UNSUSPEND)


def _bookable_hour(hour) -> str:
    if hour is None or str(hour).strip() == "":
        raise ValidationError("Missing fields")
    hour = normalize_hour(hour)
    if not is_bookable(hour):
        raise ValidationError("Invalid hour")
    return hour


class _Attempt:
    """Tracks whether an operation's write reached its store."""

    def __init__(self):
        self.mutated = False


class BookingService:
    def __init__(self, primary: Optional[SlotStore], fallback: SlotStore):
        self.primary = primary
        self.fallback = fallback
        # Entries vanish once no request holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[Tuple[date, str], asyncio.Lock]" = (
            weakref.WeakValueDictionary()
        )

    @property
    def db_connected(self) -> bool:
        return self.primary is not None

    def lock_for(self, day: date, hour: str) -> asyncio.Lock:
        lock = self._locks.get((day, hour))
        if lock is None:
            lock = asyncio.Lock()
            self._locks[(day, hour)] = lock
        return lock

    async def _run(self, operation: Callable[[SlotStore, _Attempt], Awaitable[T]]) -> T:
        store = self.primary or self.fallback
        attempt = _Attempt()
        try:
            return await operation(store, attempt)
        except StoreUnavailable as exc:
            if store is self.fallback:
                raise InternalError() from exc
            if attempt.mutated:
                # The write is already on the primary; replaying it would duplicate it
                logger.error("[%s] store failed after the write was committed: %s", store.name, exc)
                raise InternalError() from exc
            logger.warning("[%s] store unavailable (%s), retrying on in-memory store", store.name, exc)
        except BookingError:
            raise
        except Exception as exc:
            logger.exception("[%s] unexpected store failure", store.name)
            raise InternalError() from exc

        try:
            return await operation(self.fallback, _Attempt())
        except StoreUnavailable as exc:
            raise InternalError() from exc
        except BookingError:
            raise
        except Exception as exc:
            logger.exception("[%s] fallback store failed", self.fallback.name)
            raise InternalError() from exc

    @staticmethod
    async def _slots(store: SlotStore, day: date) -> List[Slot]:
        bookings = await store.list_bookings(day)
        suspensions = await store.list_suspensions(day)
        return compute_slots(bookings, suspensions)

    async def daily_slots(self, day: date) -> List[Slot]:
        return await self._run(lambda store, attempt: self._slots(store, day))

    async def create_booking(self, day: date, hour, student_name: str, permanent: bool = False) -> List[Slot]:
        hour = _bookable_hour(hour)
        if not student_name:
            raise ValidationError("Missing fields")

        async def operation(store: SlotStore, attempt: _Attempt) -> List[Slot]:
            if hour in await store.list_suspensions(day):
                raise SlotSuspended()

            existing = [b for b in await store.list_bookings(day) if normalize_hour(b.hour) == hour]
            if len(existing) >= SLOT_CAPACITY:
                raise SlotFull()
            if any(b.student_name == student_name for b in existing):
                raise DuplicateStudent()

            await store.add_booking(
                day, BookingRecord(hour=hour, student_name=student_name, permanent=bool(permanent))
            )
            attempt.mutated = True
            logger.info("[%s] booked %s into %s %s", store.name, student_name, day, hour)
            return await self._slots(store, day)

        async with self.lock_for(day, hour):
            return await self._run(operation)

    async def delete_booking(self, day: date, hour, student_name: str) -> List[Slot]:
        hour = _bookable_hour(hour)
        if not student_name:
            raise ValidationError("Missing fields for delete")

        async def operation(store: SlotStore, attempt: _Attempt) -> List[Slot]:
            await store.delete_booking(day, hour, student_name)
            attempt.mutated = True
            return await self._slots(store, day)

        async with self.lock_for(day, hour):
            return await self._run(operation)

    async def set_suspension(self, day: date, hour, action: str) -> List[Slot]:
        hour = _bookable_hour(hour)
        if action not in SUSPENSION_ACTIONS:
            raise ValidationError("Invalid action")

        async def operation(store: SlotStore, attempt: _Attempt) -> List[Slot]:
            if action == SUSPEND:
                booked = [b for b in await store.list_bookings(day) if normalize_hour(b.hour) == hour]
                if booked:
                    raise SlotNotEmpty()
                await store.add_suspension(day, hour)
            else:
                await store.remove_suspension(day, hour)
            attempt.mutated = True
            logger.info("[%s] %s %s %s", store.name, action, day, hour)
            return await self._slots(store, day)

        async with self.lock_for(day, hour):
            return await self._run(operation)
