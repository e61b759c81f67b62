"""Booking and suspension stores.

Both stores are keyed by calendar day. ``SQLStore`` persists to the relational
database; ``MemoryStore`` keeps the same data in process (optionally mirrored
to a JSON file) and is used when the database is missing or unreachable.
"""
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import date
from typing import Dict, List, Optional, Set

from sqlalchemy import delete
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import sessionmaker
from sqlmodel import select

from errors import DuplicateStudent, StoreUnavailable
from models import Booking, Suspension
from slots import BookingRecord, normalize_hour

logger = logging.getLogger(__name__)


class BookingStore(ABC):
    @abstractmethod
    async def list_bookings(self, day: date) -> List[BookingRecord]:
        ...

    @abstractmethod
    async def add_booking(self, day: date, record: BookingRecord) -> None:
        ...

    @abstractmethod
    async def delete_booking(self, day: date, hour: str, student_name: str) -> None:
        ...


class SuspensionStore(ABC):
    @abstractmethod
    async def list_suspensions(self, day: date) -> Set[str]:
        ...

    @abstractmethod
    async def add_suspension(self, day: date, hour: str) -> None:
        ...

    @abstractmethod
    async def remove_suspension(self, day: date, hour: str) -> None:
        ...


class SlotStore(BookingStore, SuspensionStore):
    name = "store"


class SQLStore(SlotStore):
    name = "DB"

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    async def list_bookings(self, day: date) -> List[BookingRecord]:
        statement = select(Booking).where(Booking.booking_date == day).order_by(Booking.id)
        try:
            async with self.session_factory() as session:
                result = await session.execute(statement)
                rows = result.scalars().all()
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(str(exc)) from exc

        logger.debug("[DB] fetched %d booking rows for date=%s", len(rows), day)
        return [
            BookingRecord(hour=row.hour, student_name=row.student_name, permanent=row.permanent)
            for row in rows
        ]

    async def add_booking(self, day: date, record: BookingRecord) -> None:
        new_booking = Booking(
            booking_date=day,
            hour=normalize_hour(record.hour),
            student_name=record.student_name,
            permanent=record.permanent,
        )
        try:
            async with self.session_factory() as session:
                try:
                    session.add(new_booking)
                    await session.commit()
                except IntegrityError as exc:
                    # Unique constraint violation: the student already holds this slot
                    await session.rollback()
                    raise DuplicateStudent() from exc
        except DuplicateStudent:
            raise
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(str(exc)) from exc

    async def delete_booking(self, day: date, hour: str, student_name: str) -> None:
        statement = delete(Booking).where(
            Booking.booking_date == day,
            Booking.hour == normalize_hour(hour),
            Booking.student_name == student_name,
        )
        try:
            async with self.session_factory() as session:
                await session.execute(statement)
                await session.commit()
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(str(exc)) from exc
        logger.info("[DB] deleted booking %s %s %s", student_name, day, hour)

    async def list_suspensions(self, day: date) -> Set[str]:
        statement = select(Suspension.hour).where(Suspension.suspension_date == day)
        try:
            async with self.session_factory() as session:
                result = await session.execute(statement)
                return set(result.scalars().all())
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(str(exc)) from exc

    async def add_suspension(self, day: date, hour: str) -> None:
        hour = normalize_hour(hour)
        existing = select(Suspension).where(
            Suspension.suspension_date == day, Suspension.hour == hour
        )
        try:
            async with self.session_factory() as session:
                result = await session.execute(existing)
                if result.scalars().first() is not None:
                    return
                session.add(Suspension(suspension_date=day, hour=hour))
                await session.commit()
        except IntegrityError:
            # Suspended concurrently by another worker; the end state is the same
            logger.info("[DB] suspension %s %s already present", day, hour)
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(str(exc)) from exc

    async def remove_suspension(self, day: date, hour: str) -> None:
        statement = delete(Suspension).where(
            Suspension.suspension_date == day,
            Suspension.hour == normalize_hour(hour),
        )
        try:
            async with self.session_factory() as session:
                await session.execute(statement)
                await session.commit()
        except (DBAPIError, OSError) as exc:
            raise StoreUnavailable(str(exc)) from exc


class MemoryStore(SlotStore):
    name = "IN-MEMORY"

    def __init__(self, data_file: Optional[str] = None):
        self.data_file = data_file or None
        self.bookings: Dict[str, List[BookingRecord]] = {}
        self.suspensions: Dict[str, Set[str]] = {}
        if self.data_file:
            self.load()

    # --- Persistence ---

    def load(self) -> None:
        if not os.path.exists(self.data_file):
            return
        try:
            with open(self.data_file, "r", encoding="utf-8") as fh:
                raw = json.load(fh) or {}

            bookings = {
                day: [BookingRecord(**row) for row in rows]
                for day, rows in (raw.get("bookings") or {}).items()
            }
            suspensions = {
                day: {normalize_hour(h) for h in hours}
                for day, hours in (raw.get("suspensions") or {}).items()
            }
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            # pydantic's ValidationError is a ValueError
            logger.warning("[PERSIST] failed to load persisted bookings: %s", exc)
            return

        self.bookings = bookings
        self.suspensions = suspensions
        logger.info("[PERSIST] Loaded persisted bookings from %s", self.data_file)

    def persist(self) -> None:
        if not self.data_file:
            return
        payload = {
            "bookings": {
                day: [row.model_dump() for row in rows] for day, rows in self.bookings.items()
            },
            "suspensions": {day: sorted(hours) for day, hours in self.suspensions.items()},
        }
        try:
            directory = os.path.dirname(self.data_file)
            if directory:
                os.makedirs(directory, exist_ok=True)
            with open(self.data_file, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
        except OSError as exc:
            logger.warning("[PERSIST] failed to persist bookings: %s", exc)
            return
        logger.debug("[PERSIST] Saved bookings to %s", self.data_file)

    # --- Bookings ---

    async def list_bookings(self, day: date) -> List[BookingRecord]:
        rows = list(self.bookings.get(day.isoformat(), []))
        logger.debug("[IN-MEMORY] fetched %d booking rows for date=%s", len(rows), day)
        return rows

    async def add_booking(self, day: date, record: BookingRecord) -> None:
        hour = normalize_hour(record.hour)
        rows = self.bookings.setdefault(day.isoformat(), [])
        if any(r.hour == hour and r.student_name == record.student_name for r in rows):
            raise DuplicateStudent()
        rows.append(BookingRecord(hour=hour, student_name=record.student_name, permanent=record.permanent))
        self.persist()

    async def delete_booking(self, day: date, hour: str, student_name: str) -> None:
        hour = normalize_hour(hour)
        key = day.isoformat()
        rows = self.bookings.get(key, [])
        self.bookings[key] = [
            r for r in rows if not (r.hour == hour and r.student_name == student_name)
        ]
        self.persist()
        logger.info("[IN-MEMORY] deleted booking %s %s %s", student_name, day, hour)

    # --- Suspensions ---

    async def list_suspensions(self, day: date) -> Set[str]:
        return set(self.suspensions.get(day.isoformat(), set()))

    async def add_suspension(self, day: date, hour: str) -> None:
        self.suspensions.setdefault(day.isoformat(), set()).add(normalize_hour(hour))
        self.persist()

    async def remove_suspension(self, day: date, hour: str) -> None:
        self.suspensions.get(day.isoformat(), set()).discard(normalize_hour(hour))
        self.persist()
