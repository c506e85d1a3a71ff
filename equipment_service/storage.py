"""Persistence for equipment, bookings and users.

Domain modules talk to a ``Storage`` and never to a session directly, so the
same ledger and lifecycle code runs against SQLAlchemy or the in-memory demo
store. Writes happen inside ``transaction()``; leaving the block commits,
raising rolls back.
"""

import asyncio
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.attributes import set_committed_value

from .errors import Conflict
from .models import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, Equipment, User

SLOT_TAKEN_MESSAGE = "This time slot is already booked"


class Storage(ABC):
    # ---- users ----

    @abstractmethod
    async def get_user(self, user_id: int) -> Optional[User]: ...

    @abstractmethod
    async def add_user(self, user: User) -> User: ...

    # ---- equipment ----

    @abstractmethod
    async def list_equipment(self) -> List[Equipment]: ...

    @abstractmethod
    async def get_equipment(self, equipment_id: int) -> Optional[Equipment]: ...

    @abstractmethod
    async def get_equipment_by_catalog_id(self, catalog_id: str) -> Optional[Equipment]: ...

    @abstractmethod
    async def equipment_by_category(self, category: str) -> List[Equipment]: ...

    @abstractmethod
    async def search_equipment(self, term: str) -> List[Equipment]: ...

    @abstractmethod
    async def add_equipment(self, equipment: Equipment) -> Equipment: ...

    @abstractmethod
    async def transition_equipment_status(self, equipment: Equipment, expected: str, status: str) -> bool:
        """Move equipment to ``status`` only if it is still ``expected``; False if it was not."""

    # ---- bookings ----

    @abstractmethod
    async def get_booking(self, booking_id: int) -> Optional[Booking]: ...

    @abstractmethod
    async def bookings_for_date(self, equipment_id: int, date: str) -> List[Booking]: ...

    @abstractmethod
    async def bookings_for_user(self, user_id: int) -> List[Tuple[Booking, Equipment]]: ...

    @abstractmethod
    async def add_booking(self, booking: Booking) -> Booking:
        """Insert a booking; raises Conflict if its slot is already held."""

    @abstractmethod
    async def set_booking_status(self, booking: Booking, status: str) -> Booking: ...

    @abstractmethod
    def transaction(self) -> AsyncIterator[None]: ...


class SqlStorage(Storage):
    def __init__(self, session: AsyncSession):
        self.session = session

    @asynccontextmanager
    async def transaction(self):
        try:
            yield
            await self.session.commit()
        except BaseException:
            await self.session.rollback()
            raise

    async def get_user(self, user_id):
        return await self.session.get(User, user_id)

    async def add_user(self, user):
        self.session.add(user)
        await self.session.flush()
        return user

    async def list_equipment(self):
        res = await self.session.execute(select(Equipment).order_by(Equipment.id))
        return list(res.scalars().all())

    async def get_equipment(self, equipment_id):
        return await self.session.get(Equipment, equipment_id)

    async def get_equipment_by_catalog_id(self, catalog_id):
        res = await self.session.execute(select(Equipment).where(Equipment.catalog_id == catalog_id))
        return res.scalar_one_or_none()

    async def equipment_by_category(self, category):
        res = await self.session.execute(
            select(Equipment).where(Equipment.category == category).order_by(Equipment.id)
        )
        return list(res.scalars().all())

    async def search_equipment(self, term):
        needle = term.lower()
        res = await self.session.execute(
            select(Equipment)
            .where(
                or_(
                    func.lower(Equipment.name).contains(needle, autoescape=True),
                    func.lower(Equipment.description).contains(needle, autoescape=True),
                    func.lower(Equipment.category).contains(needle, autoescape=True),
                    func.lower(Equipment.location).contains(needle, autoescape=True),
                )
            )
            .order_by(Equipment.id)
        )
        return list(res.scalars().all())

    async def add_equipment(self, equipment):
        self.session.add(equipment)
        await self.session.flush()
        return equipment

    async def transition_equipment_status(self, equipment, expected, status):
        # compare-and-set: loses to any status change committed meanwhile
        res = await self.session.execute(
            update(Equipment)
            .where(Equipment.id == equipment.id, Equipment.status == expected)
            .values(status=status)
            .execution_options(synchronize_session=False)
        )
        if res.rowcount != 1:
            return False
        set_committed_value(equipment, "status", status)
        return True

    async def get_booking(self, booking_id):
        return await self.session.get(Booking, booking_id)

    async def bookings_for_date(self, equipment_id, date):
        res = await self.session.execute(
            select(Booking)
            .where(Booking.equipment_id == equipment_id, Booking.date == date)
            .order_by(Booking.id)
        )
        return list(res.scalars().all())

    async def bookings_for_user(self, user_id):
        res = await self.session.execute(
            select(Booking, Equipment)
            .join(Equipment, Booking.equipment_id == Equipment.id)
            .where(Booking.user_id == user_id)
            .order_by(Booking.id)
        )
        return [(b, e) for b, e in res.all()]

    async def add_booking(self, booking):
        self.session.add(booking)
        try:
            await self.session.flush()
        except IntegrityError:
            # uq_bookings_active_slot caught a concurrent insert
            raise Conflict(SLOT_TAKEN_MESSAGE)
        return booking

    async def set_booking_status(self, booking, status):
        booking.status = status
        await self.session.flush()
        return booking


class MemoryStorage(Storage):
    """Process-lifetime store with no persistence, for demos and tests.

    Transactions are serialized by one lock, so the check-then-insert in the
    ledger cannot interleave. Rollback is not supported: mutations made before
    an error inside ``transaction()`` stay applied, which the ledger avoids by
    validating before it writes.
    """

    def __init__(self):
        self.users: Dict[int, User] = {}
        self.equipment: Dict[int, Equipment] = {}
        self.bookings: Dict[int, Booking] = {}
        self._user_seq = 1
        self._equipment_seq = 1
        self._booking_seq = 1
        self._lock = asyncio.Lock()

    @asynccontextmanager
    async def transaction(self):
        async with self._lock:
            yield

    async def get_user(self, user_id):
        return self.users.get(user_id)

    async def add_user(self, user):
        if user.id is None:
            user.id = self._user_seq
        self._user_seq = max(self._user_seq, user.id) + 1
        self.users[user.id] = user
        return user

    async def list_equipment(self):
        return list(self.equipment.values())

    async def get_equipment(self, equipment_id):
        return self.equipment.get(equipment_id)

    async def get_equipment_by_catalog_id(self, catalog_id):
        for item in self.equipment.values():
            if item.catalog_id == catalog_id:
                return item
        return None

    async def equipment_by_category(self, category):
        return [e for e in self.equipment.values() if e.category == category]

    async def search_equipment(self, term):
        needle = term.lower()
        return [
            e
            for e in self.equipment.values()
            if any(needle in (v or "").lower() for v in (e.name, e.description, e.category, e.location))
        ]

    async def add_equipment(self, equipment):
        equipment.id = self._equipment_seq
        self._equipment_seq += 1
        self.equipment[equipment.id] = equipment
        return equipment

    async def transition_equipment_status(self, equipment, expected, status):
        if equipment.status != expected:
            return False
        equipment.status = status
        return True

    async def get_booking(self, booking_id):
        return self.bookings.get(booking_id)

    async def bookings_for_date(self, equipment_id, date):
        return [
            b for b in self.bookings.values() if b.equipment_id == equipment_id and b.date == date
        ]

    async def bookings_for_user(self, user_id):
        out = []
        for b in self.bookings.values():
            if b.user_id != user_id:
                continue
            e = self.equipment.get(b.equipment_id)
            if e is not None:
                out.append((b, e))
        return out

    async def add_booking(self, booking):
        for b in self.bookings.values():
            if (
                b.equipment_id == booking.equipment_id
                and b.date == booking.date
                and b.time_slot == booking.time_slot
                and b.status != BookingStatus.CANCELLED.value
            ):
                raise Conflict(SLOT_TAKEN_MESSAGE)
        booking.id = self._booking_seq
        self._booking_seq += 1
        self.bookings[booking.id] = booking
        return booking

    async def set_booking_status(self, booking, status):
        booking.status = status
        return booking


def is_active(booking: Booking) -> bool:
    return booking.status in ACTIVE_BOOKING_STATUSES
