"""Booking ledger.

Booking state machine::

    pending | confirmed -> cancelled   (cancel_booking)
    pending | confirmed -> completed   (reserved, no operation yet)

Cancelled and completed are terminal. A slot is held by every booking that
is not cancelled.
"""

from datetime import datetime, timezone
from typing import List, Tuple

from . import lifecycle
from .errors import Conflict, NotFound
from .log import get_logger
from .models import TIME_SLOTS, Booking, BookingStatus, Equipment, EquipmentStatus, UsageType
from .schemas import CreateBooking
from .storage import SLOT_TAKEN_MESSAGE, Storage, is_active

logger = get_logger(__name__)


def _holds_slot(booking: Booking) -> bool:
    return booking.status != BookingStatus.CANCELLED.value


async def create_booking(storage: Storage, data: CreateBooking) -> Tuple[Booking, Equipment]:
    async with storage.transaction():
        equipment = await storage.get_equipment(data.equipment_id)
        if not equipment:
            raise NotFound("Equipment not found")

        if not await storage.get_user(data.user_id):
            raise NotFound("User not found")

        if equipment.usage_type != UsageType.BOOKING_REQUIRED.value:
            raise Conflict(f"Equipment with usage type {equipment.usage_type} cannot be booked")

        existing = await storage.bookings_for_date(equipment.id, data.date)
        if any(_holds_slot(b) and b.time_slot == data.time_slot for b in existing):
            raise Conflict(SLOT_TAKEN_MESSAGE)

        if equipment.status != EquipmentStatus.AVAILABLE.value:
            raise Conflict("Equipment is not available for booking")

        booking = Booking(
            equipment_id=equipment.id,
            user_id=data.user_id,
            date=data.date,
            time_slot=data.time_slot,
            purpose=data.purpose,
            additional_requirements=data.additional_requirements,
            # no approval step: bookings are confirmed on creation
            status=BookingStatus.CONFIRMED.value,
            created_at=datetime.now(timezone.utc),
        )
        await storage.add_booking(booking)
        await lifecycle.mark_booked(storage, equipment)

    logger.info(
        "booking_confirmed",
        booking_id=booking.id,
        equipment_id=equipment.id,
        date=booking.date,
        time_slot=booking.time_slot,
    )
    return booking, equipment


async def cancel_booking(storage: Storage, booking_id: int) -> Tuple[Booking, Equipment | None]:
    async with storage.transaction():
        booking = await storage.get_booking(booking_id)
        if not booking:
            raise NotFound("Booking not found")

        if not is_active(booking):
            raise Conflict(f"Booking is already {booking.status}")

        await storage.set_booking_status(booking, BookingStatus.CANCELLED.value)

        equipment = await storage.get_equipment(booking.equipment_id)
        if equipment is not None:
            await lifecycle.release(storage, equipment)

    logger.info("booking_cancelled", booking_id=booking.id, equipment_id=booking.equipment_id)
    return booking, equipment


async def list_by_user(storage: Storage, user_id: int) -> List[Tuple[Booking, Equipment]]:
    if not await storage.get_user(user_id):
        raise NotFound("User not found")
    return await storage.bookings_for_user(user_id)


async def available_slots(storage: Storage, equipment_id: int, date: str) -> List[str]:
    equipment = await storage.get_equipment(equipment_id)
    if not equipment:
        raise NotFound("Equipment not found")

    taken = {b.time_slot for b in await storage.bookings_for_date(equipment_id, date) if _holds_slot(b)}
    return [slot for slot in TIME_SLOTS if slot not in taken]
