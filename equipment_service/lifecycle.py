"""Equipment status transitions.

Bookable equipment cycles available -> booked -> available through the
ledger. Walk-up equipment (``immediate_use``) cycles available -> in_use ->
available through ``use``/``finish``. The usage type decides which cycle an
item belongs to, and calls from the other cycle are rejected.

Every transition is a compare-and-set on the current status, so of two
concurrent writers starting from the same status only one wins.
"""

from .errors import Conflict, NotFound
from .log import get_logger
from .models import Equipment, EquipmentStatus, UsageType
from .storage import Storage

logger = get_logger(__name__)


async def _transition(storage: Storage, equipment: Equipment, expected: EquipmentStatus, status: EquipmentStatus) -> bool:
    moved = await storage.transition_equipment_status(equipment, expected.value, status.value)
    if moved:
        logger.info(
            "equipment_status_changed",
            equipment_id=equipment.id,
            previous=expected.value,
            status=status.value,
        )
    return moved


async def mark_booked(storage: Storage, equipment: Equipment) -> Equipment:
    if not await _transition(storage, equipment, EquipmentStatus.AVAILABLE, EquipmentStatus.BOOKED):
        raise Conflict("Equipment is not available for booking")
    return equipment


async def release(storage: Storage, equipment: Equipment) -> Equipment:
    # maintenance or walk-up use set meanwhile wins over the cancelled booking
    await _transition(storage, equipment, EquipmentStatus.BOOKED, EquipmentStatus.AVAILABLE)
    return equipment


async def _load_immediate_use(storage: Storage, equipment_id: int) -> Equipment:
    equipment = await storage.get_equipment(equipment_id)
    if not equipment:
        raise NotFound("Equipment not found")
    if equipment.usage_type != UsageType.IMMEDIATE_USE.value:
        raise Conflict(f"Equipment with usage type {equipment.usage_type} cannot be used without booking")
    return equipment


async def use(storage: Storage, equipment_id: int) -> Equipment:
    async with storage.transaction():
        equipment = await _load_immediate_use(storage, equipment_id)
        if not await _transition(storage, equipment, EquipmentStatus.AVAILABLE, EquipmentStatus.IN_USE):
            raise Conflict(f"Equipment is not available, current status: {equipment.status}")
    return equipment


async def finish(storage: Storage, equipment_id: int) -> Equipment:
    async with storage.transaction():
        equipment = await _load_immediate_use(storage, equipment_id)
        if not await _transition(storage, equipment, EquipmentStatus.IN_USE, EquipmentStatus.AVAILABLE):
            raise Conflict(f"Equipment is not in use, current status: {equipment.status}")
    return equipment
