from typing import List

from .errors import NotFound
from .log import get_logger
from .models import Equipment, EquipmentStatus, UsageType, User
from .schemas import CreateEquipment
from .storage import Storage

logger = get_logger(__name__)

ALL_CATEGORIES = "all"

SAMPLE_EQUIPMENT = [
    {
        "name": "Electron Microscope XLS-300",
        "description": "High-resolution imaging for nanoscale specimens",
        "category": "microscopes",
        "location": "Lab 102",
        "status": EquipmentStatus.AVAILABLE.value,
    },
    {
        "name": "Mass Spectrometer QT-5000",
        "description": "High-precision molecular analysis equipment",
        "category": "spectrometers",
        "location": "Lab 205",
        "status": EquipmentStatus.MAINTENANCE.value,
    },
    {
        "name": "High-Speed Centrifuge CS-9000",
        "description": "Precision separation for molecular research",
        "category": "centrifuges",
        "location": "Lab 118",
        "status": EquipmentStatus.AVAILABLE.value,
    },
    {
        "name": "PCR Thermal Cycler TC-200",
        "description": "Precision DNA amplification system",
        "category": "analyzers",
        "location": "Lab 301",
        "status": EquipmentStatus.BOOKED.value,
    },
    {
        "name": "HPLC System 8000 Series",
        "description": "High-performance liquid chromatography analyzer",
        "category": "analyzers",
        "location": "Lab 212",
        "status": EquipmentStatus.AVAILABLE.value,
    },
    {
        "name": "Flow Cytometer FC-500",
        "description": "Cell analysis and sorting system",
        "category": "analyzers",
        "location": "Lab 108",
        "status": EquipmentStatus.AVAILABLE.value,
    },
    {
        "name": "Analytical Balance AB-220",
        "description": "Precision weighing, walk-up use",
        "category": "balances",
        "location": "Lab 110",
        "status": EquipmentStatus.AVAILABLE.value,
        "usage_type": UsageType.IMMEDIATE_USE.value,
    },
]


async def list_all(storage: Storage) -> List[Equipment]:
    return await storage.list_equipment()


async def get(storage: Storage, equipment_id: int) -> Equipment:
    equipment = await storage.get_equipment(equipment_id)
    if not equipment:
        raise NotFound("Equipment not found")
    return equipment


async def find_by_category(storage: Storage, category: str) -> List[Equipment]:
    if category == ALL_CATEGORIES:
        return await storage.list_equipment()
    return await storage.equipment_by_category(category)


async def search(storage: Storage, term: str | None) -> List[Equipment]:
    term = (term or "").strip()
    if not term:
        return await storage.list_equipment()
    return await storage.search_equipment(term)


def build_equipment(**fields) -> Equipment:
    """Equipment row with every column filled, so it is usable before a flush."""
    return Equipment(
        catalog_id=fields.get("catalog_id"),
        name=fields.get("name") or "",
        description=fields.get("description") or "",
        category=fields.get("category") or "other",
        location=fields.get("location") or "",
        image_url=fields.get("image_url"),
        status=fields.get("status") or EquipmentStatus.AVAILABLE.value,
        usage_type=fields.get("usage_type") or UsageType.BOOKING_REQUIRED.value,
        brand=fields.get("brand"),
        model=fields.get("model"),
        serial_number=fields.get("serial_number"),
        inventory_number=fields.get("inventory_number"),
        classification=fields.get("classification"),
    )


async def create(storage: Storage, data: CreateEquipment) -> Equipment:
    fields = data.model_dump(mode="json")
    async with storage.transaction():
        equipment = await storage.add_equipment(build_equipment(**fields))
    logger.info("equipment_created", equipment_id=equipment.id, name=equipment.name)
    return equipment


async def ensure_user(storage: Storage, user_id: int, username: str) -> User:
    async with storage.transaction():
        user = await storage.get_user(user_id)
        if user is None:
            user = await storage.add_user(User(id=user_id, username=username))
    return user


async def seed_sample_equipment(storage: Storage) -> int:
    """Load the demo equipment set into an empty directory."""
    if await storage.list_equipment():
        return 0
    async with storage.transaction():
        for item in SAMPLE_EQUIPMENT:
            await storage.add_equipment(build_equipment(**item))
    logger.info("sample_equipment_seeded", count=len(SAMPLE_EQUIPMENT))
    return len(SAMPLE_EQUIPMENT)


async def bootstrap(storage: Storage, user_id: int, username: str, seed: bool = False) -> None:
    await ensure_user(storage, user_id, username)
    if seed:
        await seed_sample_equipment(storage)
