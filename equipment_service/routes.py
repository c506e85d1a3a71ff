from typing import List

from dateutil import parser
from fastapi import APIRouter, Depends, Query, Request
from redis.exceptions import RedisError

from . import directory, ledger, lifecycle
from .catalog import CatalogService
from .config import DEFAULT_USER_ID, STORAGE_BACKEND
from .db import SessionLocal
from .errors import ValidationError
from .events import booking_data, build_event, equipment_status_data, to_json
from .favorites import FavoritesStore, MemoryFavoritesStore, RedisFavoritesStore
from .log import get_logger
from .rabbitmq import publisher
from .redis_client import redis_client
from .schemas import (
    AvailableSlotsResponse,
    BookingOut,
    BookingWithEquipment,
    CatalogFiltersResponse,
    CatalogSearchResponse,
    CatalogSyncResponse,
    CreateBooking,
    CreateEquipment,
    EquipmentOut,
    FavoritesResponse,
    FavoriteStateResponse,
)
from .storage import MemoryStorage, SqlStorage, Storage

router = APIRouter()

logger = get_logger(__name__)

memory_storage = MemoryStorage()
memory_favorites = MemoryFavoritesStore()

_CATALOG_RESERVED_PARAMS = {"term", "userId"}


async def get_storage():
    if STORAGE_BACKEND == "memory":
        yield memory_storage
        return
    async with SessionLocal() as session:
        yield SqlStorage(session)


def get_favorites() -> FavoritesStore:
    if STORAGE_BACKEND == "memory":
        return memory_favorites
    return RedisFavoritesStore(redis_client)


def get_catalog() -> CatalogService:
    return CatalogService()


def _parse_id(raw: str, label: str) -> int:
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {label} ID")
    if value < 1:
        raise ValidationError(f"Invalid {label} ID")
    return value


def _equipment_out(equipment) -> EquipmentOut:
    return EquipmentOut.model_validate(equipment)


async def _publish_status(equipment):
    event = build_event("equipment.status_changed", equipment_status_data(equipment))
    await publisher.publish("equipment.status_changed", to_json(event))


# ================= EQUIPMENT =================

@router.get("/api/equipment", response_model=List[EquipmentOut], tags=["Equipment"])
async def list_equipment(storage: Storage = Depends(get_storage)):
    return [_equipment_out(e) for e in await directory.list_all(storage)]


@router.get("/api/equipment/search", response_model=List[EquipmentOut], tags=["Equipment"])
async def search_equipment(term: str | None = None, storage: Storage = Depends(get_storage)):
    return [_equipment_out(e) for e in await directory.search(storage, term)]


@router.get("/api/equipment/category/{category}", response_model=List[EquipmentOut], tags=["Equipment"])
async def equipment_by_category(category: str, storage: Storage = Depends(get_storage)):
    return [_equipment_out(e) for e in await directory.find_by_category(storage, category)]


@router.get("/api/equipment/{equipment_id}", response_model=EquipmentOut, tags=["Equipment"])
async def get_equipment(equipment_id: str, storage: Storage = Depends(get_storage)):
    equipment = await directory.get(storage, _parse_id(equipment_id, "equipment"))
    return _equipment_out(equipment)


@router.post("/api/equipment", response_model=EquipmentOut, status_code=201, tags=["Equipment"])
async def create_equipment(data: CreateEquipment, storage: Storage = Depends(get_storage)):
    equipment = await directory.create(storage, data)

    event = build_event("equipment.created", {"equipment_id": equipment.id, "name": equipment.name})
    await publisher.publish("equipment.created", to_json(event))

    return _equipment_out(equipment)


@router.get(
    "/api/equipment/{equipment_id}/available-slots",
    response_model=AvailableSlotsResponse,
    tags=["Bookings"],
)
async def available_slots(equipment_id: str, date: str | None = None, storage: Storage = Depends(get_storage)):
    if not date:
        raise ValidationError("Equipment ID and date are required")
    equipment_pk = _parse_id(equipment_id, "equipment")
    try:
        day = parser.isoparse(date).date().isoformat()
    except (ValueError, OverflowError):
        raise ValidationError("Invalid date")

    slots = await ledger.available_slots(storage, equipment_pk, day)
    return AvailableSlotsResponse(available_slots=slots)


@router.patch("/api/equipment/{equipment_id}/use", response_model=EquipmentOut, tags=["Equipment"])
async def use_equipment(equipment_id: str, storage: Storage = Depends(get_storage)):
    equipment = await lifecycle.use(storage, _parse_id(equipment_id, "equipment"))
    await _publish_status(equipment)
    return _equipment_out(equipment)


@router.patch("/api/equipment/{equipment_id}/finish", response_model=EquipmentOut, tags=["Equipment"])
async def finish_equipment(equipment_id: str, storage: Storage = Depends(get_storage)):
    equipment = await lifecycle.finish(storage, _parse_id(equipment_id, "equipment"))
    await _publish_status(equipment)
    return _equipment_out(equipment)


# ================= BOOKINGS =================

@router.post("/api/bookings", response_model=BookingOut, status_code=201, tags=["Bookings"])
async def create_booking(data: CreateBooking, storage: Storage = Depends(get_storage)):
    booking, equipment = await ledger.create_booking(storage, data)

    event = build_event("booking.confirmed", booking_data(booking))
    await publisher.publish("booking.confirmed", to_json(event))
    await _publish_status(equipment)

    return BookingOut.model_validate(booking)


@router.get("/api/bookings/user/{user_id}", response_model=List[BookingWithEquipment], tags=["Bookings"])
async def user_bookings(user_id: str, storage: Storage = Depends(get_storage)):
    rows = await ledger.list_by_user(storage, _parse_id(user_id, "user"))
    return [
        BookingWithEquipment(
            **BookingOut.model_validate(booking).model_dump(),
            equipment=_equipment_out(equipment),
        )
        for booking, equipment in rows
    ]


@router.patch("/api/bookings/{booking_id}/cancel", response_model=BookingOut, tags=["Bookings"])
async def cancel_booking(booking_id: str, storage: Storage = Depends(get_storage)):
    booking, equipment = await ledger.cancel_booking(storage, _parse_id(booking_id, "booking"))

    event = build_event("booking.cancelled", booking_data(booking))
    await publisher.publish("booking.cancelled", to_json(event))
    if equipment is not None:
        await _publish_status(equipment)

    return BookingOut.model_validate(booking)


# ================= CATALOG =================

@router.get("/api/catalog/search", response_model=CatalogSearchResponse, tags=["Catalog"])
async def catalog_search(
    request: Request,
    term: str | None = None,
    user_id: int = Query(DEFAULT_USER_ID, alias="userId"),
    catalog: CatalogService = Depends(get_catalog),
    favorites: FavoritesStore = Depends(get_favorites),
):
    filters: dict[str, list[str]] = {}
    for key, value in request.query_params.multi_items():
        if key in _CATALOG_RESERVED_PARAMS:
            continue
        filters.setdefault(key, []).append(value)

    result = await catalog.search(term, filters)

    favored: set[str] = set()
    if result.items:
        try:
            favored = set(await favorites.list(user_id))
        except RedisError as e:
            logger.warning("favorites_unavailable", error=str(e))

    items = [item.model_copy(update={"is_favorite": item.id in favored}) for item in result.items]
    return CatalogSearchResponse(ok=result.ok, items=items)


@router.get("/api/catalog/filters", response_model=CatalogFiltersResponse, tags=["Catalog"])
async def catalog_filters(catalog: CatalogService = Depends(get_catalog)):
    result = await catalog.filters()
    return CatalogFiltersResponse(ok=result.ok, filters=result.filters)


@router.post("/api/catalog/sync", response_model=CatalogSyncResponse, tags=["Catalog"])
async def catalog_sync(
    catalog: CatalogService = Depends(get_catalog),
    storage: Storage = Depends(get_storage),
):
    ok, created, updated = await catalog.sync(storage)
    return CatalogSyncResponse(ok=ok, created=created, updated=updated)


# ================= FAVORITES =================

@router.get("/api/favorites/{user_id}", response_model=FavoritesResponse, tags=["Favorites"])
async def list_favorites(user_id: str, favorites: FavoritesStore = Depends(get_favorites)):
    uid = _parse_id(user_id, "user")
    return FavoritesResponse(user_id=uid, equipment_ids=await favorites.list(uid))


@router.post("/api/favorites/{user_id}/{equipment_id}", response_model=FavoriteStateResponse, tags=["Favorites"])
async def add_favorite(user_id: str, equipment_id: str, favorites: FavoritesStore = Depends(get_favorites)):
    uid = _parse_id(user_id, "user")
    await favorites.add(uid, equipment_id)
    return FavoriteStateResponse(user_id=uid, equipment_id=equipment_id, is_favorite=True)


@router.delete("/api/favorites/{user_id}/{equipment_id}", response_model=FavoriteStateResponse, tags=["Favorites"])
async def remove_favorite(user_id: str, equipment_id: str, favorites: FavoritesStore = Depends(get_favorites)):
    uid = _parse_id(user_id, "user")
    await favorites.remove(uid, equipment_id)
    return FavoriteStateResponse(user_id=uid, equipment_id=equipment_id, is_favorite=False)


@router.post(
    "/api/favorites/{user_id}/{equipment_id}/toggle",
    response_model=FavoriteStateResponse,
    tags=["Favorites"],
)
async def toggle_favorite(user_id: str, equipment_id: str, favorites: FavoritesStore = Depends(get_favorites)):
    uid = _parse_id(user_id, "user")
    is_favorite = await favorites.toggle(uid, equipment_id)
    return FavoriteStateResponse(user_id=uid, equipment_id=equipment_id, is_favorite=is_favorite)
