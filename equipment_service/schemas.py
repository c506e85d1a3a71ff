from datetime import datetime
from typing import Any, List, Optional

from dateutil import parser
from pydantic import AnyHttpUrl, BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .config import DEFAULT_USER_ID
from .models import TIME_SLOTS, EquipmentStatus, UsageType


class ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
        str_strip_whitespace=True,
    )


# ---- Equipment ----

class EquipmentOut(ApiModel):
    id: int
    catalog_id: Optional[str] = None
    name: str
    description: str
    category: str
    location: str
    status: str
    usage_type: str
    image_url: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    inventory_number: Optional[str] = None
    classification: Optional[str] = None


class CreateEquipment(ApiModel):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    category: str = Field(default="other", min_length=1)
    location: str = Field(min_length=1)
    status: EquipmentStatus = EquipmentStatus.AVAILABLE
    usage_type: UsageType = UsageType.BOOKING_REQUIRED
    image_url: Optional[AnyHttpUrl] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    inventory_number: Optional[str] = None
    classification: Optional[str] = None

    @field_validator("image_url", mode="before")
    @classmethod
    def blank_url_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


# ---- Bookings ----

class CreateBooking(ApiModel):
    equipment_id: int
    user_id: int = DEFAULT_USER_ID
    date: str
    time_slot: str
    purpose: str = Field(min_length=1)
    additional_requirements: Optional[str] = None

    @field_validator("date")
    @classmethod
    def iso_date(cls, v: str) -> str:
        try:
            return parser.isoparse(v).date().isoformat()
        except (ValueError, OverflowError):
            raise ValueError("date must be an ISO calendar date (YYYY-MM-DD)")

    @field_validator("time_slot")
    @classmethod
    def known_slot(cls, v: str) -> str:
        if v not in TIME_SLOTS:
            raise ValueError(f"Invalid time slot: {v}. Allowed: {TIME_SLOTS}")
        return v


class BookingOut(ApiModel):
    id: int
    equipment_id: int
    user_id: int
    date: str
    time_slot: str
    purpose: str
    additional_requirements: Optional[str] = None
    status: str
    created_at: datetime


class BookingWithEquipment(BookingOut):
    equipment: EquipmentOut


class AvailableSlotsResponse(ApiModel):
    available_slots: List[str]


# ---- External catalog ----

class CatalogEquipment(ApiModel):
    id: str
    name: str = ""
    description: str = ""
    category: str = "other"
    location: str = ""
    status: str = EquipmentStatus.AVAILABLE.value
    usage_type: str = UsageType.BOOKING_REQUIRED.value
    image_url: Optional[str] = None
    brand: Optional[str] = None
    model: Optional[str] = None
    serial_number: Optional[str] = None
    inventory_number: Optional[str] = None
    classification: Optional[str] = None
    is_favorite: bool = False


class ExternalFilter(ApiModel):
    name: str
    label: str = ""
    options: List[Any] = Field(default_factory=list)


class CatalogSearchResponse(ApiModel):
    ok: bool
    items: List[CatalogEquipment]


class CatalogFiltersResponse(ApiModel):
    ok: bool
    filters: List[ExternalFilter]


class CatalogSyncResponse(ApiModel):
    ok: bool
    created: int = 0
    updated: int = 0


# ---- Favorites ----

class FavoritesResponse(ApiModel):
    user_id: int
    equipment_ids: List[str]


class FavoriteStateResponse(ApiModel):
    user_id: int
    equipment_id: str
    is_favorite: bool
