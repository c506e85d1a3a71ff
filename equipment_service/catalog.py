"""Adapter for the external equipment catalog.

Upstream records are loosely shaped: any field may be missing and extra keys
come and go. ``normalize_record`` turns one record into a ``CatalogEquipment``
without ever raising, and ``CatalogService`` wraps the HTTP client so that an
unreachable catalog yields an empty result flagged ``ok=False`` instead of an
error.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from redis.exceptions import RedisError

from . import directory
from .clients import CatalogClient, CatalogUnavailable
from .config import CATALOG_DEFAULT_FILTER_NAME, CATALOG_DEFAULT_FILTER_VALUE
from .log import get_logger
from .models import EquipmentStatus, UsageType
from .schemas import CatalogEquipment, ExternalFilter
from .storage import Storage

logger = get_logger(__name__)

ID_SEPARATOR = ":"
DEFAULT_CATEGORY = "other"

KNOWN_FIELDS = {
    "id",
    "name",
    "description",
    "classification",
    "location",
    "imageUrl",
    "brand",
    "model",
    "serialNumber",
    "inventoryNumber",
    "status",
    "usageType",
}

_STATUSES = {s.value for s in EquipmentStatus}
_USAGE_TYPES = {u.value for u in UsageType}

# descriptive columns refreshed on sync; status is owned locally
SYNC_FIELDS = (
    "name",
    "description",
    "category",
    "location",
    "image_url",
    "brand",
    "model",
    "serial_number",
    "inventory_number",
    "classification",
)


def _text(value: Any) -> str | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return None


def derive_equipment_id(record: Mapping[str, Any]) -> str:
    """Stable identifier for one physical item.

    Inventory and serial numbers are joined with ``ID_SEPARATOR`` so that
    ("12", "345") and ("1", "2345") stay distinct.
    """
    inventory = _text(record.get("inventoryNumber"))
    serial = _text(record.get("serialNumber"))
    if inventory and serial:
        return f"{inventory}{ID_SEPARATOR}{serial}"
    if inventory:
        return inventory
    if serial:
        return serial
    return _text(record.get("id")) or ""


def infer_category(classification: Any) -> str:
    text = _text(classification)
    if not text:
        return DEFAULT_CATEGORY
    return text.split()[0].lower()


def normalize_record(raw: Mapping[str, Any]) -> CatalogEquipment:
    unknown = sorted(k for k in raw if k not in KNOWN_FIELDS)
    if unknown:
        logger.debug("catalog_record_extra_fields", fields=unknown)

    status = _text(raw.get("status"))
    usage_type = _text(raw.get("usageType"))

    return CatalogEquipment(
        id=derive_equipment_id(raw),
        name=_text(raw.get("name")) or "",
        description=_text(raw.get("description")) or "",
        category=infer_category(raw.get("classification")),
        location=_text(raw.get("location")) or "",
        status=status if status in _STATUSES else EquipmentStatus.AVAILABLE.value,
        usage_type=usage_type if usage_type in _USAGE_TYPES else UsageType.BOOKING_REQUIRED.value,
        image_url=_text(raw.get("imageUrl")),
        brand=_text(raw.get("brand")),
        model=_text(raw.get("model")),
        serial_number=_text(raw.get("serialNumber")),
        inventory_number=_text(raw.get("inventoryNumber")),
        classification=_text(raw.get("classification")),
    )


def build_search_params(term: str | None, filters: Mapping[str, Sequence[str]] | None) -> List[Tuple[str, str]]:
    """Query params for the upstream search.

    Upstream refuses a search with no selector at all, so an empty term with
    no active facet becomes the catalog-wide default filter.
    """
    params: List[Tuple[str, str]] = []
    term = (term or "").strip()
    if term:
        params.append(("searchTerm", term))

    for name, options in (filters or {}).items():
        for option in options or []:
            if option not in (None, ""):
                params.append((name, str(option)))

    if not params:
        params.append((CATALOG_DEFAULT_FILTER_NAME, CATALOG_DEFAULT_FILTER_VALUE))
    return params


def _records(payload: Any) -> List[Mapping[str, Any]] | None:
    if isinstance(payload, dict):
        payload = payload.get("results")
    if not isinstance(payload, list):
        return None
    return [r for r in payload if isinstance(r, dict)]


@dataclass
class CatalogResult:
    ok: bool
    items: List[CatalogEquipment] = field(default_factory=list)


@dataclass
class FilterResult:
    ok: bool
    filters: List[ExternalFilter] = field(default_factory=list)


class CatalogService:
    def __init__(self, client: CatalogClient | None = None):
        self.client = client or CatalogClient()

    async def search(self, term: str | None = None, filters: Dict[str, List[str]] | None = None) -> CatalogResult:
        params = build_search_params(term, filters)
        try:
            payload = await self.client.search(params)
        except (CatalogUnavailable, RedisError) as e:
            logger.warning("catalog_search_failed", error=str(e))
            return CatalogResult(ok=False)

        records = _records(payload)
        if records is None:
            logger.warning("catalog_search_malformed", payload_type=type(payload).__name__)
            return CatalogResult(ok=False)

        return CatalogResult(ok=True, items=[normalize_record(r) for r in records])

    async def filters(self) -> FilterResult:
        try:
            payload = await self.client.filters()
        except (CatalogUnavailable, RedisError) as e:
            logger.warning("catalog_filters_failed", error=str(e))
            return FilterResult(ok=False)

        if isinstance(payload, dict):
            payload = payload.get("filters")
        if not isinstance(payload, list):
            logger.warning("catalog_filters_malformed", payload_type=type(payload).__name__)
            return FilterResult(ok=False)

        out = []
        for raw in payload:
            name = _text(raw.get("name")) if isinstance(raw, dict) else None
            if not name:
                continue
            options = raw.get("options")
            out.append(
                ExternalFilter(
                    name=name,
                    label=_text(raw.get("label")) or name,
                    options=options if isinstance(options, list) else [],
                )
            )
        return FilterResult(ok=True, filters=out)

    async def sync(self, storage: Storage) -> Tuple[bool, int, int]:
        """Import the full catalog into the local directory, keyed by catalog id."""
        result = await self.search()
        if not result.ok:
            return False, 0, 0

        created = updated = 0
        async with storage.transaction():
            for item in result.items:
                if not item.id:
                    continue
                fields = item.model_dump(include=set(SYNC_FIELDS))
                existing = await storage.get_equipment_by_catalog_id(item.id)
                if existing is None:
                    await storage.add_equipment(
                        directory.build_equipment(
                            catalog_id=item.id,
                            status=item.status,
                            usage_type=item.usage_type,
                            **fields,
                        )
                    )
                    created += 1
                else:
                    for key, value in fields.items():
                        setattr(existing, key, value)
                    updated += 1

        logger.info("catalog_synced", created=created, updated=updated)
        return True, created, updated
