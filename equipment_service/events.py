import json
import uuid
from datetime import datetime, timezone

from .models import Booking, Equipment


def build_event(event_type: str, data: dict) -> dict:
    return {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "data": data,
    }


def to_json(event: dict) -> str:
    return json.dumps(event, separators=(",", ":"), ensure_ascii=False)


def booking_data(booking: Booking) -> dict:
    return {
        "booking_id": booking.id,
        "equipment_id": booking.equipment_id,
        "user_id": booking.user_id,
        "date": booking.date,
        "time_slot": booking.time_slot,
        "status": booking.status,
    }


def equipment_status_data(equipment: Equipment) -> dict:
    return {
        "equipment_id": equipment.id,
        "catalog_id": equipment.catalog_id,
        "status": equipment.status,
    }
