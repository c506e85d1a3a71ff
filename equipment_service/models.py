from enum import Enum

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, Text, text

from .db import Base


class EquipmentStatus(str, Enum):
    AVAILABLE = "available"
    BOOKED = "booked"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"


class UsageType(str, Enum):
    BOOKING_REQUIRED = "booking_required"
    IMMEDIATE_USE = "immediate_use"
    LONG_TERM = "long_term"


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


ACTIVE_BOOKING_STATUSES = (BookingStatus.PENDING.value, BookingStatus.CONFIRMED.value)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    username = Column(String, unique=True, nullable=False)


class Equipment(Base):
    __tablename__ = "equipment"

    id = Column(Integer, primary_key=True)
    catalog_id = Column(String, unique=True, nullable=True, index=True)

    name = Column(String, nullable=False)
    description = Column(Text, nullable=False, default="")
    category = Column(String, nullable=False, index=True)
    location = Column(String, nullable=False, default="")
    image_url = Column(String, nullable=True)

    status = Column(String, nullable=False, default=EquipmentStatus.AVAILABLE.value)
    usage_type = Column(String, nullable=False, default=UsageType.BOOKING_REQUIRED.value)

    brand = Column(String, nullable=True)
    model = Column(String, nullable=True)
    serial_number = Column(String, nullable=True)
    inventory_number = Column(String, nullable=True)
    classification = Column(String, nullable=True)


class Booking(Base):
    __tablename__ = "bookings"
    __table_args__ = (
        # one live booking per equipment/date/slot
        Index(
            "uq_bookings_active_slot",
            "equipment_id",
            "date",
            "time_slot",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True)
    equipment_id = Column(Integer, ForeignKey("equipment.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    date = Column(String, nullable=False)
    time_slot = Column(String, nullable=False)
    purpose = Column(Text, nullable=False)
    additional_requirements = Column(Text, nullable=True)

    status = Column(String, nullable=False, index=True)  # pending/confirmed/cancelled/completed
    created_at = Column(DateTime(timezone=True), nullable=False)


# two-hour blocks offered for booking
TIME_SLOTS = ["9:00-11:00", "11:00-13:00", "13:00-15:00", "15:00-17:00"]
