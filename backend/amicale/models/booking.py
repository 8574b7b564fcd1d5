"""
Booking model: one ledger record per reservation.

Key design decisions:
- `activity_id` is a polymorphic reference; `activity_model` ("House" or
  "Event") says which table it points into, so there is no foreign key
- Partial unique index on (user_id, activity_id) for Event bookings backs the
  duplicate-booking check against concurrent requests
- Status is kept in French because the frontend displays and filters on it
"""

import enum

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    text,
)

from amicale.db.base import Base, TimestampMixin


class ActivityCategory(str, enum.Enum):
    HOUSE_STAY = "Sejour Maison"
    VOYAGE = "Voyage"
    EXCURSION = "Excursion"
    CLUB = "Club"
    EVENEMENT = "Évènement"
    ACTIVITE = "Activité"


class ActivityModel(str, enum.Enum):
    HOUSE = "House"
    EVENT = "Event"

    @classmethod
    def for_category(cls, category: str) -> "ActivityModel":
        return cls.HOUSE if category == ActivityCategory.HOUSE_STAY.value else cls.EVENT


class BookingStatus(str, enum.Enum):
    PENDING = "en attente"
    CONFIRMED = "confirmé"
    CANCELLED = "annulé"
    COMPLETED = "terminé"


class Booking(Base, TimestampMixin):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    activity_id = Column(Integer, nullable=False)
    activity_category = Column(String(20), nullable=False, default=ActivityCategory.HOUSE_STAY.value)
    activity_model = Column(String(10), nullable=False)
    booking_start = Column(DateTime(timezone=True), nullable=False)
    booking_end = Column(DateTime(timezone=True), nullable=False)
    participants = Column(JSON, nullable=False, default=list)
    status = Column(String(20), nullable=False, default=BookingStatus.PENDING.value)

    __table_args__ = (
        CheckConstraint("activity_model IN ('House', 'Event')", name="check_booking_activity_model"),
        CheckConstraint("booking_end >= booking_start", name="check_booking_period_ordered"),
        CheckConstraint(
            "status IN ('en attente', 'confirmé', 'annulé', 'terminé')",
            name="check_booking_status",
        ),
        Index("ix_bookings_activity", "activity_model", "activity_id"),
        # One booking per user per event
        Index(
            "uq_user_event_booking",
            "user_id",
            "activity_id",
            unique=True,
            postgresql_where=text("activity_model = 'Event'"),
            sqlite_where=text("activity_model = 'Event'"),
        ),
    )

    @property
    def is_house_stay(self) -> bool:
        return self.activity_category == ActivityCategory.HOUSE_STAY.value

    @property
    def is_event(self) -> bool:
        return self.activity_model == ActivityModel.EVENT.value

    def __repr__(self) -> str:
        return (
            f"<Booking(id={self.id}, user={self.user_id}, "
            f"{self.activity_model}={self.activity_id}, status={self.status})>"
        )
