"""
Event model with participant capacity tracking.

Key design decisions:
- `current_participants` is denormalized so admission is a single conditional
  UPDATE (no COUNT over bookings)
- `max_participants` NULL means the event is uncapped
- Pricing flags (child/companion) gate which participant details a booking
  must carry
"""

import enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
)

from amicale.db.base import Base, TimestampMixin


class EventType(str, enum.Enum):
    VOYAGE = "Voyage"
    EXCURSION = "Excursion"
    CLUB = "Club"
    EVENEMENT = "Évènement"
    ACTIVITE = "Activité"


class Event(Base, TimestampMixin):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(100), nullable=False)
    type = Column(String(20), nullable=False)
    description = Column(String(2000), nullable=False, default="")
    start_date = Column(DateTime(timezone=True), nullable=False)
    end_date = Column(DateTime(timezone=True), nullable=False)

    base_price = Column(Numeric(10, 2), nullable=False, default=0)
    child_presence = Column(Boolean, nullable=False, default=False)
    child_price = Column(Numeric(10, 2), nullable=True)
    cojoin_presence = Column(Boolean, nullable=False, default=False)
    cojoin_price = Column(Numeric(10, 2), nullable=True)
    number_of_children = Column(Integer, nullable=True)
    number_of_companions = Column(Integer, nullable=True)

    max_participants = Column(Integer, nullable=True)
    current_participants = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint("current_participants >= 0", name="check_current_participants_non_negative"),
        CheckConstraint(
            "max_participants IS NULL OR max_participants >= 1",
            name="check_max_participants_positive",
        ),
        CheckConstraint("end_date >= start_date", name="check_event_dates_ordered"),
        Index("ix_events_start_date", "start_date"),
    )

    @property
    def requires_child_info(self) -> bool:
        return bool(self.child_presence and self.child_price and self.child_price > 0)

    @property
    def requires_cojoin_info(self) -> bool:
        return bool(self.cojoin_presence and self.cojoin_price and self.cojoin_price > 0)

    def __repr__(self) -> str:
        return (
            f"<Event(id={self.id}, title={self.title}, "
            f"participants={self.current_participants}/{self.max_participants})>"
        )
