"""
House model and its calendar of blocked days.

Blocked days are stored one row per (house, day) with a unique constraint, so
blocking a range is a set union (INSERT ... ON CONFLICT DO NOTHING) and
freeing it is a plain DELETE. Days are ISO `YYYY-MM-DD` strings.

The weekly price list is kept as JSON on the house row:
`[{"week": {"startDate": "2030-07-01", "endDate": "2030-07-07"}, "price": "350.00"}]`.
The bookable period is derived from it.
"""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String, UniqueConstraint

from amicale.db.base import Base, TimestampMixin


class House(Base, TimestampMixin):
    __tablename__ = "houses"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    address = Column(String(255), nullable=False, default="")
    location = Column(String(255), nullable=False, default="")
    description = Column(String(2000), nullable=False, default="")
    is_available = Column(Boolean, nullable=False, default=True)
    price = Column(JSON, nullable=False, default=list)

    @property
    def available_period(self):
        """First and last priced day, or None when no week is priced."""
        weeks = [entry["week"] for entry in self.price or []]
        if not weeks:
            return None
        return {
            "start": min(week["startDate"] for week in weeks),
            "end": max(week["endDate"] for week in weeks),
        }

    def __repr__(self) -> str:
        return f"<House(id={self.id}, title={self.title})>"


class HouseUnavailableDate(Base):
    __tablename__ = "house_unavailable_dates"

    id = Column(Integer, primary_key=True)
    house_id = Column(Integer, ForeignKey("houses.id", ondelete="CASCADE"), nullable=False, index=True)
    day = Column(String(10), nullable=False)

    __table_args__ = (
        UniqueConstraint("house_id", "day", name="uq_house_unavailable_day"),
    )
