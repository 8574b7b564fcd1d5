"""
Pydantic schemas for house-related request/response validation.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class PriceWeekDates(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    start_date: date
    end_date: date

    @model_validator(mode="after")
    def check_dates(self) -> "PriceWeekDates":
        if self.end_date < self.start_date:
            raise ValueError("La fin de la semaine doit être après son début")
        return self


class PriceWeek(BaseModel):
    """One priced week of the house calendar."""

    week: PriceWeekDates
    price: Decimal = Field(..., ge=0)


class AvailablePeriod(BaseModel):
    start: date
    end: date


class HouseCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=255)
    address: str = Field("", max_length=255)
    location: str = Field("", max_length=255)
    description: str = Field("", max_length=2000)
    is_available: bool = True
    price: list[PriceWeek] = Field(default_factory=list)


class HouseUpdate(BaseModel):
    """Partial update: only the fields sent are changed."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    address: Optional[str] = Field(None, max_length=255)
    location: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)
    is_available: Optional[bool] = None
    price: Optional[list[PriceWeek]] = None

    @model_validator(mode="after")
    def reject_nulls(self) -> "HouseUpdate":
        for name in self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} ne peut pas être nul")
        return self


class HouseResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    title: str
    address: str
    location: str
    description: str
    is_available: bool
    price: list[PriceWeek] = Field(default_factory=list)
    available_period: Optional[AvailablePeriod] = None
    created_at: datetime
    unavailable_dates: list[str] = Field(default_factory=list)
