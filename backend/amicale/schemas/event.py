"""
Pydantic schemas for event-related request/response validation.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from amicale.models.event import EventType


class EventCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=100)
    type: EventType
    description: str = Field("", max_length=2000)
    start_date: datetime
    end_date: datetime
    base_price: Decimal = Field(Decimal("0"), ge=0)
    child_presence: bool = False
    child_price: Optional[Decimal] = Field(None, ge=0)
    cojoin_presence: bool = False
    cojoin_price: Optional[Decimal] = Field(None, ge=0)
    number_of_children: Optional[int] = Field(None, ge=0)
    number_of_companions: Optional[int] = Field(None, ge=0)
    max_participants: Optional[int] = Field(None, ge=1, le=100000)

    @model_validator(mode="after")
    def check_dates(self) -> "EventCreate":
        if self.end_date < self.start_date:
            raise ValueError("La date de fin doit être après la date de début")
        return self


class EventResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: int
    title: str
    type: str
    description: str
    start_date: datetime
    end_date: datetime
    base_price: Decimal
    child_presence: bool
    child_price: Optional[Decimal]
    cojoin_presence: bool
    cojoin_price: Optional[Decimal]
    number_of_children: Optional[int]
    number_of_companions: Optional[int]
    max_participants: Optional[int]
    current_participants: int
    is_active: bool
    created_at: datetime


class EventListResponse(BaseModel):
    events: list[EventResponse]
    total: int
    page: int
    page_size: int = Field(serialization_alias="pageSize")
    cached: bool = False


REQUIRED_EVENT_FIELDS = {
    "title",
    "type",
    "description",
    "start_date",
    "end_date",
    "base_price",
    "child_presence",
    "cojoin_presence",
    "is_active",
}


class EventUpdate(BaseModel):
    """
    Partial update of an event. Only the fields sent are changed.

    `maxParticipants: null` removes the cap. The participant counter itself
    is never writable.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=100)
    type: Optional[EventType] = None
    description: Optional[str] = Field(None, max_length=2000)
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    base_price: Optional[Decimal] = Field(None, ge=0)
    child_presence: Optional[bool] = None
    child_price: Optional[Decimal] = Field(None, ge=0)
    cojoin_presence: Optional[bool] = None
    cojoin_price: Optional[Decimal] = Field(None, ge=0)
    number_of_children: Optional[int] = Field(None, ge=0)
    number_of_companions: Optional[int] = Field(None, ge=0)
    max_participants: Optional[int] = Field(None, ge=1, le=100000)
    is_active: Optional[bool] = None

    @model_validator(mode="after")
    def reject_nulls(self) -> "EventUpdate":
        for name in REQUIRED_EVENT_FIELDS & self.model_fields_set:
            if getattr(self, name) is None:
                raise ValueError(f"{to_camel(name)} ne peut pas être nul")
        return self
