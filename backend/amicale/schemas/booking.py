"""
Pydantic schemas for booking-related request/response validation.

The JSON contract is camelCase (userId, activityCategory, bookingPeriod...)
because the frontend consumes it as-is; Python code uses snake_case.
"""

from datetime import datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from amicale.models.booking import ActivityCategory


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Participant(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = Field(None, ge=0)
    type: Literal["adult", "child", "cojoint", "companion"] = "adult"

    @field_validator("type", mode="before")
    @classmethod
    def lowercase_type(cls, value):
        return value.lower() if isinstance(value, str) else value


class BookingPeriodOut(BaseModel):
    start: datetime
    end: datetime


class BookingCreate(CamelModel):
    """
    Booking request. Required fields are optional here so that a missing one
    is reported as missing_fields rather than a schema error.
    """

    user_id: Optional[int] = None
    activity: Optional[int] = None
    activity_category: Optional[ActivityCategory] = None
    # dict, JSON string or absent; parsed by the admission path
    booking_period: Optional[Union[dict[str, Any], str]] = None
    participants: list[Participant] = Field(default_factory=list)


class BookingUpdate(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    participants: Optional[list[Participant]] = None
    booking_period: Optional[Union[dict[str, Any], str]] = None


class BookingStatusUpdate(CamelModel):
    status: Optional[str] = None


class BookingResponse(CamelModel):
    id: int
    user_id: int
    activity: int
    activity_category: str
    activity_model: str
    booking_period: BookingPeriodOut
    participants: list[Participant]
    status: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_booking(cls, booking) -> "BookingResponse":
        return cls(
            id=booking.id,
            user_id=booking.user_id,
            activity=booking.activity_id,
            activity_category=booking.activity_category,
            activity_model=booking.activity_model,
            booking_period=BookingPeriodOut(start=booking.booking_start, end=booking.booking_end),
            participants=[Participant.model_validate(p) for p in booking.participants or []],
            status=booking.status,
            created_at=booking.created_at,
            updated_at=booking.updated_at,
        )


class BookingEnvelope(BaseModel):
    success: bool = True
    message: str
    data: BookingResponse


class BookingCreatedEnvelope(BookingEnvelope):
    booking_id: int = Field(serialization_alias="bookingId")


class BookingListEnvelope(BaseModel):
    success: bool = True
    data: list[BookingResponse]


class MessageEnvelope(BaseModel):
    success: bool = True
    message: str
