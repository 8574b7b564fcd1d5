from amicale.schemas.booking import (
    BookingCreate, BookingUpdate, BookingStatusUpdate, BookingResponse,
    BookingEnvelope, BookingCreatedEnvelope, BookingListEnvelope, MessageEnvelope,
)
from amicale.schemas.event import EventCreate, EventResponse, EventListResponse
from amicale.schemas.house import HouseCreate, HouseResponse

__all__ = [
    "BookingCreate", "BookingUpdate", "BookingStatusUpdate", "BookingResponse",
    "BookingEnvelope", "BookingCreatedEnvelope", "BookingListEnvelope", "MessageEnvelope",
    "EventCreate", "EventResponse", "EventListResponse",
    "HouseCreate", "HouseResponse",
]
