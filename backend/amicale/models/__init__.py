from amicale.models.user import User
from amicale.models.event import Event
from amicale.models.house import House, HouseUnavailableDate
from amicale.models.booking import Booking

# activity_model value -> table the polymorphic activity_id points into
ACTIVITY_MODELS = {
    "House": House,
    "Event": Event,
}

__all__ = ["User", "Event", "House", "HouseUnavailableDate", "Booking", "ACTIVITY_MODELS"]
