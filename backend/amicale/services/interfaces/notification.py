"""
Notification sink interface.
Booking code hands finished messages to a sink and never waits on delivery
outcomes beyond a boolean; swapping the sink (SMTP, logging, test fake) does
not touch the lifecycle logic.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Notification:
    to: str
    subject: str
    text: str
    html: str
    booking_id: Optional[int] = None


class NotificationSink(ABC):

    @abstractmethod
    async def send(self, message: Notification) -> bool:
        """
        Deliver one message.

        Returns True when the message was handed off. Implementations may
        raise; callers treat delivery as best effort and log failures.
        """
        pass
