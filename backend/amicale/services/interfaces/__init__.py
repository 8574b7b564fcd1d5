"""
Service interfaces for dependency inversion.
Allows swapping implementations without changing business logic.
"""

from .admission import AdmissionStrategy
from .calendar import CalendarAdjuster
from .notification import Notification, NotificationSink
from .optimistic_admission import OptimisticAdmission

__all__ = [
    'AdmissionStrategy', 'OptimisticAdmission',
    'CalendarAdjuster',
    'Notification', 'NotificationSink',
]
