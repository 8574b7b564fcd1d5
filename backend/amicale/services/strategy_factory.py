"""
Strategy factories for the pluggable booking collaborators:
the admission gate and the notification sink.
"""

from typing import Optional

from amicale.core.config import get_settings
from amicale.services.admission_service import RedisAdmission
from amicale.services.interfaces.admission import AdmissionStrategy
from amicale.services.interfaces.notification import NotificationSink
from amicale.services.interfaces.optimistic_admission import OptimisticAdmission
from amicale.services.notification_service import EmailNotificationSink, LoggingNotificationSink


def get_admission_strategy() -> AdmissionStrategy:
    """
    Build the configured admission gate.

    ADMISSION_STRATEGY=redis enables the Redis gate; anything else keeps the
    database as the only gate.
    """
    if get_settings().ADMISSION_STRATEGY == "redis":
        return RedisAdmission()
    return OptimisticAdmission()


def get_notification_strategy() -> NotificationSink:
    """Email when configured, otherwise log the messages that would be sent."""
    if get_settings().EMAIL_ENABLED:
        return EmailNotificationSink()
    return LoggingNotificationSink()


_admission: Optional[AdmissionStrategy] = None
_notifier: Optional[NotificationSink] = None


def get_admission() -> AdmissionStrategy:
    """Admission strategy singleton (FastAPI dependency)."""
    global _admission
    if _admission is None:
        _admission = get_admission_strategy()
    return _admission


def get_notification_sink() -> NotificationSink:
    """Notification sink singleton (FastAPI dependency)."""
    global _notifier
    if _notifier is None:
        _notifier = get_notification_strategy()
    return _notifier
