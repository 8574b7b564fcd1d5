"""
Booking notifications: email templates, sinks and best-effort dispatch.

Delivery is fire-and-forget from the booking's point of view. Every public
`notify_*` coroutine swallows and logs its own failures so it can be handed
to a background task without any error reaching the client.
"""

import asyncio
import smtplib
from datetime import datetime
from email.message import EmailMessage
from html import escape
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from amicale.core.config import get_settings
from amicale.core.logging import get_logger
from amicale.core.metrics import record_notification, record_side_effect_failure
from amicale.models import ACTIVITY_MODELS
from amicale.models.booking import Booking, BookingStatus
from amicale.models.user import User
from amicale.services.interfaces.notification import Notification, NotificationSink
from amicale.services.periods import period_of

logger = get_logger(__name__)
settings = get_settings()

SIGNATURE = "L'équipe Amicale AGIL"

HOUSE_RULES_AR = (
    "الشروط الخــاصة:\n\n"
    "يتعهد المنتفع ببرنامج المصيف العائلي:\n"
    "    • باحترام المواعيد الدخول و المغادرة، المحددّة أعلاه.\n"
    "    • المحافظة على نظافة المكان.\n"
    "    • الحفاظ على سلامة الأثاث و التجهيزات الموضوعة تحت تصرّفه.\n"
    "    • تعويض كل إتلاف أو ضرر أو فقدان أحد عناصر هذا الأثاث أو هذه التجهيزات.\n"
    "    • خــلاص كامل معلوم مساهمته في صورة العدول عن المشاركة لأي سبب كان بعد الترسيم في هذا النشاط.\n\n"
    "يمنع منعــا باتا التفويت في حق التمتّع بالإقامة لأي شخص آخـــر،\n"
    "أي مخـــالفة في هذا المجال تعرّض صاحبها إلى إجراءات تأديبية."
)


# ---------------------------------------------------------------------------
# Sinks
# ---------------------------------------------------------------------------

class EmailNotificationSink(NotificationSink):
    """SMTP delivery; the blocking smtplib call runs in a worker thread."""

    async def send(self, message: Notification) -> bool:
        await asyncio.to_thread(self._send_sync, message)
        return True

    def _send_sync(self, message: Notification) -> None:
        msg = EmailMessage()
        msg["From"] = settings.SMTP_FROM
        msg["To"] = message.to
        msg["Subject"] = message.subject
        msg.set_content(message.text)
        msg.add_alternative(message.html, subtype="html")

        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=settings.SMTP_TIMEOUT) as smtp:
            if settings.SMTP_USE_TLS:
                smtp.starttls()
            if settings.SMTP_USERNAME:
                smtp.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD)
            smtp.send_message(msg)


class LoggingNotificationSink(NotificationSink):
    """Used when email is disabled: records what would have been sent."""

    async def send(self, message: Notification) -> bool:
        logger.info(
            "notification_not_sent",
            reason="email_disabled",
            to=message.to,
            subject=message.subject,
            booking_id=message.booking_id,
        )
        return False


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

def _fr_date(value: datetime) -> str:
    return value.strftime("%d/%m/%Y")


def _summary_lines(booking: Booking, activity_title: str) -> list[str]:
    lines = []
    period = period_of(booking)
    if period is not None:
        lines.append(f"Période: du {_fr_date(period.start)} au {_fr_date(period.end)}")
    lines.append(f"Type: {booking.activity_category}")
    lines.append(f"Détails: {activity_title}")
    return lines


def _wrap_html(title: str, body_html: str) -> str:
    return (
        '<!doctype html><html><head><meta charset="utf-8"/>'
        '<meta name="viewport" content="width=device-width,initial-scale=1"/></head>'
        '<body style="margin:0;padding:24px;background:#f4f6f8;font-family:Arial,sans-serif;color:#0f172a;">'
        '<div style="max-width:680px;margin:0 auto;background:#fff;border-radius:8px;padding:24px;">'
        f'<h1 style="font-size:20px;margin:0 0 8px;">{escape(title)}</h1>'
        f"{body_html}"
        f'<p style="margin:18px 0 0;color:#64748b;font-size:13px;">Cordialement,<br/>{escape(SIGNATURE)}</p>'
        f'<p style="font-size:12px;color:#94a3b8;"><a href="{escape(settings.CLIENT_URL)}">Ouvrir l\'application</a></p>'
        "</div></body></html>"
    )


def _lines_html(lines: list[str]) -> str:
    rows = "".join(f'<div style="padding:6px 0;">{escape(line)}</div>' for line in lines)
    return (
        '<div style="background:#f8fafc;border:1px solid #e6eef6;padding:12px;'
        f'border-radius:6px;margin-bottom:18px;font-size:14px;">{rows}</div>'
    )


def booking_created_template(user: User, booking: Booking, activity_title: str) -> tuple[str, str, str]:
    subject = "Amicale-Demande de réservation"
    lines = _summary_lines(booking, activity_title)
    text = (
        f"Bonjour {user.first_name},\n\n"
        "Votre demande de réservation a été bien enregistrée.\n\n"
        + "\n".join(lines)
        + "\n\nMerci de votre confiance."
    )
    body = (
        f"<p>Bonjour {escape(user.first_name)},</p>"
        "<p>Votre demande de réservation a bien été enregistrée. Retrouvez ci-dessous le récapitulatif :</p>"
        f"{_lines_html(lines)}"
        "<p>Nous vous contacterons si une action complémentaire est nécessaire.</p>"
    )
    return subject, text, _wrap_html("Demande de réservation reçue", body)


def status_update_template(user: User, booking: Booking, activity_title: str) -> tuple[str, str, str]:
    lines = _summary_lines(booking, activity_title)

    if booking.status == BookingStatus.CONFIRMED.value:
        subject = "Amicale-Confirmation de réservation"
        text = (
            f"Bonjour {user.first_name},\n\n"
            "Votre demande de réservation est confirmée.\n\n"
            + "\n".join(lines)
            + "\n\nMerci."
        )
        body = (
            f"<p>Bonjour {escape(user.first_name)},</p>"
            "<p>Votre demande de réservation est confirmée.</p>"
            f"{_lines_html(lines)}"
        )
        if booking.is_house_stay:
            rules = "".join(f"<div>{escape(line)}</div>" for line in HOUSE_RULES_AR.split("\n"))
            body += (
                '<div dir="rtl" style="direction:rtl;text-align:right;font-family:Tahoma,Arial,sans-serif;'
                f'padding:12px;line-height:1.6;">{rules}</div>'
            )
        return subject, text, _wrap_html("Confirmation de votre réservation", body)

    subject = "Amicale-Mise à jour de votre réservation"
    text = (
        f"Bonjour {user.first_name},\n\n"
        f"Le statut de votre réservation a changé : {booking.status.upper()}\n\n"
        + "\n".join(lines)
    )
    body = (
        f"<p>Bonjour {escape(user.first_name)},</p>"
        f"<p>Le statut de votre réservation a changé : <strong>{escape(booking.status.upper())}</strong></p>"
        f"{_lines_html(lines)}"
    )
    return subject, text, _wrap_html("Mise à jour de votre réservation", body)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

async def _activity_title(db: AsyncSession, booking: Booking) -> str:
    model = ACTIVITY_MODELS.get(booking.activity_model)
    if model is None:
        return "votre réservation"
    result = await db.execute(select(model.title).where(model.id == booking.activity_id))
    title = result.scalar_one_or_none()
    return title or f"votre {booking.activity_category.lower()}"


async def _dispatch(db: AsyncSession, sink: NotificationSink, booking: Booking, template) -> bool:
    user = await db.get(User, booking.user_id)
    if user is None or not user.email:
        logger.warning("notification_skipped", reason="missing_user_or_email", booking_id=booking.id)
        record_notification("skipped")
        return False

    subject, text, html = template(user, booking, await _activity_title(db, booking))
    message = Notification(to=user.email, subject=subject, text=text, html=html, booking_id=booking.id)
    sent = await sink.send(message)
    record_notification("sent" if sent else "skipped")
    if sent:
        logger.info("notification_sent", booking_id=booking.id, to=user.email, subject=subject)
    return sent


async def notify_booking_created(session_factory, sink: NotificationSink, booking_id: int) -> Optional[bool]:
    """Background task: acknowledge a new booking request to its member."""
    try:
        async with session_factory() as db:
            booking = await db.get(Booking, booking_id)
            if booking is None:
                logger.warning("notification_skipped", reason="booking_gone", booking_id=booking_id)
                return None
            return await _dispatch(db, sink, booking, booking_created_template)
    except Exception as e:
        record_notification("failed")
        record_side_effect_failure("notification")
        logger.error("notification_failed", kind="booking_created", booking_id=booking_id, error=str(e))
        return None


async def notify_status_change(db: AsyncSession, sink: NotificationSink, booking: Booking) -> Optional[bool]:
    """Tell the member their booking moved to a new status. Never raises."""
    try:
        return await _dispatch(db, sink, booking, status_update_template)
    except Exception as e:
        record_notification("failed")
        record_side_effect_failure("notification")
        logger.error(
            "notification_failed",
            kind="status_change",
            booking_id=booking.id,
            status=booking.status,
            error=str(e),
        )
        return None
