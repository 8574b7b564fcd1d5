"""
Booking error catalogue.

Every admission or lifecycle failure maps to a stable (errorType, errorCode)
pair. The frontend switches on errorType to pick a localized message, so the
codes below are part of the public contract and must never be renumbered.
"""

from typing import Any, Optional

from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.exception_handlers import request_validation_exception_handler
from fastapi.responses import JSONResponse

# error_type -> (error_code, http status, default message)
ERROR_CATALOGUE: dict[str, tuple[str, int, str]] = {
    "invalid_period": (
        "BOOKING_001", status.HTTP_400_BAD_REQUEST,
        "La période de réservation est invalide.",
    ),
    "invalid_dates": (
        "BOOKING_002", status.HTTP_400_BAD_REQUEST,
        "La période de réservation doit avoir une date de début et de fin valides",
    ),
    "overlapping_booking": (
        "BOOKING_003", status.HTTP_409_CONFLICT,
        "Vous avez déjà une réservation pour cette activité et cette période.",
    ),
    "missing_fields": (
        "BOOKING_004", status.HTTP_400_BAD_REQUEST,
        "Tous les champs sont obligatoires.",
    ),
    "validation_error": (
        "BOOKING_005", status.HTTP_400_BAD_REQUEST,
        "Erreur de validation des données.",
    ),
    "duplicate_event_booking": (
        "BOOKING_006", status.HTTP_409_CONFLICT,
        "Vous avez déjà réservé cet évènement.",
    ),
    "event_not_found": (
        "BOOKING_007", status.HTTP_404_NOT_FOUND,
        "Évènement introuvable.",
    ),
    "event_full": (
        "BOOKING_008", status.HTTP_400_BAD_REQUEST,
        "Le nombre maximum de participants a été atteint pour cet évènement.",
    ),
    "missing_child_info": (
        "BOOKING_009", status.HTTP_400_BAD_REQUEST,
        "Les informations de l'enfant sont requises pour ce tarif.",
    ),
    "invalid_child_info": (
        "BOOKING_010", status.HTTP_400_BAD_REQUEST,
        "Chaque enfant doit avoir un prénom, nom et âge.",
    ),
    "too_many_children": (
        "BOOKING_011", status.HTTP_400_BAD_REQUEST,
        "Nombre d'enfants dépassé.",
    ),
    "missing_cojoin_info": (
        "BOOKING_012", status.HTTP_400_BAD_REQUEST,
        "Les informations de l'accompagnant sont requises pour ce tarif.",
    ),
    "invalid_cojoin_info": (
        "BOOKING_013", status.HTTP_400_BAD_REQUEST,
        "Chaque accompagnant doit avoir un prénom, nom et âge.",
    ),
    "too_many_cojoin": (
        "BOOKING_014", status.HTTP_400_BAD_REQUEST,
        "Nombre d'accompagnants dépassé.",
    ),
    "house_not_found": (
        "BOOKING_015", status.HTTP_404_NOT_FOUND,
        "Maison introuvable.",
    ),
    "booking_not_found": (
        "BOOKING_016", status.HTTP_404_NOT_FOUND,
        "Réservation non trouvée",
    ),
}


class BookingError(HTTPException):
    """HTTPException carrying a machine-readable booking error kind."""

    def __init__(
        self,
        error_type: str,
        message: Optional[str] = None,
        extra: Optional[dict[str, Any]] = None,
    ):
        error_code, status_code, default_message = ERROR_CATALOGUE[error_type]
        super().__init__(status_code=status_code, detail=message or default_message)
        self.error_type = error_type
        self.error_code = error_code
        self.extra = extra or {}

    def to_payload(self) -> dict[str, Any]:
        payload = {
            "success": False,
            "message": self.detail,
            "errorType": self.error_type,
            "errorCode": self.error_code,
        }
        payload.update(self.extra)
        return payload


async def booking_error_handler(request: Request, exc: BookingError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=jsonable_encoder(exc.to_payload()),
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Booking routes answer schema errors with the booking envelope."""
    if "/booking" not in request.url.path:
        return await request_validation_exception_handler(request, exc)

    error = BookingError("validation_error", extra={"details": exc.errors()})
    return await booking_error_handler(request, error)
