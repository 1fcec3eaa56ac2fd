import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from nautica.api.deps import get_booking_manager, require_subject
from nautica.core.exceptions import NotFound
from nautica.services.booking_service import BookingLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter()


class BookingActionRequest(BaseModel):
    action: str
    bookingId: Optional[str] = None
    reason: Optional[str] = None


@router.post("/booking-actions")
async def booking_action(
    payload: BookingActionRequest,
    subject_id: str = Depends(require_subject),
    bookings: BookingLifecycleManager = Depends(get_booking_manager),
):
    """
    Renter-initiated booking actions.

    NauticaError raised here is rendered as {"error": message} with the
    matching status by the app-level handler.
    """
    if not payload.bookingId:
        return JSONResponse(status_code=400, content={"error": "bookingId é obrigatório."})

    if payload.action == "checkin":
        result = await bookings.check_in(subject_id, payload.bookingId)
        if result.already:
            return {"ok": True, "already": True}
        return {"ok": True}

    if payload.action == "cancel":
        booking = await bookings.db.get_user_booking(payload.bookingId, subject_id)
        if booking is None:
            raise NotFound("Reserva não encontrada.")
        cancelled = await bookings.cancel_booking(booking.id, payload.reason)
        if not cancelled:
            return {"ok": True, "already": True}
        logger.info("Booking cancelled by renter", extra={"booking_id": str(booking.id)})
        return {"ok": True}

    return JSONResponse(status_code=400, content={"error": "Ação inválida."})
