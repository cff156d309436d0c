import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from marina.domain.bookings import service as booking_service
from marina.domain.bookings.schemas import BookingResponse
from marina.domain.payments import service as payment_service
from marina.domain.payments.schemas import (
    ConfirmationCheckResponse,
    PaymentResponse,
    PaymentScheduleSummary,
    PaymentStatusUpdate,
)
from marina.infra.db import get_db_session
from marina.infra.logging import update_log_context

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/v1/bookings/{booking_id}/payment-schedule", response_model=PaymentScheduleSummary)
async def get_payment_schedule(
    booking_id: int, session: AsyncSession = Depends(get_db_session)
) -> PaymentScheduleSummary:
    update_log_context(booking_id=booking_id)
    await booking_service.get_booking(session, booking_id)
    return await payment_service.get_payment_schedule(session, booking_id)


@router.get("/v1/bookings/{booking_id}/can-confirm", response_model=ConfirmationCheckResponse)
async def get_can_confirm(
    booking_id: int, session: AsyncSession = Depends(get_db_session)
) -> ConfirmationCheckResponse:
    update_log_context(booking_id=booking_id)
    await booking_service.get_booking(session, booking_id)
    allowed = await payment_service.can_confirm(session, booking_id)
    return ConfirmationCheckResponse(booking_id=booking_id, can_confirm=allowed)


@router.post("/v1/bookings/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(
    booking_id: int, session: AsyncSession = Depends(get_db_session)
) -> BookingResponse:
    update_log_context(booking_id=booking_id)
    booking = await booking_service.confirm_booking(session, booking_id)
    response = BookingResponse.model_validate(booking)
    await session.commit()
    return response


@router.post("/v1/payments/{payment_id}/status", response_model=PaymentResponse)
async def update_payment_status(
    payment_id: int,
    request: PaymentStatusUpdate,
    session: AsyncSession = Depends(get_db_session),
) -> PaymentResponse:
    update_log_context(payment_id=payment_id)
    payment = await payment_service.update_payment_status(
        session,
        payment_id,
        request.status,
        transaction_id=request.transaction_id,
        paid_date=request.paid_date,
    )
    response = PaymentResponse.model_validate(payment)
    await session.commit()
    logger.info(
        "payment_status_updated",
        extra={"extra": {"payment_id": payment_id, "status": response.status.value}},
    )
    return response
