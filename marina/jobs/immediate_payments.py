import logging
from datetime import date, datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marina.domain.bookings.statuses import BookingStatus
from marina.domain.payments import statuses
from marina.domain.payments.db_models import Payment
from marina.domain.payments.service import mark_overdue_payments, overdue_penalty
from marina.infra.metrics import metrics
from marina.settings import settings

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _is_immediate(payment: Payment) -> bool:
    """Payments due on the day they were created were meant to be paid at booking time."""

    return payment.due_date == _as_utc(payment.created_at).date()


async def run_immediate_payment_check(
    session: AsyncSession,
    *,
    now: datetime | None = None,
    grace_minutes: int | None = None,
) -> dict[str, int]:
    now = _as_utc(now or datetime.now(timezone.utc))
    grace = settings.immediate_payment_grace_minutes if grace_minutes is None else grace_minutes
    cutoff = now - timedelta(minutes=grace)

    stmt = (
        select(Payment)
        .where(
            Payment.status == statuses.PAYMENT_STATUS_PENDING,
            Payment.created_at <= cutoff,
        )
        .options(selectinload(Payment.booking))
        .order_by(Payment.payment_id.asc())
    )
    result = await session.execute(stmt)
    candidates = [
        payment
        for payment in result.scalars().all()
        if _is_immediate(payment) and _as_utc(payment.created_at) <= cutoff
    ]

    overdue = 0
    cancelled = 0
    failed = 0
    for payment in candidates:
        payment_id = payment.payment_id
        booking_id = payment.booking_id
        try:
            async with session.begin_nested():
                payment.status = statuses.PAYMENT_STATUS_OVERDUE
                payment.penalty = overdue_penalty(payment.amount, payment.due_date, now.date())
                booking = payment.booking
                cancel = booking.status == BookingStatus.PENDING.value
                if cancel:
                    booking.status = BookingStatus.CANCELLED.value
            overdue += 1
            if cancel:
                cancelled += 1
                logger.info(
                    "booking_cancelled_unpaid_immediate_payment",
                    extra={"extra": {"payment_id": payment_id, "booking_id": booking_id}},
                )
            else:
                logger.info(
                    "immediate_payment_booking_not_pending",
                    extra={"extra": {"payment_id": payment_id, "booking_id": booking_id}},
                )
        except Exception as exc:  # noqa: BLE001
            failed += 1
            metrics.record_job_error("immediate-payments")
            logger.warning(
                "immediate_payment_check_failed",
                extra={
                    "extra": {
                        "payment_id": payment_id,
                        "booking_id": booking_id,
                        "reason": type(exc).__name__,
                    }
                },
            )

    await session.commit()
    metrics.record_payment_status(statuses.PAYMENT_STATUS_OVERDUE, overdue)
    metrics.record_booking("cancelled", cancelled)
    return {"overdue": overdue, "cancelled": cancelled, "failed": failed}


async def run_overdue_payments(session: AsyncSession, *, today: date | None = None) -> dict[str, int]:
    overdue = await mark_overdue_payments(session, today=today)
    await session.commit()
    return {"overdue": len(overdue)}
