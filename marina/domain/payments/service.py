from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Sequence

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from marina.domain.bookings.db_models import Booking
from marina.domain.bookings.statuses import BookingStatus
from marina.domain.errors import (
    ConsistencyError,
    DuplicateScheduleError,
    InvalidTransitionError,
    NotFoundError,
    StorageError,
)
from marina.domain.payments import observer as events
from marina.domain.payments import statuses
from marina.domain.payments.db_models import Payment, PaymentSchedule
from marina.domain.payments.observer import ScheduleObserver, default_observer
from marina.domain.payments.schedule import (
    ScheduleItem,
    to_cents,
    verify_schedule_order,
    verify_schedule_total,
)
from marina.domain.payments.schemas import PaymentScheduleEntry, PaymentScheduleSummary
from marina.domain.payments.statuses import PaymentStatus
from marina.infra.metrics import metrics
from marina.settings import settings

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _is_duplicate_violation(exc: IntegrityError) -> bool:
    message = str(exc.orig) if exc.orig is not None else str(exc)
    return "payment_schedules" in message or "uq_payments_booking_order" in message or (
        "payments.booking_id" in message and "payments.payment_order" in message
    )


async def materialize_schedule(
    session: AsyncSession,
    booking: Booking,
    items: Sequence[ScheduleItem],
    *,
    payer_id: int,
    currency: str,
    plan: str,
    observer: ScheduleObserver | None = None,
    strict_totals: bool | None = None,
) -> list[Payment]:
    """Persist one PENDING payment per schedule item.

    Runs inside the caller's transaction. A booking gets at most one schedule:
    the ``payment_schedules`` row is the guard, so a second call raises
    ``DuplicateScheduleError`` instead of adding payments.
    """

    observer = observer or default_observer()
    strict = settings.payment_schedule_strict_totals if strict_totals is None else strict_totals
    items = list(items)
    stored_total = sum((to_cents(item.amount) for item in items), ZERO)

    try:
        verify_schedule_order(items)
        verify_schedule_total(items, booking.total_price)
    except ConsistencyError as exc:
        mismatch = exc.errors is not None and any(err.get("field") == "total_price" for err in exc.errors)
        if mismatch and not strict:
            observer.emit(
                events.SCHEDULE_TOTAL_MISMATCH,
                level=logging.WARNING,
                booking_id=booking.booking_id,
                plan=plan,
                expected=booking.total_price,
                actual=stored_total,
            )
        else:
            observer.emit(
                events.SCHEDULE_VALIDATION_FAILED,
                level=logging.WARNING,
                booking_id=booking.booking_id,
                plan=plan,
                reason=exc.detail,
            )
            raise

    existing = await session.get(PaymentSchedule, booking.booking_id)
    if existing is not None:
        raise DuplicateScheduleError(
            detail=f"Booking {booking.booking_id} already has a payment schedule",
        )

    session.add(
        PaymentSchedule(
            booking_id=booking.booking_id,
            plan=plan,
            item_count=len(items),
            total_amount=stored_total,
        )
    )
    payments = [
        Payment(
            booking_id=booking.booking_id,
            payer_id=payer_id,
            amount=to_cents(item.amount),
            currency=currency,
            method=(item.method.value if item.method else settings.default_payment_method),
            status=statuses.PAYMENT_STATUS_PENDING,
            due_date=item.due_date,
            payment_type=item.type.value,
            payment_order=item.payment_order,
            payment_month=item.month,
        )
        for item in items
    ]
    session.add_all(payments)
    try:
        await session.flush()
    except IntegrityError as exc:
        if _is_duplicate_violation(exc):
            raise DuplicateScheduleError(
                detail=f"Booking {booking.booking_id} already has a payment schedule",
            ) from exc
        raise StorageError(detail=f"Failed to store payment schedule: {type(exc).__name__}") from exc
    except SQLAlchemyError as exc:
        raise StorageError(detail=f"Failed to store payment schedule: {type(exc).__name__}") from exc

    observer.emit(
        events.SCHEDULE_MATERIALIZED,
        booking_id=booking.booking_id,
        plan=plan,
        items=len(payments),
        payment_ids=[payment.payment_id for payment in payments],
        total_amount=stored_total,
    )
    return payments


async def list_payments(session: AsyncSession, booking_id: int) -> list[Payment]:
    stmt = (
        select(Payment)
        .where(Payment.booking_id == booking_id)
        .order_by(Payment.payment_order.asc(), Payment.due_date.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


def payments_allow_confirmation(payments: Iterable[Payment]) -> bool:
    payments = list(payments)
    deposit = next((p for p in payments if p.payment_order == statuses.DEPOSIT_ORDER), None)
    first = next((p for p in payments if p.payment_order == statuses.FIRST_PRINCIPAL_ORDER), None)

    if deposit is not None and deposit.status != statuses.PAYMENT_STATUS_PAID:
        return False
    if first is not None and first.status != statuses.PAYMENT_STATUS_PAID:
        return False
    if deposit is None and first is None:
        return any(p.status == statuses.PAYMENT_STATUS_PAID for p in payments)
    return True


async def can_confirm(session: AsyncSession, booking_id: int) -> bool:
    return payments_allow_confirmation(await list_payments(session, booking_id))


def summarize_payments(
    booking_id: int, payments: Sequence[Payment], *, today: date | None = None
) -> PaymentScheduleSummary:
    today = today or date.today()
    total_amount = sum((Decimal(p.amount) for p in payments), ZERO)
    paid_amount = sum(
        (Decimal(p.amount) for p in payments if p.status == statuses.PAYMENT_STATUS_PAID), ZERO
    )
    # Already overdue obligations are not "next".
    upcoming = [
        p.due_date
        for p in payments
        if p.status == statuses.PAYMENT_STATUS_PENDING and p.due_date >= today
    ]
    return PaymentScheduleSummary(
        booking_id=booking_id,
        payments=[PaymentScheduleEntry.model_validate(p) for p in payments],
        total_amount=total_amount,
        paid_amount=paid_amount,
        remaining_amount=total_amount - paid_amount,
        next_payment_due=min(upcoming) if upcoming else None,
    )


async def get_payment_schedule(
    session: AsyncSession, booking_id: int, *, today: date | None = None
) -> PaymentScheduleSummary:
    return summarize_payments(booking_id, await list_payments(session, booking_id), today=today)


def overdue_penalty(amount: Decimal, due_date: date, today: date, rate: Decimal | None = None) -> Decimal:
    days_overdue = (today - due_date).days
    if days_overdue <= 0:
        return ZERO
    daily_rate = settings.overdue_penalty_daily_rate if rate is None else rate
    return to_cents(Decimal(amount) * daily_rate * days_overdue)


def _assert_valid_payment_transition(current: str, target: PaymentStatus) -> None:
    if current == target.value:
        return
    allowed = statuses.PAYMENT_TRANSITIONS.get(statuses.normalize_status(current), set())
    if target not in allowed:
        raise InvalidTransitionError(detail=f"Cannot transition payment from {current} to {target.value}")


async def update_payment_status(
    session: AsyncSession,
    payment_id: int,
    status: PaymentStatus | str,
    *,
    transaction_id: str | None = None,
    paid_date: date | None = None,
    today: date | None = None,
) -> Payment:
    today = today or date.today()
    try:
        target = statuses.normalize_status(status)
    except ValueError as exc:
        raise InvalidTransitionError(detail=str(exc)) from exc

    stmt = (
        select(Payment)
        .where(Payment.payment_id == payment_id)
        .options(selectinload(Payment.booking))
    )
    payment = await session.scalar(stmt)
    if payment is None:
        raise NotFoundError(detail=f"Payment {payment_id} not found")

    _assert_valid_payment_transition(payment.status, target)
    payment.status = target.value
    if transaction_id:
        payment.transaction_id = transaction_id
    if target is PaymentStatus.PAID:
        payment.paid_date = paid_date or today
    elif paid_date:
        payment.paid_date = paid_date
    if target is PaymentStatus.OVERDUE:
        payment.penalty = overdue_penalty(payment.amount, payment.due_date, today)
    await session.flush()
    metrics.record_payment_status(target.value)

    booking = payment.booking
    if target is PaymentStatus.PAID and booking.status == BookingStatus.PENDING.value:
        if await can_confirm(session, booking.booking_id):
            booking.status = BookingStatus.CONFIRMED.value
            await session.flush()
            metrics.record_booking("confirmed")
            logger.info(
                "booking_confirmed_by_payment",
                extra={"extra": {"booking_id": booking.booking_id, "payment_id": payment.payment_id}},
            )
    return payment


async def mark_overdue_payments(
    session: AsyncSession,
    *,
    club_id: int | None = None,
    today: date | None = None,
) -> list[Payment]:
    today = today or date.today()
    stmt = select(Payment).where(
        Payment.status == statuses.PAYMENT_STATUS_PENDING,
        Payment.due_date < today,
    )
    if club_id is not None:
        stmt = stmt.join(Booking, Booking.booking_id == Payment.booking_id).where(
            Booking.club_id == club_id
        )
    result = await session.execute(stmt.order_by(Payment.due_date.asc(), Payment.payment_id.asc()))
    overdue = list(result.scalars().all())
    for payment in overdue:
        payment.status = statuses.PAYMENT_STATUS_OVERDUE
        payment.penalty = overdue_penalty(payment.amount, payment.due_date, today)
    await session.flush()
    metrics.record_payment_status(statuses.PAYMENT_STATUS_OVERDUE, len(overdue))
    if overdue:
        logger.info(
            "payments_marked_overdue",
            extra={"extra": {"club_id": club_id, "count": len(overdue)}},
        )
    return overdue
