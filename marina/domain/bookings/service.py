import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from marina.domain.booking_rules.resolver import ResolvedDeposit, resolve_deposit
from marina.domain.bookings.db_models import Booking
from marina.domain.bookings.statuses import BookingStatus, assert_valid_booking_transition
from marina.domain.clubs.db_models import Club, Tariff
from marina.domain.clubs.tariffs import plan_for_tariff
from marina.domain.errors import ConfigurationError, ConsistencyError, InvalidTransitionError, NotFoundError
from marina.domain.payments import observer as events
from marina.domain.payments import service as payment_service
from marina.domain.payments.db_models import Payment
from marina.domain.payments.observer import ScheduleObserver, default_observer
from marina.domain.payments.schedule import generate_schedule, plan_label
from marina.infra.metrics import metrics

logger = logging.getLogger(__name__)


@dataclass
class BookingWithSchedule:
    booking: Booking
    deposit: ResolvedDeposit
    payments: list[Payment]


def _validate_booking_request(
    club: Club,
    tariff: Tariff | None,
    start_date: date,
    end_date: date,
    total_price: Decimal,
) -> None:
    if total_price < 0:
        raise ConsistencyError(detail=f"Booking total must not be negative: {total_price}")
    if start_date >= end_date:
        raise ConsistencyError(detail="Booking start date must be before its end date")
    if tariff is not None and tariff.club_id != club.club_id:
        raise ConfigurationError(
            detail=f"Tariff {tariff.tariff_id} does not belong to club {club.club_id}"
        )


async def get_booking(session: AsyncSession, booking_id: int) -> Booking:
    booking = await session.get(Booking, booking_id)
    if booking is None:
        raise NotFoundError(detail=f"Booking {booking_id} not found")
    return booking


async def create_booking(
    session: AsyncSession,
    *,
    club: Club,
    tariff: Tariff | None,
    payer_id: int,
    vessel_id: int,
    berth_id: int,
    start_date: date,
    end_date: date,
    total_price: Decimal,
    today: date | None = None,
    observer: ScheduleObserver | None = None,
    manage_transaction: bool = True,
) -> BookingWithSchedule:
    """Create a PENDING booking together with its payment schedule.

    The booking row and every payment obligation are written in one
    transaction; any error while resolving, generating or storing the schedule
    leaves neither behind.
    """

    observer = observer or default_observer()
    total_price = Decimal(str(total_price))
    _validate_booking_request(club, tariff, start_date, end_date, total_price)

    async def _create() -> BookingWithSchedule:
        booking = Booking(
            club_id=club.club_id,
            tariff_id=tariff.tariff_id if tariff else None,
            vessel_id=vessel_id,
            berth_id=berth_id,
            payer_id=payer_id,
            start_date=start_date,
            end_date=end_date,
            total_price=total_price,
            status=BookingStatus.PENDING.value,
        )
        session.add(booking)
        await session.flush()

        plan = plan_for_tariff(tariff) if tariff is not None else None
        label = plan_label(plan)
        deposit = await resolve_deposit(
            session,
            club_id=club.club_id,
            tariff=tariff,
            total_price=total_price,
            observer=observer,
        )
        items = generate_schedule(booking, club, plan, deposit.amount, today=today)
        observer.emit(
            events.SCHEDULE_COMPUTED,
            booking_id=booking.booking_id,
            plan=label,
            deposit_amount=deposit.amount,
            items=[
                {
                    "type": item.type.value,
                    "amount": item.amount,
                    "due_date": item.due_date,
                    "order": item.payment_order,
                    "month": item.month,
                }
                for item in items
            ],
        )
        payments = await payment_service.materialize_schedule(
            session,
            booking,
            items,
            payer_id=payer_id,
            currency=club.currency,
            plan=label,
            observer=observer,
        )
        metrics.record_booking("created")
        return BookingWithSchedule(booking=booking, deposit=deposit, payments=payments)

    if manage_transaction:
        transaction_ctx = session.begin_nested() if session.in_transaction() else session.begin()
        async with transaction_ctx:
            return await _create()
    return await _create()


async def confirm_booking(session: AsyncSession, booking_id: int) -> Booking:
    booking = await get_booking(session, booking_id)
    assert_valid_booking_transition(booking.status, BookingStatus.CONFIRMED.value)
    if booking.status == BookingStatus.CONFIRMED.value:
        return booking
    if not await payment_service.can_confirm(session, booking_id):
        raise InvalidTransitionError(
            detail=f"Booking {booking_id} cannot be confirmed until its required payments are paid",
        )
    booking.status = BookingStatus.CONFIRMED.value
    await session.flush()
    metrics.record_booking("confirmed")
    logger.info("booking_confirmed", extra={"extra": {"booking_id": booking_id}})
    return booking


async def cancel_booking(session: AsyncSession, booking_id: int) -> Booking:
    booking = await get_booking(session, booking_id)
    assert_valid_booking_transition(booking.status, BookingStatus.CANCELLED.value)
    booking.status = BookingStatus.CANCELLED.value
    await session.flush()
    metrics.record_booking("cancelled")
    return booking
