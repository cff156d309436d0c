from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import sqlalchemy as sa

from marina.domain.bookings import service as booking_service
from marina.domain.bookings.db_models import Booking
from marina.domain.payments.db_models import Payment
from marina.jobs import immediate_payments, run


async def _book(async_session_maker, club, tariff=None, *, total: str, today, start_in_days: int = 90):
    async with async_session_maker() as session:
        return await booking_service.create_booking(
            session,
            club=club,
            tariff=tariff,
            payer_id=9,
            vessel_id=3,
            berth_id=4,
            start_date=today + timedelta(days=start_in_days),
            end_date=today + timedelta(days=start_in_days + 110),
            total_price=Decimal(total),
            today=today,
        )


async def _statuses(async_session_maker, booking_id: int) -> tuple[str, list[str]]:
    async with async_session_maker() as session:
        booking_status = await session.scalar(sa.select(Booking.status).where(Booking.booking_id == booking_id))
        result = await session.execute(
            sa.select(Payment.status).where(Payment.booking_id == booking_id).order_by(Payment.payment_order)
        )
        return booking_status, list(result.scalars().all())


@pytest.mark.anyio
async def test_unpaid_immediate_payment_cancels_booking_after_grace(async_session_maker, seed, today):
    club = await seed.club()
    tariff = await seed.season_tariff(club, amount=Decimal("30000"))
    created = await _book(async_session_maker, club, tariff, total="30000", today=today)

    later = datetime.now(timezone.utc) + timedelta(minutes=5)
    async with async_session_maker() as session:
        result = await immediate_payments.run_immediate_payment_check(session, now=later, grace_minutes=2)

    assert result == {"overdue": 1, "cancelled": 1, "failed": 0}
    assert await _statuses(async_session_maker, created.booking.booking_id) == ("CANCELLED", ["OVERDUE"])


@pytest.mark.anyio
async def test_immediate_payment_within_grace_is_left_alone(async_session_maker, seed, today):
    club = await seed.club()
    tariff = await seed.season_tariff(club, amount=Decimal("30000"))
    created = await _book(async_session_maker, club, tariff, total="30000", today=today)

    async with async_session_maker() as session:
        result = await immediate_payments.run_immediate_payment_check(
            session, now=datetime.now(timezone.utc), grace_minutes=30
        )

    assert result == {"overdue": 0, "cancelled": 0, "failed": 0}
    assert await _statuses(async_session_maker, created.booking.booking_id) == ("PENDING", ["PENDING"])


@pytest.mark.anyio
async def test_future_installments_are_not_immediate(async_session_maker, seed, today):
    club = await seed.club()
    created = await _book(async_session_maker, club, total="4000", today=today)

    later = datetime.now(timezone.utc) + timedelta(minutes=5)
    async with async_session_maker() as session:
        result = await immediate_payments.run_immediate_payment_check(session, now=later, grace_minutes=2)

    assert result["overdue"] == 0
    assert await _statuses(async_session_maker, created.booking.booking_id) == ("PENDING", ["PENDING"])


@pytest.mark.anyio
async def test_late_booking_full_payment_is_not_immediate(async_session_maker, seed, today):
    club = await seed.club()
    # Starts inside the full payment lead time, so FULL is already past due on creation.
    created = await _book(async_session_maker, club, total="4000", today=today, start_in_days=10)
    payments = created.payments
    assert payments[0].due_date < today

    later = datetime.now(timezone.utc) + timedelta(minutes=5)
    async with async_session_maker() as session:
        result = await immediate_payments.run_immediate_payment_check(session, now=later, grace_minutes=2)

    assert result == {"overdue": 0, "cancelled": 0, "failed": 0}
    assert await _statuses(async_session_maker, created.booking.booking_id) == ("PENDING", ["PENDING"])


@pytest.mark.anyio
async def test_confirmed_booking_is_not_cancelled(async_session_maker, seed, today):
    club = await seed.club()
    await seed.deposit_rule(club, parameters={"depositAmount": "1000"})
    created = await _book(async_session_maker, club, total="4000", today=today)
    booking_id = created.booking.booking_id

    async with async_session_maker() as session:
        booking = await session.get(Booking, booking_id)
        booking.status = "CONFIRMED"
        await session.commit()

    later = datetime.now(timezone.utc) + timedelta(minutes=5)
    async with async_session_maker() as session:
        result = await immediate_payments.run_immediate_payment_check(session, now=later, grace_minutes=2)

    assert result == {"overdue": 1, "cancelled": 0, "failed": 0}
    assert await _statuses(async_session_maker, booking_id) == ("CONFIRMED", ["OVERDUE", "PENDING"])


@pytest.mark.anyio
async def test_overdue_payments_job_marks_past_due(async_session_maker, seed, today):
    club = await seed.club()
    created = await _book(async_session_maker, club, total="4000", today=today)

    async with async_session_maker() as session:
        result = await immediate_payments.run_overdue_payments(session, today=today + timedelta(days=100))

    assert result == {"overdue": 1}
    assert await _statuses(async_session_maker, created.booking.booking_id) == ("PENDING", ["OVERDUE"])


@pytest.mark.anyio
async def test_job_runner_reports_results(async_session_maker):
    async def fake_runner(session):
        return {"overdue": 0}

    result = await run._run_job("overdue-payments", async_session_maker, fake_runner)

    assert result == {"overdue": 0}


def test_job_runner_rejects_unknown_job():
    with pytest.raises(ValueError):
        run._job_runner("reindex")
