"""Pure payment schedule generation.

``generate_schedule`` turns a booking, its club, its tariff (if any) and an
already resolved deposit amount into ordered payment obligations. Nothing here
touches the database or the clock except through the ``today`` argument, so
identical inputs always produce identical schedules.

Order 0 is reserved for the deposit. Principal obligations are numbered from 1
without gaps, in the order they are emitted.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Protocol

from marina.domain.clubs.db_models import Tariff
from marina.domain.clubs.tariffs import MonthlyPlan, SeasonPlan, TariffPlan, plan_for_tariff
from marina.domain.errors import ConfigurationError, ConsistencyError
from marina.domain.payments.statuses import (
    DEPOSIT_ORDER,
    FIRST_PRINCIPAL_ORDER,
    PaymentMethod,
    PaymentType,
)
from marina.settings import settings

ZERO = Decimal("0")
CENT = Decimal("0.01")

PLAN_STANDARD = "standard"
PLAN_SEASON = "season"
PLAN_MONTHLY = "monthly"


class SchedulableBooking(Protocol):
    start_date: date
    total_price: Decimal


class SeasonAnchor(Protocol):
    season: int | None


@dataclass(frozen=True)
class ScheduleItem:
    type: PaymentType
    amount: Decimal
    due_date: date
    payment_order: int
    month: int | None = None
    method: PaymentMethod | None = None


def plan_label(plan: TariffPlan | None) -> str:
    match plan:
        case None:
            return PLAN_STANDARD
        case SeasonPlan():
            return PLAN_SEASON
        case MonthlyPlan():
            return PLAN_MONTHLY
    raise ConfigurationError(detail=f"Unsupported tariff plan: {plan!r}")


def _as_plan(tariff: Tariff | TariffPlan | None) -> TariffPlan | None:
    if tariff is None or isinstance(tariff, (SeasonPlan, MonthlyPlan)):
        return tariff
    return plan_for_tariff(tariff)


def _deposit_item(amount: Decimal, today: date) -> ScheduleItem:
    return ScheduleItem(
        type=PaymentType.DEPOSIT,
        amount=amount,
        due_date=today,
        payment_order=DEPOSIT_ORDER,
    )


def _standard_schedule(
    total_price: Decimal, deposit: Decimal, start_date: date, today: date, lead_days: int
) -> list[ScheduleItem]:
    if deposit > total_price:
        raise ConfigurationError(
            detail=f"Deposit {deposit} exceeds booking total {total_price}",
        )
    full_due = start_date - timedelta(days=lead_days)
    if deposit > 0:
        return [
            _deposit_item(deposit, today),
            ScheduleItem(
                type=PaymentType.FULL,
                amount=total_price - deposit,
                due_date=full_due,
                payment_order=FIRST_PRINCIPAL_ORDER,
            ),
        ]
    return [
        ScheduleItem(
            type=PaymentType.FULL,
            amount=total_price,
            due_date=full_due,
            payment_order=FIRST_PRINCIPAL_ORDER,
        )
    ]


def _season_schedule(total_price: Decimal, deposit: Decimal, today: date) -> list[ScheduleItem]:
    # With a deposit only the deposit is scheduled; the balance stays unscheduled.
    if deposit > 0:
        return [_deposit_item(deposit, today)]
    return [
        ScheduleItem(
            type=PaymentType.FULL,
            amount=total_price,
            due_date=today,
            payment_order=FIRST_PRINCIPAL_ORDER,
        )
    ]


def _monthly_schedule(
    plan: MonthlyPlan, deposit: Decimal, season_year: int, today: date, lead_days: int
) -> list[ScheduleItem]:
    items: list[ScheduleItem] = []
    if deposit > 0:
        items.append(_deposit_item(deposit, today))
    for order, month in enumerate(plan.months, start=FIRST_PRINCIPAL_ORDER):
        items.append(
            ScheduleItem(
                type=PaymentType.MONTHLY,
                amount=plan.amount_for(month),
                due_date=date(season_year, month, 1) - timedelta(days=lead_days),
                payment_order=order,
                month=month,
            )
        )
    return items


def generate_schedule(
    booking: SchedulableBooking,
    club: SeasonAnchor,
    tariff: Tariff | TariffPlan | None,
    deposit_amount: Decimal,
    *,
    today: date | None = None,
    full_payment_lead_days: int | None = None,
    monthly_payment_lead_days: int | None = None,
) -> list[ScheduleItem]:
    today = today or date.today()
    total_price = Decimal(str(booking.total_price))
    deposit = Decimal(str(deposit_amount))
    if total_price < 0:
        raise ConsistencyError(detail=f"Booking total must not be negative: {total_price}")
    if deposit < 0:
        raise ConfigurationError(detail=f"Deposit must not be negative: {deposit}")

    full_lead = settings.full_payment_lead_days if full_payment_lead_days is None else full_payment_lead_days
    monthly_lead = (
        settings.monthly_payment_lead_days if monthly_payment_lead_days is None else monthly_payment_lead_days
    )

    plan = _as_plan(tariff)
    match plan:
        case None:
            return _standard_schedule(total_price, deposit, booking.start_date, today, full_lead)
        case SeasonPlan():
            return _season_schedule(total_price, deposit, today)
        case MonthlyPlan():
            season_year = club.season or today.year
            return _monthly_schedule(plan, deposit, season_year, today, monthly_lead)
    raise ConfigurationError(detail=f"Unsupported tariff plan: {plan!r}")


def to_cents(amount: Decimal) -> Decimal:
    """Round to the storage scale of payment amounts."""

    return Decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)


def schedule_total(items: Iterable[ScheduleItem]) -> Decimal:
    return sum((item.amount for item in items), ZERO)


def verify_schedule_total(items: list[ScheduleItem], total_price: Decimal) -> None:
    # Compared at the scale the rows are stored with.
    expected = to_cents(Decimal(str(total_price)))
    actual = sum((to_cents(item.amount) for item in items), ZERO)
    if actual != expected:
        raise ConsistencyError(
            detail=f"Payment schedule totals {actual} but booking total is {expected}",
            errors=[{"field": "total_price", "expected": str(expected), "actual": str(actual)}],
        )


def verify_schedule_order(items: list[ScheduleItem]) -> None:
    orders = [item.payment_order for item in items]
    if not orders:
        raise ConsistencyError(detail="Payment schedule is empty")
    start = DEPOSIT_ORDER if orders[0] == DEPOSIT_ORDER else FIRST_PRINCIPAL_ORDER
    if orders != list(range(start, start + len(orders))):
        raise ConsistencyError(detail=f"Payment schedule order is not contiguous: {orders}")
    deposits = [item for item in items if item.payment_order == DEPOSIT_ORDER]
    if any(item.type is not PaymentType.DEPOSIT for item in deposits):
        raise ConsistencyError(detail="Payment order 0 is reserved for the deposit")
