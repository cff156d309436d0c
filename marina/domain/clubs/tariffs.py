"""Closed representation of a tariff's payment plan.

Stored tariffs carry a free-form ``type`` string plus optional month data. The
schedule engine never looks at those columns directly: it asks for a
``TariffPlan`` and matches on the concrete plan class, so an unknown type or an
incomplete monthly configuration fails here instead of yielding a zero amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Mapping, Union

from marina.domain.clubs.db_models import Tariff
from marina.domain.errors import ConfigurationError


class TariffType(str, Enum):
    SEASON = "SEASON"
    MONTHLY = "MONTHLY"


@dataclass(frozen=True)
class SeasonPlan:
    tariff_id: int


@dataclass(frozen=True)
class MonthlyPlan:
    tariff_id: int
    months: tuple[int, ...]
    amounts: Mapping[int, Decimal]

    def amount_for(self, month: int) -> Decimal:
        return self.amounts[month]


TariffPlan = Union[SeasonPlan, MonthlyPlan]


def parse_tariff_type(value: Any) -> TariffType:
    if isinstance(value, TariffType):
        return value
    try:
        return TariffType(str(value).strip().upper())
    except ValueError as exc:
        raise ConfigurationError(detail=f"Unknown tariff type: {value!r}") from exc


def _to_decimal(value: Any, *, field: str) -> Decimal:
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ConfigurationError(detail=f"{field} is not a number: {value!r}") from exc
    if not parsed.is_finite():
        raise ConfigurationError(detail=f"{field} is not a finite number: {value!r}")
    return parsed


def parse_months(raw: Any) -> tuple[int, ...]:
    if not raw:
        raise ConfigurationError(detail="Monthly tariff has no months selected")
    months: list[int] = []
    for entry in raw:
        try:
            month = int(entry)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(detail=f"Invalid tariff month: {entry!r}") from exc
        if month < 1 or month > 12:
            raise ConfigurationError(detail=f"Tariff month out of range: {month}")
        if month in months:
            raise ConfigurationError(detail=f"Tariff month selected twice: {month}")
        months.append(month)
    return tuple(months)


def parse_monthly_amounts(raw: Mapping[Any, Any] | None, months: tuple[int, ...]) -> dict[int, Decimal]:
    by_month: dict[int, Decimal] = {}
    for key, value in (raw or {}).items():
        try:
            month = int(key)
        except (TypeError, ValueError) as exc:
            raise ConfigurationError(detail=f"Invalid month key in monthly amounts: {key!r}") from exc
        by_month[month] = _to_decimal(value, field=f"monthly amount for month {month}")

    for month in months:
        amount = by_month.get(month)
        if amount is None or amount <= 0:
            raise ConfigurationError(
                detail=f"Monthly tariff has no positive amount for month {month}",
                errors=[{"field": "monthly_amounts", "month": month}],
            )
    return {month: by_month[month] for month in months}


def plan_for_tariff(tariff: Tariff) -> TariffPlan:
    tariff_type = parse_tariff_type(tariff.type)
    if tariff_type is TariffType.SEASON:
        return SeasonPlan(tariff_id=tariff.tariff_id)
    months = parse_months(tariff.months)
    return MonthlyPlan(
        tariff_id=tariff.tariff_id,
        months=months,
        amounts=parse_monthly_amounts(tariff.monthly_amounts, months),
    )
