"""Deposit rule resolution for a booking.

The lookup is by exact scope: a booking with a tariff only sees rules stored for
that tariff, and a booking without one only sees the club-wide rules. Setting
``deposit_rule_club_wide_fallback`` lets a tariff booking fall back to the
club-wide rule when its tariff has no deposit rule of its own.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Literal

from sqlalchemy.ext.asyncio import AsyncSession

from marina.domain.booking_rules.db_models import BookingRule, BookingRuleType
from marina.domain.booking_rules.schemas import parse_deposit_parameters
from marina.domain.booking_rules.service import (
    ClubWideScope,
    RuleScope,
    TariffScope,
    rules_for,
    scope_for_tariff,
)
from marina.domain.clubs.db_models import Tariff
from marina.domain.errors import ConfigurationError
from marina.domain.payments import observer as events
from marina.domain.payments.observer import ScheduleObserver, default_observer
from marina.domain.payments.schedule import to_cents
from marina.settings import settings

ZERO = Decimal("0")


@dataclass(frozen=True)
class ResolvedDeposit:
    amount: Decimal
    basis: Literal["fixed", "percentage", "none"] = "none"
    rule_id: int | None = None
    percentage: Decimal | None = None
    scope: Literal["club", "tariff"] | None = None

    @property
    def required(self) -> bool:
        return self.amount > 0


NO_DEPOSIT = ResolvedDeposit(amount=ZERO)


def compute_deposit(rule: BookingRule | None, total_price: Decimal) -> ResolvedDeposit:
    if rule is None:
        return NO_DEPOSIT
    params = parse_deposit_parameters(rule.parameters)
    scope = "club" if rule.tariff_id is None else "tariff"
    if params.deposit_amount is not None:
        return ResolvedDeposit(
            amount=to_cents(params.deposit_amount),
            basis="fixed",
            rule_id=rule.rule_id,
            scope=scope,
        )
    percentage = params.deposit_percentage
    if percentage is None:
        raise ConfigurationError(detail=f"Deposit rule {rule.rule_id} has no amount")
    return ResolvedDeposit(
        amount=to_cents(total_price * percentage / Decimal("100")),
        basis="percentage",
        rule_id=rule.rule_id,
        percentage=percentage,
        scope=scope,
    )


async def _deposit_rule(
    session: AsyncSession,
    club_id: int,
    scope: RuleScope,
    observer: ScheduleObserver,
) -> BookingRule | None:
    rules = await rules_for(session, club_id, scope, rule_type=BookingRuleType.REQUIRE_DEPOSIT)
    if not rules:
        return None
    if len(rules) > 1:
        observer.emit(
            events.DEPOSIT_RULE_AMBIGUOUS,
            level=logging.WARNING,
            club_id=club_id,
            scope=scope.label,
            rule_ids=[rule.rule_id for rule in rules],
            chosen_rule_id=rules[0].rule_id,
        )
    return rules[0]


async def resolve_deposit(
    session: AsyncSession,
    *,
    club_id: int,
    tariff: Tariff | None,
    total_price: Decimal,
    observer: ScheduleObserver | None = None,
    club_wide_fallback: bool | None = None,
) -> ResolvedDeposit:
    observer = observer or default_observer()
    fallback = (
        settings.deposit_rule_club_wide_fallback if club_wide_fallback is None else club_wide_fallback
    )
    scope = scope_for_tariff(tariff)
    rule = await _deposit_rule(session, club_id, scope, observer)
    if rule is None and fallback and isinstance(scope, TariffScope):
        rule = await _deposit_rule(session, club_id, ClubWideScope(), observer)

    try:
        deposit = compute_deposit(rule, total_price)
    except ConfigurationError as exc:
        observer.emit(
            events.SCHEDULE_VALIDATION_FAILED,
            level=logging.WARNING,
            club_id=club_id,
            tariff_id=tariff.tariff_id if tariff else None,
            rule_id=rule.rule_id if rule else None,
            reason=exc.detail,
        )
        raise

    observer.emit(
        events.DEPOSIT_RULE_RESOLVED,
        club_id=club_id,
        tariff_id=tariff.tariff_id if tariff else None,
        rule_id=deposit.rule_id,
        basis=deposit.basis,
        scope=deposit.scope,
        deposit_amount=deposit.amount,
    )
    return deposit
