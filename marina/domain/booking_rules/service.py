from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from marina.domain.booking_rules.db_models import BookingRule, BookingRuleType
from marina.domain.booking_rules.schemas import BookingRuleCreate
from marina.domain.clubs.db_models import Tariff
from marina.domain.clubs.service import get_club, get_tariff
from marina.domain.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ClubWideScope:
    """Rules stored without a tariff; they apply to bookings made without one."""

    @property
    def label(self) -> str:
        return "club"


@dataclass(frozen=True)
class TariffScope:
    tariff_id: int

    @property
    def label(self) -> str:
        return "tariff"


RuleScope = Union[ClubWideScope, TariffScope]


def scope_for_tariff(tariff: Tariff | None) -> RuleScope:
    if tariff is None:
        return ClubWideScope()
    return TariffScope(tariff_id=tariff.tariff_id)


async def rules_for(
    session: AsyncSession,
    club_id: int,
    scope: RuleScope,
    *,
    rule_type: BookingRuleType | None = None,
) -> list[BookingRule]:
    """Rules stored under exactly this scope, newest first."""

    stmt = select(BookingRule).where(BookingRule.club_id == club_id)
    match scope:
        case TariffScope(tariff_id=tariff_id):
            stmt = stmt.where(BookingRule.tariff_id == tariff_id)
        case ClubWideScope():
            stmt = stmt.where(BookingRule.tariff_id.is_(None))
    if rule_type is not None:
        stmt = stmt.where(BookingRule.rule_type == rule_type.value)
    stmt = stmt.order_by(BookingRule.created_at.desc(), BookingRule.rule_id.desc())
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_booking_rule(
    session: AsyncSession, club_id: int, payload: BookingRuleCreate
) -> BookingRule:
    club = await get_club(session, club_id)
    if payload.tariff_id is not None:
        tariff = await get_tariff(session, payload.tariff_id)
        if tariff.club_id != club.club_id:
            raise ConfigurationError(
                detail=f"Tariff {tariff.tariff_id} does not belong to club {club.club_id}"
            )

    rule = BookingRule(
        club_id=club.club_id,
        tariff_id=payload.tariff_id,
        rule_type=payload.rule_type.value,
        description=payload.description,
        parameters=payload.parameters,
    )
    session.add(rule)
    await session.flush()
    logger.info(
        "booking_rule_created",
        extra={
            "extra": {
                "club_id": club.club_id,
                "tariff_id": payload.tariff_id,
                "rule_id": rule.rule_id,
                "rule_type": rule.rule_type,
            }
        },
    )
    return rule
