import logging
from decimal import Decimal

import pytest
from pydantic import ValidationError

from marina.domain.booking_rules.db_models import BookingRule, BookingRuleType
from marina.domain.booking_rules.resolver import NO_DEPOSIT, compute_deposit, resolve_deposit
from marina.domain.booking_rules.schemas import BookingRuleCreate
from marina.domain.booking_rules.service import (
    ClubWideScope,
    TariffScope,
    create_booking_rule,
    rules_for,
)
from marina.domain.clubs.schemas import TariffCreate
from marina.domain.clubs.service import create_tariff
from marina.domain.errors import ConfigurationError, NotFoundError
from marina.domain.payments import observer as events


@pytest.mark.anyio
async def test_club_wide_rule_applies_to_booking_without_tariff(async_session_maker, seed, observer):
    club = await seed.club()
    await seed.deposit_rule(club, parameters={"depositAmount": "2500"})

    async with async_session_maker() as session:
        deposit = await resolve_deposit(
            session, club_id=club.club_id, tariff=None, total_price=Decimal("20000"), observer=observer
        )

    assert deposit.amount == Decimal("2500")
    assert deposit.basis == "fixed"
    assert deposit.scope == "club"
    assert deposit.required
    assert observer.fields_for(events.DEPOSIT_RULE_RESOLVED)["deposit_amount"] == Decimal("2500")


@pytest.mark.anyio
async def test_club_wide_rule_does_not_apply_to_tariff_booking(async_session_maker, seed, observer):
    club = await seed.club()
    tariff = await seed.season_tariff(club)
    await seed.deposit_rule(club, parameters={"depositAmount": "2500"})

    async with async_session_maker() as session:
        deposit = await resolve_deposit(
            session, club_id=club.club_id, tariff=tariff, total_price=Decimal("50000"), observer=observer
        )

    assert deposit == NO_DEPOSIT
    assert not deposit.required


@pytest.mark.anyio
async def test_club_wide_fallback_is_opt_in(async_session_maker, seed, observer):
    club = await seed.club()
    tariff = await seed.season_tariff(club)
    await seed.deposit_rule(club, parameters={"depositPercentage": "20"})

    async with async_session_maker() as session:
        deposit = await resolve_deposit(
            session,
            club_id=club.club_id,
            tariff=tariff,
            total_price=Decimal("50000"),
            observer=observer,
            club_wide_fallback=True,
        )

    assert deposit.amount == Decimal("10000")
    assert deposit.basis == "percentage"
    assert deposit.percentage == Decimal("20")
    assert deposit.scope == "club"


@pytest.mark.anyio
async def test_tariff_rule_uses_percentage_of_total(async_session_maker, seed, observer):
    club = await seed.club()
    tariff = await seed.monthly_tariff(club, {3: Decimal("3000"), 6: Decimal("3000"), 9: Decimal("3000")})
    await seed.deposit_rule(club, tariff=tariff, parameters={"depositPercentage": 10})

    async with async_session_maker() as session:
        deposit = await resolve_deposit(
            session, club_id=club.club_id, tariff=tariff, total_price=Decimal("9000"), observer=observer
        )

    assert deposit.amount == Decimal("900")
    assert deposit.scope == "tariff"


def test_percentage_deposit_is_rounded_half_up_to_cents():
    rule = BookingRule(rule_id=1, tariff_id=None, parameters={"depositPercentage": "50"})

    deposit = compute_deposit(rule, Decimal("0.03"))

    assert deposit.amount == Decimal("0.02")
    assert deposit.basis == "percentage"


def test_fixed_deposit_is_rounded_to_cents():
    rule = BookingRule(rule_id=2, tariff_id=None, parameters={"depositAmount": "10.005"})

    assert compute_deposit(rule, Decimal("100")).amount == Decimal("10.01")


@pytest.mark.anyio
async def test_newest_rule_wins_when_several_match(async_session_maker, seed, observer):
    club = await seed.club()
    older = await seed.deposit_rule(club, parameters={"depositAmount": "100"})
    newer = await seed.deposit_rule(club, parameters={"depositAmount": "300"})

    async with async_session_maker() as session:
        deposit = await resolve_deposit(
            session, club_id=club.club_id, tariff=None, total_price=Decimal("1000"), observer=observer
        )

    assert deposit.rule_id == newer.rule_id
    assert deposit.amount == Decimal("300")
    ambiguous = [event for event in observer.events if event[0] == events.DEPOSIT_RULE_AMBIGUOUS]
    assert len(ambiguous) == 1
    _, level, fields = ambiguous[0]
    assert level == logging.WARNING
    assert fields["chosen_rule_id"] == newer.rule_id
    assert set(fields["rule_ids"]) == {older.rule_id, newer.rule_id}


@pytest.mark.anyio
@pytest.mark.parametrize(
    "parameters",
    [None, {}, {"depositPercentage": "150"}, {"depositAmount": "-10"}, {"note": "call the office"}],
)
async def test_invalid_rule_parameters_fail_fast(async_session_maker, seed, observer, parameters):
    club = await seed.club()
    await seed.deposit_rule(club, parameters=parameters)

    async with async_session_maker() as session:
        with pytest.raises(ConfigurationError):
            await resolve_deposit(
                session, club_id=club.club_id, tariff=None, total_price=Decimal("1000"), observer=observer
            )

    assert events.SCHEDULE_VALIDATION_FAILED in observer.names()
    assert events.DEPOSIT_RULE_RESOLVED not in observer.names()


@pytest.mark.anyio
async def test_rules_for_separates_scopes(async_session_maker, seed):
    club = await seed.club()
    tariff = await seed.season_tariff(club)
    club_rule = await seed.deposit_rule(club, parameters={"depositAmount": "1"})
    tariff_rule = await seed.deposit_rule(club, tariff=tariff, parameters={"depositAmount": "2"})

    async with async_session_maker() as session:
        club_rules = await rules_for(session, club.club_id, ClubWideScope())
        tariff_rules = await rules_for(
            session, club.club_id, TariffScope(tariff.tariff_id), rule_type=BookingRuleType.REQUIRE_DEPOSIT
        )

    assert [rule.rule_id for rule in club_rules] == [club_rule.rule_id]
    assert [rule.rule_id for rule in tariff_rules] == [tariff_rule.rule_id]


def test_booking_rule_create_validates_deposit_parameters():
    with pytest.raises(ValidationError):
        BookingRuleCreate(rule_type="require_deposit", parameters={})
    with pytest.raises(ValidationError):
        BookingRuleCreate(
            rule_type="REQUIRE_DEPOSIT", parameters={"depositAmount": 10, "depositPercentage": 5}
        )
    with pytest.raises(ValidationError):
        BookingRuleCreate(rule_type="REQUIRE_DEPOSIT", parameters={"depositPercentage": 101})

    payload = BookingRuleCreate(rule_type="require_deposit", parameters={"depositPercentage": 15})
    assert payload.rule_type is BookingRuleType.REQUIRE_DEPOSIT
    assert BookingRuleCreate(rule_type="CUSTOM", parameters={"anything": True}).parameters == {"anything": True}


@pytest.mark.anyio
async def test_create_booking_rule_checks_tariff_club(async_session_maker, seed):
    club = await seed.club()
    other_club = await seed.club(name="Other")
    foreign_tariff = await seed.season_tariff(other_club)

    async with async_session_maker() as session:
        with pytest.raises(ConfigurationError):
            await create_booking_rule(
                session,
                club.club_id,
                BookingRuleCreate(
                    rule_type="REQUIRE_DEPOSIT",
                    tariff_id=foreign_tariff.tariff_id,
                    parameters={"depositAmount": 5},
                ),
            )
        with pytest.raises(NotFoundError):
            await create_booking_rule(session, 999999, BookingRuleCreate())

        rule = await create_booking_rule(
            session,
            club.club_id,
            BookingRuleCreate(rule_type="REQUIRE_DEPOSIT", parameters={"depositAmount": 5}),
        )
        await session.commit()

    assert rule.rule_id is not None
    assert rule.tariff_id is None


@pytest.mark.anyio
async def test_create_tariff_persists_monthly_amounts(async_session_maker, seed):
    club = await seed.club(name="North Pier")
    async with async_session_maker() as session:
        tariff = await create_tariff(
            session,
            club.club_id,
            TariffCreate(
                name="Summer", type="monthly", amount=Decimal("0"), months=[6, 7],
                monthly_amounts={6: Decimal("1000"), 7: Decimal("1500")},
            ),
        )
        await session.commit()

    assert tariff.type == "MONTHLY"
    assert tariff.months == [6, 7]
    assert tariff.monthly_amounts == {"6": "1000", "7": "1500"}
