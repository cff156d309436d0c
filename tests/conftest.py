import asyncio
import os
import sys
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("APP_ENV", "dev")
os.environ.setdefault("TESTING", "true")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("METRICS_ENABLED", "true")


def ensure_event_loop() -> asyncio.AbstractEventLoop:
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    if loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)

    return loop


ensure_event_loop()

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from marina.domain.booking_rules.db_models import BookingRule, BookingRuleType
from marina.domain.clubs.db_models import Club, Tariff
from marina.infra.db import Base, get_db_session
from marina.main import app
from marina.settings import settings


class RecordingObserver:
    def __init__(self) -> None:
        self.events: list[tuple[str, int, dict]] = []

    def emit(self, event: str, *, level: int = 20, **fields) -> None:
        self.events.append((event, level, fields))

    def names(self) -> list[str]:
        return [name for name, _, _ in self.events]

    def fields_for(self, event: str) -> dict:
        for name, _, fields in self.events:
            if name == event:
                return fields
        raise AssertionError(f"event {event} was not emitted")


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture()
def today() -> date:
    return datetime.now(timezone.utc).date()


@pytest.fixture(scope="session")
def test_engine():
    db_path = Path("test.db")
    if db_path.exists():
        db_path.unlink()
    engine = create_async_engine(
        "sqlite+aiosqlite:///./test.db",
        connect_args={"check_same_thread": False, "timeout": 30},
        poolclass=StaticPool,
    )

    async def init_models() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(init_models())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture(scope="session")
def async_session_maker(test_engine):
    return async_sessionmaker(test_engine, expire_on_commit=False)


@pytest.fixture(autouse=True)
def restore_settings():
    original_strict = settings.payment_schedule_strict_totals
    original_fallback = settings.deposit_rule_club_wide_fallback
    original_full_lead = settings.full_payment_lead_days
    original_monthly_lead = settings.monthly_payment_lead_days
    original_penalty_rate = settings.overdue_penalty_daily_rate
    original_grace = settings.immediate_payment_grace_minutes
    original_method = settings.default_payment_method
    yield
    settings.payment_schedule_strict_totals = original_strict
    settings.deposit_rule_club_wide_fallback = original_fallback
    settings.full_payment_lead_days = original_full_lead
    settings.monthly_payment_lead_days = original_monthly_lead
    settings.overdue_penalty_daily_rate = original_penalty_rate
    settings.immediate_payment_grace_minutes = original_grace
    settings.default_payment_method = original_method


@pytest.fixture(autouse=True)
def clean_database(test_engine):
    yield

    async def truncate_tables() -> None:
        async with test_engine.begin() as conn:
            for table in reversed(Base.metadata.sorted_tables):
                await conn.execute(table.delete())

    asyncio.run(truncate_tables())


@pytest.fixture()
def observer() -> RecordingObserver:
    return RecordingObserver()


@pytest.fixture()
def seed(async_session_maker):
    """Insert clubs, tariffs and rules and return them detached from the session."""

    class Seeder:
        async def club(self, *, name: str = "Harbour Club", season: int | None = 2025, currency: str = "RUB") -> Club:
            async with async_session_maker() as session:
                club = Club(name=name, season=season, currency=currency)
                session.add(club)
                await session.commit()
                return club

        async def season_tariff(self, club: Club, *, amount: Decimal = Decimal("50000")) -> Tariff:
            async with async_session_maker() as session:
                tariff = Tariff(club_id=club.club_id, name="Season", type="SEASON", amount=amount)
                session.add(tariff)
                await session.commit()
                return tariff

        async def monthly_tariff(self, club: Club, amounts: dict[int, Decimal]) -> Tariff:
            async with async_session_maker() as session:
                tariff = Tariff(
                    club_id=club.club_id,
                    name="Monthly",
                    type="MONTHLY",
                    amount=sum(amounts.values(), Decimal("0")),
                    months=list(amounts),
                    monthly_amounts={str(month): str(amount) for month, amount in amounts.items()},
                )
                session.add(tariff)
                await session.commit()
                return tariff

        async def deposit_rule(
            self,
            club: Club,
            *,
            tariff: Tariff | None = None,
            parameters: dict | None = None,
        ) -> BookingRule:
            async with async_session_maker() as session:
                rule = BookingRule(
                    club_id=club.club_id,
                    tariff_id=tariff.tariff_id if tariff else None,
                    rule_type=BookingRuleType.REQUIRE_DEPOSIT.value,
                    description="deposit",
                    parameters=parameters,
                )
                session.add(rule)
                await session.commit()
                return rule

    return Seeder()


@pytest.fixture()
def client(async_session_maker):
    ensure_event_loop()

    async def override_db_session():
        async with async_session_maker() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    original_factory = getattr(app.state, "db_session_factory", None)
    app.state.db_session_factory = async_session_maker
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    app.state.db_session_factory = original_factory
