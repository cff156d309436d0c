import logging

from sqlalchemy.ext.asyncio import AsyncSession

from marina.domain.clubs.db_models import Club, Tariff
from marina.domain.clubs.schemas import TariffCreate
from marina.domain.clubs.tariffs import TariffType, plan_for_tariff
from marina.domain.errors import NotFoundError

logger = logging.getLogger(__name__)


async def get_club(session: AsyncSession, club_id: int) -> Club:
    club = await session.get(Club, club_id)
    if club is None:
        raise NotFoundError(detail=f"Club {club_id} not found")
    return club


async def get_tariff(session: AsyncSession, tariff_id: int) -> Tariff:
    tariff = await session.get(Tariff, tariff_id)
    if tariff is None:
        raise NotFoundError(detail=f"Tariff {tariff_id} not found")
    return tariff


async def create_tariff(session: AsyncSession, club_id: int, payload: TariffCreate) -> Tariff:
    club = await get_club(session, club_id)
    monthly = payload.type is TariffType.MONTHLY
    tariff = Tariff(
        club_id=club.club_id,
        name=payload.name,
        type=payload.type.value,
        amount=payload.amount,
        season=payload.season,
        months=list(payload.months) if monthly and payload.months else None,
        monthly_amounts=(
            {str(month): str(amount) for month, amount in (payload.monthly_amounts or {}).items()}
            if monthly
            else None
        ),
    )
    # Same check the schedule engine runs, so a stored tariff is always schedulable.
    plan_for_tariff(tariff)
    session.add(tariff)
    await session.flush()
    logger.info(
        "tariff_created",
        extra={
            "extra": {
                "club_id": club.club_id,
                "tariff_id": tariff.tariff_id,
                "tariff_type": tariff.type,
            }
        },
    )
    return tariff
