from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from marina.infra.db import Base
from marina.settings import settings

if TYPE_CHECKING:  # pragma: no cover
    from marina.domain.booking_rules.db_models import BookingRule


class Club(Base):
    __tablename__ = "clubs"

    club_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    season: Mapped[int | None] = mapped_column(Integer)
    currency: Mapped[str] = mapped_column(
        String(8),
        nullable=False,
        default=lambda: settings.default_currency,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    tariffs: Mapped[list["Tariff"]] = relationship(
        "Tariff",
        back_populates="club",
        cascade="all, delete-orphan",
    )
    booking_rules: Mapped[list["BookingRule"]] = relationship(
        "BookingRule",
        back_populates="club",
        cascade="all, delete-orphan",
    )


class Tariff(Base):
    __tablename__ = "tariffs"

    tariff_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(
        ForeignKey("clubs.club_id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(String(16), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    season: Mapped[int | None] = mapped_column(Integer)
    months: Mapped[list[int] | None] = mapped_column(JSON, nullable=True)
    # JSON object keys are month numbers serialized as strings.
    monthly_amounts: Mapped[dict[str, str] | None] = mapped_column(JSON, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    club: Mapped[Club] = relationship("Club", back_populates="tariffs")

    __table_args__ = (
        Index("ix_tariffs_club_id", "club_id"),
        Index("ix_tariffs_club_type", "club_id", "type"),
    )
