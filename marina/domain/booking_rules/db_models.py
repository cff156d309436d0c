from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.types import JSON

from marina.infra.db import Base

if TYPE_CHECKING:  # pragma: no cover
    from marina.domain.clubs.db_models import Club, Tariff


class BookingRuleType(str, Enum):
    REQUIRE_PAYMENT_MONTHS = "REQUIRE_PAYMENT_MONTHS"
    MIN_BOOKING_PERIOD = "MIN_BOOKING_PERIOD"
    MAX_BOOKING_PERIOD = "MAX_BOOKING_PERIOD"
    REQUIRE_DEPOSIT = "REQUIRE_DEPOSIT"
    CUSTOM = "CUSTOM"


class BookingRule(Base):
    __tablename__ = "booking_rules"

    rule_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(
        ForeignKey("clubs.club_id", ondelete="CASCADE"), nullable=False
    )
    # NULL scopes the rule to bookings made without a tariff.
    tariff_id: Mapped[int | None] = mapped_column(
        ForeignKey("tariffs.tariff_id", ondelete="CASCADE"), nullable=True
    )
    rule_type: Mapped[str] = mapped_column(
        String(32), nullable=False, default=BookingRuleType.CUSTOM.value
    )
    description: Mapped[str] = mapped_column(Text(), nullable=False, default="")
    parameters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
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

    club: Mapped["Club"] = relationship("Club", back_populates="booking_rules")
    tariff: Mapped["Tariff | None"] = relationship("Tariff")

    __table_args__ = (
        Index("ix_booking_rules_club_tariff", "club_id", "tariff_id"),
        Index("ix_booking_rules_club_type", "club_id", "rule_type"),
    )
