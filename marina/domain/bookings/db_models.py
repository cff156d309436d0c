from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from marina.domain.bookings.statuses import BookingStatus
from marina.infra.db import Base

if TYPE_CHECKING:  # pragma: no cover
    from marina.domain.clubs.db_models import Club, Tariff
    from marina.domain.payments.db_models import Payment


class Booking(Base):
    __tablename__ = "bookings"

    booking_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    club_id: Mapped[int] = mapped_column(ForeignKey("clubs.club_id"), nullable=False)
    tariff_id: Mapped[int | None] = mapped_column(ForeignKey("tariffs.tariff_id"), nullable=True)
    vessel_id: Mapped[int] = mapped_column(Integer, nullable=False)
    berth_id: Mapped[int] = mapped_column(Integer, nullable=False)
    payer_id: Mapped[int] = mapped_column(Integer, nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=BookingStatus.PENDING.value
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

    club: Mapped["Club"] = relationship("Club")
    tariff: Mapped["Tariff | None"] = relationship("Tariff")
    payments: Mapped[list["Payment"]] = relationship(
        "Payment",
        back_populates="booking",
        cascade="all, delete-orphan",
        order_by="Payment.payment_order",
    )

    __table_args__ = (
        Index("ix_bookings_club_status", "club_id", "status"),
        Index("ix_bookings_berth_dates", "berth_id", "start_date", "end_date"),
        CheckConstraint("total_price >= 0", name="ck_bookings_total_price_non_negative"),
        CheckConstraint("start_date < end_date", name="ck_bookings_date_range"),
    )
