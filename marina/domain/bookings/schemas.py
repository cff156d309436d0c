from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict

from marina.domain.bookings.statuses import BookingStatus


class BookingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    booking_id: int
    club_id: int
    tariff_id: int | None = None
    payer_id: int
    vessel_id: int
    berth_id: int
    start_date: date
    end_date: date
    total_price: Decimal
    status: BookingStatus
