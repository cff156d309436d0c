from datetime import date
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from marina.domain.payments import statuses
from marina.domain.payments.statuses import PaymentStatus, PaymentType


class PaymentScheduleEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    payment_id: int
    type: PaymentType = Field(validation_alias="payment_type")
    amount: Decimal
    currency: str
    method: str
    due_date: date
    status: PaymentStatus
    payment_order: int
    month: int | None = Field(None, validation_alias="payment_month")
    paid_date: date | None = None
    penalty: Decimal = Decimal("0")


class PaymentScheduleSummary(BaseModel):
    booking_id: int
    payments: list[PaymentScheduleEntry]
    total_amount: Decimal
    paid_amount: Decimal
    remaining_amount: Decimal
    next_payment_due: date | None = None


class ConfirmationCheckResponse(BaseModel):
    booking_id: int
    can_confirm: bool


class PaymentStatusUpdate(BaseModel):
    status: PaymentStatus
    transaction_id: str | None = Field(default=None, max_length=255)
    paid_date: date | None = None

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status(cls, value: object) -> PaymentStatus:
        return statuses.normalize_status(value)  # type: ignore[arg-type]


class PaymentResponse(PaymentScheduleEntry):
    booking_id: int
    payer_id: int
    transaction_id: str | None = None
