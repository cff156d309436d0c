from decimal import Decimal

from pydantic import BaseModel, Field, field_validator, model_validator

from marina.domain.clubs.tariffs import TariffType


class TariffCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    type: TariffType
    amount: Decimal = Field(ge=0)
    season: int | None = Field(None, ge=2000, le=2100)
    months: list[int] | None = None
    monthly_amounts: dict[int, Decimal] | None = None

    @field_validator("type", mode="before")
    @classmethod
    def normalize_type(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @field_validator("months")
    @classmethod
    def validate_months(cls, value: list[int] | None) -> list[int] | None:
        if value is None:
            return value
        for month in value:
            if month < 1 or month > 12:
                raise ValueError("months must be between 1 and 12")
        if len(set(value)) != len(value):
            raise ValueError("months must not repeat")
        return value

    @model_validator(mode="after")
    def validate_monthly_plan(self) -> "TariffCreate":
        if self.type is not TariffType.MONTHLY:
            return self
        if not self.months:
            raise ValueError("monthly tariffs require at least one month")
        amounts = self.monthly_amounts or {}
        missing = [month for month in self.months if amounts.get(month, Decimal("0")) <= 0]
        if missing:
            raise ValueError(f"monthly tariffs require a positive amount for months {missing}")
        return self

