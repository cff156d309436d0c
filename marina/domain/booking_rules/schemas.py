from decimal import Decimal
from typing import Any

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from marina.domain.booking_rules.db_models import BookingRuleType
from marina.domain.errors import ConfigurationError


class DepositRuleParameters(BaseModel):
    model_config = ConfigDict(extra="allow")

    deposit_amount: Decimal | None = Field(
        None,
        ge=0,
        validation_alias=AliasChoices("depositAmount", "deposit_amount"),
        serialization_alias="depositAmount",
    )
    deposit_percentage: Decimal | None = Field(
        None,
        ge=0,
        le=100,
        validation_alias=AliasChoices("depositPercentage", "deposit_percentage"),
        serialization_alias="depositPercentage",
    )

    @model_validator(mode="after")
    def require_amount_or_percentage(self) -> "DepositRuleParameters":
        if self.deposit_amount is None and self.deposit_percentage is None:
            raise ValueError("deposit rule needs depositAmount or depositPercentage")
        return self


def parse_deposit_parameters(raw: dict[str, Any] | None) -> DepositRuleParameters:
    try:
        return DepositRuleParameters.model_validate(raw or {})
    except ValidationError as exc:
        raise ConfigurationError(
            detail="Invalid deposit rule parameters",
            errors=[
                {
                    "field": ".".join(str(part) for part in error.get("loc", ())) or "parameters",
                    "message": error.get("msg", "Invalid value"),
                }
                for error in exc.errors()
            ],
        ) from exc


class BookingRuleCreate(BaseModel):
    description: str = Field("", max_length=2000)
    rule_type: BookingRuleType = BookingRuleType.CUSTOM
    tariff_id: int | None = None
    parameters: dict[str, Any] | None = None

    @field_validator("rule_type", mode="before")
    @classmethod
    def normalize_rule_type(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().upper()
        return value

    @model_validator(mode="after")
    def validate_deposit_parameters(self) -> "BookingRuleCreate":
        if self.rule_type is not BookingRuleType.REQUIRE_DEPOSIT:
            return self
        params = DepositRuleParameters.model_validate(self.parameters or {})
        if params.deposit_amount is not None and params.deposit_percentage is not None:
            raise ValueError("deposit rule takes depositAmount or depositPercentage, not both")
        return self

