from enum import Enum

PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_PAID = "PAID"
PAYMENT_STATUS_OVERDUE = "OVERDUE"
PAYMENT_STATUS_CANCELLED = "CANCELLED"
PAYMENT_STATUS_REFUNDED = "REFUNDED"

PAYMENT_TYPE_DEPOSIT = "DEPOSIT"
PAYMENT_TYPE_FULL = "FULL"
PAYMENT_TYPE_MONTHLY = "MONTHLY"

PAYMENT_METHOD_CASH = "cash"
PAYMENT_METHOD_CARD = "card"
PAYMENT_METHOD_BANK_TRANSFER = "bank_transfer"
PAYMENT_METHOD_ONLINE = "online"

DEPOSIT_ORDER = 0
FIRST_PRINCIPAL_ORDER = 1


class PaymentStatus(str, Enum):
    PENDING = PAYMENT_STATUS_PENDING
    PAID = PAYMENT_STATUS_PAID
    OVERDUE = PAYMENT_STATUS_OVERDUE
    CANCELLED = PAYMENT_STATUS_CANCELLED
    REFUNDED = PAYMENT_STATUS_REFUNDED


class PaymentType(str, Enum):
    DEPOSIT = PAYMENT_TYPE_DEPOSIT
    FULL = PAYMENT_TYPE_FULL
    MONTHLY = PAYMENT_TYPE_MONTHLY


class PaymentMethod(str, Enum):
    CASH = PAYMENT_METHOD_CASH
    CARD = PAYMENT_METHOD_CARD
    BANK_TRANSFER = PAYMENT_METHOD_BANK_TRANSFER
    ONLINE = PAYMENT_METHOD_ONLINE


PAYMENT_TRANSITIONS: dict[PaymentStatus, set[PaymentStatus]] = {
    PaymentStatus.PENDING: {PaymentStatus.PAID, PaymentStatus.OVERDUE, PaymentStatus.CANCELLED},
    PaymentStatus.OVERDUE: {PaymentStatus.PAID, PaymentStatus.CANCELLED},
    PaymentStatus.PAID: {PaymentStatus.REFUNDED},
    PaymentStatus.CANCELLED: set(),
    PaymentStatus.REFUNDED: set(),
}


def normalize_status(value: str | PaymentStatus) -> PaymentStatus:
    if isinstance(value, PaymentStatus):
        return value
    try:
        return PaymentStatus(str(value).strip().upper())
    except ValueError as exc:
        raise ValueError(f"Unknown payment status: {value}") from exc
