from dataclasses import dataclass
from typing import List


@dataclass
class DomainError(Exception):
    detail: str
    title: str = "Domain Error"
    type: str = "https://example.com/problems/domain-error"
    errors: List[dict] | None = None

    def __str__(self) -> str:
        return self.detail


@dataclass
class ConfigurationError(DomainError):
    """Tariff or booking rule configuration cannot produce a valid schedule."""

    title: str = "Configuration Error"
    type: str = "https://example.com/problems/configuration-error"


@dataclass
class ConsistencyError(DomainError):
    """A computed schedule disagrees with the booking it belongs to."""

    title: str = "Consistency Error"
    type: str = "https://example.com/problems/consistency-error"


@dataclass
class DuplicateScheduleError(ConsistencyError):
    title: str = "Payment Schedule Exists"
    type: str = "https://example.com/problems/duplicate-schedule"


@dataclass
class StorageError(DomainError):
    title: str = "Storage Error"
    type: str = "https://example.com/problems/storage-error"


@dataclass
class NotFoundError(DomainError):
    title: str = "Not Found"
    type: str = "https://example.com/problems/not-found"


@dataclass
class InvalidTransitionError(DomainError):
    title: str = "Invalid Transition"
    type: str = "https://example.com/problems/invalid-transition"
