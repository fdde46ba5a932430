from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import Day


class DataIntegrityError(ValueError):
    """Raised when an hourly record violates a domain invariant."""

    def __init__(self, message: str, *, record: object = None, field: str | None = None) -> None:
        super().__init__(message)
        self.record = record
        self.field = field

    def details(self) -> dict[str, object]:
        timestamp = getattr(self.record, "timestamp", None)
        return {
            "message": str(self),
            "field": self.field or "",
            "timestamp": timestamp.isoformat() if timestamp is not None else None,
        }


class InsufficientDataError(Exception):
    """A day has no consumption, so it has no comparable unit price."""

    def __init__(self, day: "Day") -> None:
        super().__init__(f"No consumption recorded for {day.start_time.date().isoformat()}.")
        self.day = day
