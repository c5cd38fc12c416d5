"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from typing import Any


@dataclass(slots=True)
class ActivityQuery:
    """Paging and filter options for activity listings."""

    page: int = 1
    page_size: int | None = None
    content: str | None = None
    status: str | None = None
    audience: str | None = None


@dataclass(slots=True)
class CreateActivityInput:
    """Validated inputs required to schedule a new activity."""

    activity_name: str
    location: str
    max_participants: int
    description: str | None = None
    image_url: str | None = None
    address: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    signup_deadline: date | None = None
    target_audience: str | None = None
    category: str | None = None


@dataclass(slots=True)
class UpdateActivityInput:
    """Partial update; only fields listed in ``provided`` are applied."""

    activity_name: str | None = None
    description: str | None = None
    image_url: str | None = None
    location: str | None = None
    address: str | None = None
    max_participants: int | None = None
    current_participants: int | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    signup_deadline: date | None = None
    target_audience: str | None = None
    category: str | None = None
    status: str | None = None
    provided: frozenset[str] = field(default_factory=frozenset)

    def changes(self) -> dict[str, Any]:
        """Return the explicitly provided fields and their new values."""
        return {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if f.name != "provided" and f.name in self.provided
        }
