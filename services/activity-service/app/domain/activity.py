from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime


def _as_date(value: date | datetime | None) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


@dataclass(slots=True)
class Activity:
    """Aggregate root for a scheduled activity.

    The owning worker is referenced by ``worker_id`` only; callers that need
    worker details look them up explicitly.
    """

    activity_id: int
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
    worker_id: int | None = None
    target_audience: str | None = None
    status: str | None = None
    category: str | None = None


@dataclass(frozen=True, slots=True)
class ActivityStatusSnapshot:
    """Read-only projection of an activity used for status computation."""

    activity_id: int
    activity_name: str | None = None
    location: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    signup_deadline: date | None = None
    current_participants: int | None = None
    max_participants: int | None = None
    raw_status: str | None = None
    category: str | None = None
    target_audience: str | None = None

    @classmethod
    def from_activity(cls, activity: Activity) -> "ActivityStatusSnapshot":
        """Project a stored activity onto calendar dates."""
        return cls(
            activity_id=activity.activity_id,
            activity_name=activity.activity_name,
            location=activity.location,
            start_date=_as_date(activity.start_date),
            end_date=_as_date(activity.end_date),
            signup_deadline=_as_date(activity.signup_deadline),
            current_participants=activity.current_participants,
            max_participants=activity.max_participants,
            raw_status=activity.status,
            category=activity.category,
            target_audience=activity.target_audience,
        )
