"""Derived status computation for activities.

Everything here is a pure function of an :class:`ActivityStatusSnapshot` and a
reference date. Nothing is persisted and nothing reads the system clock, so
results are authoritative only for the reference date they were computed at.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum

from .activity import ActivityStatusSnapshot


class TimeBasedStatus(str, Enum):
    ended = "ended"
    ongoing = "ongoing"
    signup_closed = "signup-closed"
    upcoming = "upcoming"
    unknown = "unknown"


class CapacitySignal(str, Enum):
    full = "full"
    open = "open"


class RecommendedStatus(str, Enum):
    ended = "ended"
    full_but_active = "full-but-active"
    ongoing = "ongoing"
    signup_closed = "signup-closed"
    open = "open"
    unknown = "unknown"


class ConsistencyCheck(str, Enum):
    consistent = "consistent"
    needs_review = "needs-review"
    no_stored_status = "no-stored-status"


STATUS_LABELS: dict[RecommendedStatus, str] = {
    RecommendedStatus.ended: "已結束",
    RecommendedStatus.full_but_active: "人數已滿",
    RecommendedStatus.ongoing: "進行中",
    RecommendedStatus.signup_closed: "報名截止",
    RecommendedStatus.open: "開放報名",
    RecommendedStatus.unknown: "狀態未定",
}

# Stored status values (open/full/closed) that agree with each recommendation.
ACCEPTED_STORED_STATUSES: dict[RecommendedStatus, frozenset[str]] = {
    RecommendedStatus.ended: frozenset({"ended", "closed"}),
    RecommendedStatus.full_but_active: frozenset({"full", "full-but-active"}),
    RecommendedStatus.ongoing: frozenset({"open", "ongoing"}),
    RecommendedStatus.signup_closed: frozenset({"closed", "signup-closed"}),
    RecommendedStatus.open: frozenset({"open"}),
}
# Without usable dates there is nothing to contradict a stored value.
ACCEPTED_STORED_STATUSES[RecommendedStatus.unknown] = frozenset().union(
    *ACCEPTED_STORED_STATUSES.values(), {"full", "unknown"}
)


@dataclass(frozen=True, slots=True)
class DerivedStatus:
    """Status presentation computed from a snapshot at ``reference_date``."""

    snapshot: ActivityStatusSnapshot
    reference_date: date
    time_based_status: TimeBasedStatus
    capacity_signal: CapacitySignal
    recommended_status: RecommendedStatus
    consistency_check: ConsistencyCheck
    days_remaining: int | None = None

    @property
    def raw_status(self) -> str | None:
        return self.snapshot.raw_status

    @property
    def status_label(self) -> str:
        return STATUS_LABELS[self.recommended_status]

    @property
    def needs_review(self) -> bool:
        return self.consistency_check is ConsistencyCheck.needs_review


def days_until(deadline: date | None, reference: date) -> int | None:
    """Signed whole days from ``reference`` to ``deadline``; negative once passed."""
    if deadline is None:
        return None
    return (deadline - reference).days


def classify_time(snapshot: ActivityStatusSnapshot, reference: date) -> TimeBasedStatus:
    start, end, deadline = snapshot.start_date, snapshot.end_date, snapshot.signup_deadline
    if end is not None and reference > end:
        return TimeBasedStatus.ended
    if start is not None and reference >= start and (end is None or reference <= end):
        return TimeBasedStatus.ongoing
    if deadline is not None and reference > deadline:
        return TimeBasedStatus.signup_closed
    if start is not None and reference < start:
        return TimeBasedStatus.upcoming
    return TimeBasedStatus.unknown


def classify_capacity(snapshot: ActivityStatusSnapshot) -> CapacitySignal:
    current, maximum = snapshot.current_participants, snapshot.max_participants
    if current is not None and maximum is not None and current >= maximum:
        return CapacitySignal.full
    return CapacitySignal.open


_RECOMMENDATION_BY_TIME = {
    TimeBasedStatus.ongoing: RecommendedStatus.ongoing,
    TimeBasedStatus.signup_closed: RecommendedStatus.signup_closed,
    TimeBasedStatus.upcoming: RecommendedStatus.open,
    TimeBasedStatus.unknown: RecommendedStatus.unknown,
}


def recommend(time_status: TimeBasedStatus, capacity: CapacitySignal) -> RecommendedStatus:
    """Combine the time classification with the capacity signal.

    An ended activity is always ``ended``; otherwise a full one is
    ``full-but-active`` whatever its time classification.
    """
    if time_status is TimeBasedStatus.ended:
        return RecommendedStatus.ended
    if capacity is CapacitySignal.full:
        return RecommendedStatus.full_but_active
    return _RECOMMENDATION_BY_TIME[time_status]


def check_consistency(raw_status: str | None, recommended: RecommendedStatus) -> ConsistencyCheck:
    normalised = (raw_status or "").strip().lower()
    if not normalised:
        return ConsistencyCheck.no_stored_status
    if normalised in ACCEPTED_STORED_STATUSES[recommended]:
        return ConsistencyCheck.consistent
    return ConsistencyCheck.needs_review


class ActivityStatusResolver:
    """Derive display and recommended statuses without touching stored data.

    Category and target audience are carried through untouched; category
    codes are expected to have been validated when the activity was written.
    """

    def resolve(
        self, snapshot: ActivityStatusSnapshot, reference: date | datetime
    ) -> DerivedStatus:
        if isinstance(reference, datetime):
            reference = reference.date()
        time_status = classify_time(snapshot, reference)
        capacity = classify_capacity(snapshot)
        recommended = recommend(time_status, capacity)
        return DerivedStatus(
            snapshot=snapshot,
            reference_date=reference,
            time_based_status=time_status,
            capacity_signal=capacity,
            recommended_status=recommended,
            consistency_check=check_consistency(snapshot.raw_status, recommended),
            days_remaining=days_until(snapshot.signup_deadline, reference),
        )
