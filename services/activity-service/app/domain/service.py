"""Activity service orchestrating persistence, category validation and status derivation."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Callable, Protocol
from zoneinfo import ZoneInfo

from prometheus_client import Counter

from .activity import Activity, ActivityStatusSnapshot
from .categories import ACTIVITY_CATEGORIES, Category, CategoryRegistry
from .contracts import ActivityQuery, CreateActivityInput, UpdateActivityInput
from .status import ActivityStatusResolver, DerivedStatus
from ..config import get_settings

logger = logging.getLogger(__name__)

STATUS_DISCREPANCIES = Counter(
    "activity_status_discrepancies_total",
    "Status resolutions whose stored status disagrees with the recommendation.",
    ["recommended_status"],
)

INITIAL_STATUS = "open"


class ActivityStore(Protocol):
    def count_activities(self, query: ActivityQuery) -> int: ...

    def list_activities(self, query: ActivityQuery, *, offset: int, limit: int) -> list[Activity]: ...

    def get_activity(self, activity_id: int) -> Activity | None: ...

    def create_activity(self, payload: CreateActivityInput, *, worker_id: int, status: str) -> Activity: ...

    def update_activity(self, activity_id: int, changes: dict) -> Activity | None: ...

    def delete_activity(self, activity_id: int) -> bool: ...

    def worker_exists(self, worker_id: int) -> bool: ...

    def get_worker_names(self, worker_ids) -> dict[int, str]: ...


@dataclass(slots=True)
class ActivityPage:
    """One page of activities plus the worker names referenced by it."""

    items: list[Activity]
    total: int
    page: int
    page_size: int
    worker_names: dict[int, str] = field(default_factory=dict)


@dataclass(slots=True)
class StatusPage:
    items: list[DerivedStatus]
    total: int
    page: int
    page_size: int


def _today_in(timezone_name: str) -> Callable[[], date]:
    zone = ZoneInfo(timezone_name)
    return lambda: datetime.now(zone).date()


class ActivityService:
    """Activity workflows backed by Postgres storage."""

    def __init__(
        self,
        repository: ActivityStore,
        *,
        categories: CategoryRegistry = ACTIVITY_CATEGORIES,
        resolver: ActivityStatusResolver | None = None,
        today: Callable[[], date] | None = None,
    ) -> None:
        """Store dependencies; ``today`` supplies the default reference date."""
        settings = get_settings()
        self._repository = repository
        self._categories = categories
        self._resolver = resolver or ActivityStatusResolver()
        self._today = today or _today_in(settings.timezone)
        self._default_page_size = settings.default_page_size
        self._max_page_size = settings.max_page_size

    def list_categories(self) -> tuple[Category, ...]:
        return self._categories.list_categories()

    def list_activities(self, query: ActivityQuery) -> ActivityPage:
        """Return a filtered page of activities with worker names resolved."""
        page, page_size = self._normalise_paging(query)
        logger.info(
            "listing activities page=%s page_size=%s status=%r audience=%r content=%r",
            page,
            page_size,
            query.status,
            query.audience,
            query.content,
        )
        total = self._repository.count_activities(query)
        items = self._repository.list_activities(
            query, offset=(page - 1) * page_size, limit=page_size
        )
        worker_ids = [item.worker_id for item in items if item.worker_id is not None]
        return ActivityPage(
            items=items,
            total=total,
            page=page,
            page_size=page_size,
            worker_names=self._repository.get_worker_names(worker_ids),
        )

    def get_activity(self, activity_id: int) -> Activity | None:
        return self._repository.get_activity(activity_id)

    def worker_name(self, activity: Activity) -> str | None:
        """Look up the display name of the worker owning ``activity``."""
        if activity.worker_id is None:
            return None
        return self._repository.get_worker_names([activity.worker_id]).get(activity.worker_id)

    def create_activity(self, payload: CreateActivityInput, worker_id: int) -> Activity:
        """Validate and persist a new activity owned by ``worker_id``."""
        if not self._categories.is_valid(payload.category):
            raise ValueError("invalid activity category")
        if not self._repository.worker_exists(worker_id):
            raise ValueError(f"worker {worker_id} does not exist")
        activity = self._repository.create_activity(payload, worker_id=worker_id, status=INITIAL_STATUS)
        logger.info("created activity %s for worker %s", activity.activity_id, worker_id)
        return activity

    def update_activity(self, activity_id: int, payload: UpdateActivityInput) -> Activity:
        changes = payload.changes()
        if "category" in changes and not self._categories.is_valid(changes["category"]):
            raise ValueError("invalid activity category")
        activity = self._repository.update_activity(activity_id, changes)
        if activity is None:
            raise ValueError("activity not found")
        logger.info("updated activity %s fields=%s", activity_id, sorted(changes))
        return activity

    def delete_activity(self, activity_id: int) -> None:
        if not self._repository.delete_activity(activity_id):
            raise ValueError("activity not found")
        logger.info("deleted activity %s", activity_id)

    def resolve_status(self, activity_id: int, reference: date | None = None) -> DerivedStatus:
        """Derive the status presentation of one activity at ``reference`` (default: today)."""
        activity = self._repository.get_activity(activity_id)
        if activity is None:
            raise ValueError("activity not found")
        return self._derive(activity, reference or self._today())

    def list_statuses(self, query: ActivityQuery, reference: date | None = None) -> StatusPage:
        """Return derived statuses for one page of activities."""
        reference = reference or self._today()
        page, page_size = self._normalise_paging(query)
        total = self._repository.count_activities(query)
        activities = self._repository.list_activities(
            query, offset=(page - 1) * page_size, limit=page_size
        )
        return StatusPage(
            items=[self._derive(activity, reference) for activity in activities],
            total=total,
            page=page,
            page_size=page_size,
        )

    def _derive(self, activity: Activity, reference: date) -> DerivedStatus:
        derived = self._resolver.resolve(ActivityStatusSnapshot.from_activity(activity), reference)
        if derived.needs_review:
            STATUS_DISCREPANCIES.labels(recommended_status=derived.recommended_status.value).inc()
            logger.warning(
                "activity %s stored status %r disagrees with recommended %s",
                activity.activity_id,
                derived.raw_status,
                derived.recommended_status.value,
            )
        return derived

    def _normalise_paging(self, query: ActivityQuery) -> tuple[int, int]:
        page = query.page if query.page >= 1 else 1
        page_size = query.page_size or 0
        if page_size < 1:
            page_size = self._default_page_size
        return page, min(page_size, self._max_page_size)
