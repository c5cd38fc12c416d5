"""HTTP route definitions for the activity service."""

from __future__ import annotations

import logging
from datetime import date, datetime

import jwt
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, status
from pydantic import BaseModel, ConfigDict, Field

from schemas import (
    ActivityPayload,
    ActivityStatusPayload,
    CategoryOption,
    PagedEnvelope,
    ResponseEnvelope,
    paged_success,
    success,
)

from ..domain.activity import Activity
from ..domain.contracts import ActivityQuery, CreateActivityInput, UpdateActivityInput
from ..domain.service import ActivityService
from ..domain.status import DerivedStatus
from ..security.tokens import decode_access_token, worker_id_from_claims

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/activities", tags=["activities"])


class CreateActivityRequest(BaseModel):
    """Payload accepted when scheduling an activity."""

    model_config = ConfigDict(populate_by_name=True)

    activity_name: str = Field(..., alias="activityName", min_length=1)
    description: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    location: str = ""
    address: str | None = None
    max_participants: int = Field(..., alias="maxParticipants", ge=0)
    start_date: datetime | None = Field(default=None, alias="startDate")
    end_date: datetime | None = Field(default=None, alias="endDate")
    signup_deadline: date | None = Field(default=None, alias="signupDeadline")
    target_audience: str | None = Field(default=None, alias="targetAudience")
    category: str | None = None


class UpdateActivityRequest(BaseModel):
    """Partial update; fields left out or sent as null keep their stored value."""

    model_config = ConfigDict(populate_by_name=True)

    activity_name: str | None = Field(default=None, alias="activityName")
    description: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    location: str | None = None
    address: str | None = None
    max_participants: int | None = Field(default=None, alias="maxParticipants", ge=0)
    current_participants: int | None = Field(default=None, alias="currentParticipants", ge=0)
    start_date: datetime | None = Field(default=None, alias="startDate")
    end_date: datetime | None = Field(default=None, alias="endDate")
    signup_deadline: date | None = Field(default=None, alias="signupDeadline")
    target_audience: str | None = Field(default=None, alias="targetAudience")
    category: str | None = None
    status: str | None = None

    def to_input(self) -> UpdateActivityInput:
        values = self.model_dump(exclude_none=True)
        return UpdateActivityInput(**values, provided=frozenset(values))


def get_service(request: Request) -> ActivityService:
    """Resolve the `ActivityService` stored on the FastAPI application state."""
    service: ActivityService = request.app.state.activity_service
    return service


def get_worker_id(authorization: str | None = Header(default=None)) -> int:
    """Authenticate the bearer token and return the worker it identifies."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="missing bearer token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        claims = decode_access_token(token.strip())
    except jwt.PyJWTError as exc:
        logger.warning("rejected bearer token: %s", exc)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid token") from exc
    worker_id = worker_id_from_claims(claims)
    if worker_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="token does not identify a worker"
        )
    return worker_id


def get_activity_query(
    page: int = Query(default=1),
    page_size: int | None = Query(default=None, alias="pageSize"),
    content: str | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    audience: str | None = Query(default=None),
) -> ActivityQuery:
    return ActivityQuery(
        page=page,
        page_size=page_size,
        content=content or None,
        status=status_filter or None,
        audience=audience or None,
    )


def _activity_payload(activity: Activity, worker_name: str | None = None) -> ActivityPayload:
    return ActivityPayload(
        activity_id=activity.activity_id,
        activity_name=activity.activity_name or "",
        description=activity.description,
        image_url=activity.image_url,
        location=activity.location or "",
        address=activity.address,
        max_participants=activity.max_participants or 0,
        current_participants=activity.current_participants or 0,
        start_date=activity.start_date,
        end_date=activity.end_date,
        signup_deadline=activity.signup_deadline,
        worker_id=activity.worker_id,
        worker_name=worker_name,
        target_audience=activity.target_audience,
        category=activity.category,
        status=activity.status or "",
    )


def _status_payload(derived: DerivedStatus) -> ActivityStatusPayload:
    snapshot = derived.snapshot
    return ActivityStatusPayload(
        activity_id=snapshot.activity_id,
        activity_name=snapshot.activity_name,
        location=snapshot.location,
        start_date=snapshot.start_date,
        end_date=snapshot.end_date,
        signup_deadline=snapshot.signup_deadline,
        current_participants=snapshot.current_participants,
        max_participants=snapshot.max_participants,
        raw_status=derived.raw_status,
        recommended_status=derived.recommended_status.value,
        status_label=derived.status_label,
        time_based_status=derived.time_based_status.value,
        capacity_signal=derived.capacity_signal.value,
        days_remaining=derived.days_remaining,
        consistency_check=derived.consistency_check.value,
        category=snapshot.category,
        target_audience=snapshot.target_audience,
        reference_date=derived.reference_date,
    )


@router.get("/categories", response_model=ResponseEnvelope[list[CategoryOption]])
def list_categories(
    service: ActivityService = Depends(get_service),
) -> ResponseEnvelope[list[CategoryOption]]:
    """Return the selectable activity categories in display order."""
    options = [
        CategoryOption(value=category.value, label=category.label)
        for category in service.list_categories()
    ]
    return success(options)


@router.get("", response_model=PagedEnvelope[ActivityPayload])
def list_activities(
    query: ActivityQuery = Depends(get_activity_query),
    service: ActivityService = Depends(get_service),
) -> PagedEnvelope[ActivityPayload]:
    """Return a filtered page of activities, newest start date first."""
    result = service.list_activities(query)
    items = [
        _activity_payload(activity, result.worker_names.get(activity.worker_id))
        for activity in result.items
    ]
    return paged_success(items, result.page, result.page_size, result.total)


@router.get("/statuses", response_model=PagedEnvelope[ActivityStatusPayload])
def list_statuses(
    query: ActivityQuery = Depends(get_activity_query),
    reference_date: date | None = Query(default=None, alias="referenceDate"),
    service: ActivityService = Depends(get_service),
) -> PagedEnvelope[ActivityStatusPayload]:
    """Return derived statuses for a page of activities."""
    result = service.list_statuses(query, reference_date)
    items = [_status_payload(derived) for derived in result.items]
    return paged_success(items, result.page, result.page_size, result.total)


@router.get("/{activity_id}", response_model=ResponseEnvelope[ActivityPayload])
def get_activity(
    activity_id: int,
    service: ActivityService = Depends(get_service),
) -> ResponseEnvelope[ActivityPayload]:
    activity = service.get_activity(activity_id)
    if activity is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="activity not found")
    return success(_activity_payload(activity, service.worker_name(activity)))


@router.get("/{activity_id}/status", response_model=ResponseEnvelope[ActivityStatusPayload])
def get_activity_status(
    activity_id: int,
    reference_date: date | None = Query(default=None, alias="referenceDate"),
    service: ActivityService = Depends(get_service),
) -> ResponseEnvelope[ActivityStatusPayload]:
    """Derive the current status presentation of a single activity."""
    try:
        derived = service.resolve_status(activity_id, reference_date)
    except ValueError as exc:
        raise _http_error_from_value_error(exc) from exc
    return success(_status_payload(derived))


@router.post(
    "",
    response_model=ResponseEnvelope[ActivityPayload],
    status_code=status.HTTP_201_CREATED,
)
def create_activity(
    payload: CreateActivityRequest,
    worker_id: int = Depends(get_worker_id),
    service: ActivityService = Depends(get_service),
) -> ResponseEnvelope[ActivityPayload]:
    """Schedule an activity owned by the authenticated worker."""
    try:
        activity = service.create_activity(
            CreateActivityInput(**payload.model_dump()),
            worker_id,
        )
    except ValueError as exc:
        raise _http_error_from_value_error(exc) from exc
    return success(_activity_payload(activity, service.worker_name(activity)), "activity created")


@router.patch("/{activity_id}", response_model=ResponseEnvelope[ActivityPayload])
def update_activity(
    activity_id: int,
    payload: UpdateActivityRequest,
    worker_id: int = Depends(get_worker_id),
    service: ActivityService = Depends(get_service),
) -> ResponseEnvelope[ActivityPayload]:
    try:
        activity = service.update_activity(activity_id, payload.to_input())
    except ValueError as exc:
        raise _http_error_from_value_error(exc) from exc
    logger.info("worker %s updated activity %s", worker_id, activity_id)
    return success(_activity_payload(activity, service.worker_name(activity)), "activity updated")


@router.delete("/{activity_id}", response_model=ResponseEnvelope[None])
def delete_activity(
    activity_id: int,
    worker_id: int = Depends(get_worker_id),
    service: ActivityService = Depends(get_service),
) -> ResponseEnvelope[None]:
    try:
        service.delete_activity(activity_id)
    except ValueError as exc:
        raise _http_error_from_value_error(exc) from exc
    logger.info("worker %s deleted activity %s", worker_id, activity_id)
    return success(None, "activity deleted")


def _http_error_from_value_error(exc: ValueError) -> HTTPException:
    message = str(exc).lower()
    status_code = status.HTTP_400_BAD_REQUEST
    if "not found" in message:
        status_code = status.HTTP_404_NOT_FOUND
    return HTTPException(status_code=status_code, detail=str(exc))
