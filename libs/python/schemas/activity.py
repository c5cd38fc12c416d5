"""Activity payloads exchanged with the SPA, MVC views and API clients."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class CategoryOption(BaseModel):
    value: str
    label: str


class ActivityPayload(BaseModel):
    """Serialised activity record."""

    model_config = ConfigDict(populate_by_name=True)

    activity_id: int = Field(alias="activityId")
    activity_name: str = Field(alias="activityName")
    description: str | None = None
    image_url: str | None = Field(default=None, alias="imageUrl")
    location: str = ""
    address: str | None = None
    max_participants: int = Field(default=0, alias="maxParticipants")
    current_participants: int = Field(default=0, alias="currentParticipants")
    start_date: datetime | None = Field(default=None, alias="startDate")
    end_date: datetime | None = Field(default=None, alias="endDate")
    signup_deadline: date | None = Field(default=None, alias="signupDeadline")
    worker_id: int | None = Field(default=None, alias="workerId")
    worker_name: str | None = Field(default=None, alias="workerName")
    target_audience: str | None = Field(default=None, alias="targetAudience")
    category: str | None = None
    status: str = ""


class ActivityStatusPayload(BaseModel):
    """Derived status view of an activity, computed per request."""

    model_config = ConfigDict(populate_by_name=True)

    activity_id: int = Field(alias="activityId")
    activity_name: str | None = Field(default=None, alias="activityName")
    location: str | None = None
    start_date: date | None = Field(default=None, alias="startDate")
    end_date: date | None = Field(default=None, alias="endDate")
    signup_deadline: date | None = Field(default=None, alias="signupDeadline")
    current_participants: int | None = Field(default=None, alias="currentParticipants")
    max_participants: int | None = Field(default=None, alias="maxParticipants")
    raw_status: str | None = Field(default=None, alias="rawStatus")
    recommended_status: str = Field(alias="recommendedStatus")
    status_label: str = Field(alias="statusLabel")
    time_based_status: str = Field(alias="timeBasedStatus")
    capacity_signal: str = Field(alias="capacitySignal")
    days_remaining: int | None = Field(default=None, alias="daysRemaining")
    consistency_check: str = Field(alias="consistencyCheck")
    category: str | None = None
    target_audience: str | None = Field(default=None, alias="targetAudience")
    reference_date: date = Field(alias="referenceDate")
