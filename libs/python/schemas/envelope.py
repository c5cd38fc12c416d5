"""Uniform response envelopes shared by every externally visible endpoint."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Generic, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

T = TypeVar("T")

DEFAULT_SUCCESS_MESSAGE = "operation succeeded"
DEFAULT_QUERY_MESSAGE = "query succeeded"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _Envelope(BaseModel):
    """Fields common to single-item and paged envelopes."""

    model_config = ConfigDict(populate_by_name=True, validate_assignment=True)

    success: bool
    message: str = ""
    error: Any | None = None
    timestamp: datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _check_outcome(self):
        if self.success and self.error is not None:
            raise ValueError("a successful envelope cannot carry error details")
        if not self.success and getattr(self, "data", None) is not None:
            raise ValueError("a failed envelope cannot carry data")
        return self


class ResponseEnvelope(_Envelope, Generic[T]):
    """Success/error wrapper around a single payload."""

    data: T | None = None


class PageInfo(BaseModel):
    """Pagination metadata.

    Only ``page``, ``page_size`` and ``total_count`` are stored; the remaining
    values are derived on access so they can never drift from their inputs.
    """

    model_config = ConfigDict(populate_by_name=True)

    page: int
    page_size: int = Field(alias="pageSize")
    total_count: int = Field(alias="totalCount")

    @computed_field(alias="totalPages")  # type: ignore[prop-decorator]
    @property
    def total_pages(self) -> int:
        return -(-self.total_count // self.page_size)

    @computed_field(alias="hasNextPage")  # type: ignore[prop-decorator]
    @property
    def has_next_page(self) -> bool:
        return self.page < self.total_pages

    @computed_field(alias="hasPreviousPage")  # type: ignore[prop-decorator]
    @property
    def has_previous_page(self) -> bool:
        return self.page > 1


class PagedEnvelope(_Envelope, Generic[T]):
    """Envelope carrying one page of items plus its :class:`PageInfo`."""

    data: list[T] | None = None
    page_info: PageInfo | None = Field(default=None, alias="pageInfo")


def success(data: T, message: str = DEFAULT_SUCCESS_MESSAGE) -> ResponseEnvelope[T]:
    """Wrap ``data`` in a successful envelope stamped with the current UTC time."""
    return ResponseEnvelope(success=True, message=message, data=data)


def failure(message: str, error: Any | None = None) -> ResponseEnvelope[Any]:
    """Build a failed envelope; ``data`` is always absent."""
    return ResponseEnvelope(success=False, message=message, error=error)


def paged_success(
    items: Sequence[T],
    page: int,
    page_size: int,
    total_count: int,
    message: str = DEFAULT_QUERY_MESSAGE,
) -> PagedEnvelope[T]:
    """Wrap one page of ``items``.

    The page arguments are taken as given: callers clamp ``page`` and
    ``page_size`` before querying, this builder only derives the page counts.
    """
    return PagedEnvelope(
        success=True,
        message=message,
        data=list(items),
        page_info=PageInfo(page=page, page_size=page_size, total_count=total_count),
    )
