"""Shared schema exports."""

from .activity import ActivityPayload, ActivityStatusPayload, CategoryOption
from .envelope import PagedEnvelope, PageInfo, ResponseEnvelope, failure, paged_success, success

__all__ = [
    "ActivityPayload",
    "ActivityStatusPayload",
    "CategoryOption",
    "PageInfo",
    "PagedEnvelope",
    "ResponseEnvelope",
    "failure",
    "paged_success",
    "success",
]
