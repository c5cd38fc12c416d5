"""Closed set of activity categories."""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Iterable, Mapping


@dataclass(frozen=True, slots=True)
class Category:
    """A category code and its display label."""

    value: str
    label: str


class CategoryRegistry:
    """Read-only registry of category codes.

    Membership is an exact, case-sensitive match on :attr:`Category.value`.
    An absent or empty code means "no category" and is always accepted.
    """

    def __init__(self, categories: Iterable[Category]) -> None:
        ordered = tuple(categories)
        self._categories = ordered
        self._by_value: Mapping[str, Category] = MappingProxyType(
            {category.value: category for category in ordered}
        )

    def list_categories(self) -> tuple[Category, ...]:
        """Return every registered category in registration order."""
        return self._categories

    def is_valid(self, code: str | None) -> bool:
        if not code:
            return True
        return code in self._by_value

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code in self._by_value

    def __len__(self) -> int:
        return len(self._categories)


# life, spirit, sports, entertainment, education, medical, environment,
# electronics, social welfare
ACTIVITY_CATEGORIES = CategoryRegistry(
    Category(value=code, label=code)
    for code in ("生活", "心靈", "運動", "娛樂", "教育", "醫療", "環保", "電子", "社福")
)
