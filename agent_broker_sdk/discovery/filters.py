"""Client-side filtering and ordering of search hits.

Applied only to what an adapter already filtered server-side, for the
filter parts the adapter cannot express natively.
"""
from numbers import Number
from typing import Any, Iterable, List, Sequence, Tuple

from ..core.types import SearchFilters, SearchHit, SortDirection, SortKey


def has_value(value: Any) -> bool:
    """Whether a field counts as present for existence filters."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) > 0
    return True


def _equal(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (list, tuple, set)):
        return expected in actual
    return actual == expected


def _member(actual: Any, allowed: Iterable[Any]) -> bool:
    allowed = list(allowed)
    if isinstance(actual, (list, tuple, set)):
        return any(item in allowed for item in actual)
    return actual in allowed


def matches(hit: SearchHit, filters: SearchFilters) -> bool:
    """Check one hit against every part of ``filters``."""
    for name, expected in filters.equals.items():
        if not _equal(hit.get(name), expected):
            return False
    for name, allowed in filters.membership.items():
        if not _member(hit.get(name), allowed):
            return False
    for name in filters.exists:
        if not has_value(hit.get(name)):
            return False
    for name in filters.not_exists:
        if has_value(hit.get(name)):
            return False
    needle = (filters.name_contains or "").strip().lower()
    if needle and needle not in (hit.name or "").lower():
        return False
    return True


def apply_filters(hits: Iterable[SearchHit], filters: SearchFilters) -> List[SearchHit]:
    """Keep the hits that satisfy ``filters``, preserving order."""
    if filters.is_empty():
        return list(hits)
    return [hit for hit in hits if matches(hit, filters)]


def _sortable(value: Any) -> Tuple[int, Any]:
    # numbers sort before strings; anything else sorts by its string form
    if isinstance(value, bool):
        return (0, int(value))
    if isinstance(value, Number):
        return (0, value)
    if isinstance(value, str):
        return (1, value.lower())
    return (2, str(value))


def sort_hits(hits: Sequence[SearchHit], sort_keys: Sequence[SortKey]) -> List[SearchHit]:
    """Stable multi-key sort. Hits missing a key go last regardless of direction."""
    ordered = list(hits)
    for key in reversed(list(sort_keys)):
        present = [hit for hit in ordered if hit.get(key.field) is not None]
        missing = [hit for hit in ordered if hit.get(key.field) is None]
        present.sort(
            key=lambda hit: _sortable(hit.get(key.field)),
            reverse=key.direction is SortDirection.DESC,
        )
        ordered = present + missing
    return ordered
