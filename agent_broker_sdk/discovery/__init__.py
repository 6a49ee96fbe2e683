"""Agent discovery: search aggregation, client-side filtering and uaid resolution."""

from .aggregator import SearchAggregator
from .filters import apply_filters, matches, sort_hits
from .uaid_cache import UaidCache

__all__ = [
    "SearchAggregator",
    "UaidCache",
    "apply_filters",
    "matches",
    "sort_hits",
]
