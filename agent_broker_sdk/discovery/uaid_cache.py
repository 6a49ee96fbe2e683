"""UAID resolution cache.

Remembers native id -> uaid bindings observed in search hits so a session
can be routed without another search. Entries live as long as the cache
instance; there is no eviction or invalidation. Callers that need either
should wrap the cache rather than change it.
"""
from typing import Dict, Iterable, Optional

from ..core.types import SearchHit


class UaidCache:
    """In-process native id -> uaid map, filled as a side effect of search."""

    def __init__(self):
        self._bindings: Dict[str, str] = {}

    def remember(self, native_id: Optional[str], uaid: Optional[str]) -> bool:
        """Store a binding when both sides are non-empty. Returns whether it was stored."""
        native_id = (native_id or "").strip()
        uaid = (uaid or "").strip()
        if not native_id or not uaid:
            return False
        self._bindings[native_id] = uaid
        return True

    def record_hits(self, hits: Iterable[SearchHit]) -> int:
        """Remember every hit that carries both a native id and a uaid."""
        return sum(1 for hit in hits if self.remember(hit.native_id, hit.uaid))

    def resolve(self, native_id: str) -> Optional[str]:
        """Return the cached uaid for ``native_id``, or None if unseen. Never does I/O."""
        return self._bindings.get((native_id or "").strip())

    def __contains__(self, native_id: object) -> bool:
        return isinstance(native_id, str) and native_id.strip() in self._bindings

    def __len__(self) -> int:
        return len(self._bindings)
