"""Capability contracts every backend adapter implements.

Optional capabilities are advertised through explicit class-level flags
(``supports_vector_search``, ``supports_encrypted_start``) that callers check
before use. Adapters that do not set a flag inherit a default implementation
that raises :class:`ConfigurationError`.
"""
from abc import ABC, abstractmethod
from typing import FrozenSet, Optional, Tuple

from .exceptions import ConfigurationError
from .types import (
    ChatReply,
    MessageOptions,
    SearchFilters,
    SearchParams,
    SearchResult,
    SessionOptions,
    SessionTarget,
    VectorSearchRequest,
)


class SearchAdapter(ABC):
    """Discovery backend.

    Subclasses set ``id`` and implement :meth:`search`; vector-capable
    adapters also set ``supports_vector_search`` and override
    :meth:`vector_search`.
    """

    id: str = ""
    supports_keyword_search: bool = True
    supports_vector_search: bool = False
    native_sort_fields: FrozenSet[str] = frozenset()

    @abstractmethod
    async def search(self, params: SearchParams) -> SearchResult:
        """Run one keyword search page."""

    async def vector_search(self, request: VectorSearchRequest) -> SearchResult:
        raise ConfigurationError(f"Search adapter '{self.id}' does not support vector search")

    def split_filters(self, filters: SearchFilters) -> Tuple[SearchFilters, SearchFilters]:
        """Split filters into (pushed to backend, applied client-side).

        The default pushes nothing.
        """
        return SearchFilters(), filters

    def split_vector_filters(self, filters: SearchFilters) -> Tuple[SearchFilters, SearchFilters]:
        """Same as :meth:`split_filters`, for :meth:`vector_search` requests.

        Override when the vector endpoint accepts fewer filters than keyword search.
        """
        return self.split_filters(filters)


class EncryptedConversation(ABC):
    """A live encrypted conversation returned by :meth:`ChatAdapter.start_encrypted`."""

    session_id: str

    @abstractmethod
    async def send(self, text: str, options: Optional[MessageOptions] = None) -> ChatReply:
        """Send one turn over the encrypted channel."""


class ChatAdapter(ABC):
    """Conversational backend."""

    id: str = ""
    supports_encrypted_start: bool = False

    @abstractmethod
    async def create_session(
        self,
        target: SessionTarget,
        options: Optional[SessionOptions] = None,
    ) -> str:
        """Open a plaintext session and return its session id."""

    @abstractmethod
    async def send_message(
        self,
        session_id: str,
        text: str,
        options: Optional[MessageOptions] = None,
    ) -> ChatReply:
        """Send one plaintext turn within an existing session."""

    async def start_encrypted(
        self,
        target: SessionTarget,
        options: Optional[SessionOptions] = None,
    ) -> EncryptedConversation:
        raise ConfigurationError(f"Chat adapter '{self.id}' does not support encrypted sessions")

    async def close_session(self, session_id: str) -> None:
        """Forget local state held for ``session_id``. The default holds none."""
