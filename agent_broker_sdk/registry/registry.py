"""Adapter Registry - directory of search and chat adapters by id."""
from enum import Enum
from typing import Dict, List, Optional, Union

from ..core.adapters import ChatAdapter, SearchAdapter
from ..core.exceptions import ValidationError
from ..utils.logger import get_logger

logger = get_logger("registry.registry")

Adapter = Union[SearchAdapter, ChatAdapter]


class AdapterCapability(Enum):
    """Capability an adapter is registered under."""
    SEARCH = "search"
    CHAT = "chat"


class AdapterRegistry:
    """
    Adapter Registry - maps adapter ids to adapter instances per capability.

    Registering an id that already exists replaces the previous adapter
    (last write wins). The registry holds no call state; lookups and
    registrations are plain dictionary operations, so registering two
    distinct ids is order-independent.
    """

    def __init__(self):
        self._adapters: Dict[AdapterCapability, Dict[str, Adapter]] = {
            AdapterCapability.SEARCH: {},
            AdapterCapability.CHAT: {},
        }

    def register_search(self, adapter: SearchAdapter) -> None:
        """Register a search adapter under its ``id``."""
        self._register(AdapterCapability.SEARCH, adapter)

    def register_chat(self, adapter: ChatAdapter) -> None:
        """Register a chat adapter under its ``id``."""
        self._register(AdapterCapability.CHAT, adapter)

    def get(self, capability: AdapterCapability, adapter_id: str) -> Optional[Adapter]:
        """Get an adapter by id, or None if nothing is registered under it."""
        return self._adapters[capability].get(adapter_id)

    def list(self, capability: AdapterCapability) -> List[str]:
        """List registered adapter ids for a capability."""
        return list(self._adapters[capability])

    def search_adapters(self) -> List[SearchAdapter]:
        return list(self._adapters[AdapterCapability.SEARCH].values())

    def chat_adapters(self) -> List[ChatAdapter]:
        return list(self._adapters[AdapterCapability.CHAT].values())

    def _register(self, capability: AdapterCapability, adapter: Adapter) -> None:
        adapter_id = getattr(adapter, "id", None)
        if not isinstance(adapter_id, str) or not adapter_id.strip():
            raise ValidationError(f"{capability.value} adapter must have a non-empty id")

        replaced = adapter_id in self._adapters[capability]
        self._adapters[capability][adapter_id] = adapter
        if replaced:
            logger.info(f"Replaced {capability.value} adapter: {adapter_id}")
        else:
            logger.info(f"Registered {capability.value} adapter: {adapter_id}")
