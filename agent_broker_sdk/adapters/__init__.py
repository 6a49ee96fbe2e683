"""Concrete search and chat adapters."""

from .a2a_chat import A2A_CHAT_ADAPTER_ID, A2AChatAdapter, A2AHttpClient
from .http import HttpServiceClient, parse_retry_after, raise_for_response
from .registry_broker import (
    REGISTRY_BROKER_CHAT_ADAPTER_ID,
    REGISTRY_BROKER_SEARCH_ADAPTER_ID,
    RegistryBrokerChatAdapter,
    RegistryBrokerClient,
    RegistryBrokerSearchAdapter,
    extract_native_id_from_uaid,
    register_registry_broker_adapters,
)
from .semantic_search import (
    SEMANTIC_SEARCH_ADAPTER_ID,
    SemanticSearchAdapter,
    SemanticSearchClient,
)

__all__ = [
    "A2A_CHAT_ADAPTER_ID",
    "A2AChatAdapter",
    "A2AHttpClient",
    "HttpServiceClient",
    "parse_retry_after",
    "raise_for_response",
    "REGISTRY_BROKER_CHAT_ADAPTER_ID",
    "REGISTRY_BROKER_SEARCH_ADAPTER_ID",
    "RegistryBrokerChatAdapter",
    "RegistryBrokerClient",
    "RegistryBrokerSearchAdapter",
    "extract_native_id_from_uaid",
    "register_registry_broker_adapters",
    "SEMANTIC_SEARCH_ADAPTER_ID",
    "SemanticSearchAdapter",
    "SemanticSearchClient",
]
