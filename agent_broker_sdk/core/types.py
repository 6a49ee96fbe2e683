"""Type definitions for the SDK."""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .exceptions import ValidationError

RegistryId = Union[str, int]

MCP_ENDPOINT_FIELD = "mcpEndpoint"
A2A_ENDPOINT_FIELD = "a2aEndpoint"


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    trimmed = str(value).strip()
    return trimmed or None


class SortDirection(Enum):
    """Sort direction for client-side ordering."""
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortKey:
    """One ordering key: a hit field plus a direction."""
    field: str
    direction: SortDirection = SortDirection.ASC

    @classmethod
    def parse(cls, spec: str) -> "SortKey":
        """Parse ``"field"`` or ``"field:asc|desc"``."""
        name, _, direction = spec.partition(":")
        name = name.strip()
        if not name:
            raise ValidationError(f"Invalid sort key: {spec!r}")
        direction = direction.strip().lower() or "asc"
        try:
            return cls(field=name, direction=SortDirection(direction))
        except ValueError:
            raise ValidationError(f"Invalid sort direction in {spec!r}")

    def __str__(self) -> str:
        return f"{self.field}:{self.direction.value}"


@dataclass
class SearchFilters:
    """Structured filters.

    ``equals`` maps field to required value, ``membership`` maps field to the
    allowed values, ``exists``/``not_exists`` list fields that must or must not
    carry a value, ``name_contains`` is a case-insensitive name substring.
    """
    equals: Dict[str, Any] = field(default_factory=dict)
    membership: Dict[str, List[Any]] = field(default_factory=dict)
    exists: List[str] = field(default_factory=list)
    not_exists: List[str] = field(default_factory=list)
    name_contains: Optional[str] = None

    def is_empty(self) -> bool:
        return not (
            self.equals or self.membership or self.exists
            or self.not_exists or _clean(self.name_contains)
        )

    def merged(self, other: "SearchFilters") -> "SearchFilters":
        """Combine two filter sets; ``other`` wins on conflicting equality keys."""
        return SearchFilters(
            equals={**self.equals, **other.equals},
            membership={**self.membership, **other.membership},
            exists=list(dict.fromkeys([*self.exists, *other.exists])),
            not_exists=list(dict.fromkeys([*self.not_exists, *other.not_exists])),
            name_contains=other.name_contains or self.name_contains,
        )

    def to_standard(self) -> Dict[str, Any]:
        """Render as the standard search API filter object."""
        payload: Dict[str, Any] = {}
        if self.equals:
            payload["equals"] = dict(self.equals)
        if self.membership:
            payload["in"] = {k: list(v) for k, v in self.membership.items()}
        if self.exists:
            payload["exists"] = list(self.exists)
        if self.not_exists:
            payload["notExists"] = list(self.not_exists)
        return payload


@dataclass
class SearchQuery:
    """A discovery request as issued by the caller.

    ``adapter_scope`` of ``None`` means "default": the aggregator applies the
    default adapter id for the default registry and no restriction elsewhere.
    An explicit empty list means "no adapter restriction anywhere".
    """
    query_text: Optional[str] = None
    filters: SearchFilters = field(default_factory=SearchFilters)
    registry_scope: Optional[Union[RegistryId, Sequence[RegistryId]]] = None
    adapter_scope: Optional[List[str]] = None
    limit: int = 25
    sort_keys: List[SortKey] = field(default_factory=list)
    mcp: Optional[bool] = None
    a2a: Optional[bool] = None
    min_score: Optional[float] = None

    @property
    def text(self) -> Optional[str]:
        return _clean(self.query_text)

    def effective_filters(self) -> SearchFilters:
        """Filters with the ``mcp``/``a2a`` convenience flags folded in."""
        exists: List[str] = []
        not_exists: List[str] = []
        for flag, name in ((self.mcp, MCP_ENDPOINT_FIELD), (self.a2a, A2A_ENDPOINT_FIELD)):
            if flag is True:
                exists.append(name)
            elif flag is False:
                not_exists.append(name)
        return self.filters.merged(SearchFilters(exists=exists, not_exists=not_exists))


@dataclass
class SearchParams:
    """Parameters of a single keyword search call against one adapter."""
    query: Optional[str] = None
    registry: Optional[RegistryId] = None
    adapters: Optional[List[str]] = None
    limit: int = 25
    page: int = 1
    sort_keys: List[SortKey] = field(default_factory=list)
    filters: SearchFilters = field(default_factory=SearchFilters)


@dataclass
class VectorSearchRequest:
    """Parameters of a vector/semantic search call."""
    query: str
    limit: int = 25
    offset: int = 0
    registries: List[RegistryId] = field(default_factory=list)
    adapters: Optional[List[str]] = None
    filters: SearchFilters = field(default_factory=SearchFilters)
    min_score: Optional[float] = None


@dataclass
class SearchHit:
    """A normalized discovery result. Identity key is ``(registry, native_id)``."""
    native_id: str
    registry: Optional[RegistryId] = None
    uaid: Optional[str] = None
    name: Optional[str] = None
    description: Optional[str] = None
    score: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> Tuple[Optional[RegistryId], str]:
        return (self.registry, self.native_id)

    def get(self, name: str) -> Any:
        """Read a field by name, from the hit itself first, then metadata."""
        top_level = {
            "nativeId": self.native_id,
            "native_id": self.native_id,
            "registry": self.registry,
            "uaid": self.uaid,
            "name": self.name,
            "description": self.description,
            "score": self.score,
        }
        if name in top_level and top_level[name] is not None:
            return top_level[name]
        return self.metadata.get(name)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "native_id": self.native_id,
            "registry": self.registry,
            "uaid": self.uaid,
            "name": self.name,
            "description": self.description,
            "score": self.score,
            "metadata": self.metadata,
        }


@dataclass
class SearchResult:
    """What a search adapter returns for one call."""
    hits: List[SearchHit] = field(default_factory=list)
    total: Optional[int] = None
    elapsed: Optional[float] = None


class SearchStrategy(Enum):
    """Which aggregator step produced a result."""
    VECTOR = "vector"
    KEYWORD = "keyword"


@dataclass
class AggregatedSearchResult:
    """Aggregated, filtered, sorted and truncated discovery result."""
    hits: List[SearchHit]
    registries: List[RegistryId]
    strategy: SearchStrategy

    @property
    def total(self) -> int:
        return len(self.hits)


@dataclass(frozen=True)
class AgentHandle:
    """An agent selected by the caller, ready to be messaged.

    Immutable: resolving a uaid later yields a new handle via ``with_uaid``.
    """
    native_id: Optional[str] = None
    uaid: Optional[str] = None
    registry: Optional[RegistryId] = None
    name: Optional[str] = None
    description: Optional[str] = None
    a2a_endpoint: Optional[str] = None
    mcp_endpoint: Optional[str] = None

    @property
    def endpoint_url(self) -> Optional[str]:
        return _clean(self.a2a_endpoint) or _clean(self.mcp_endpoint)

    @classmethod
    def from_hit(cls, hit: SearchHit) -> "AgentHandle":
        a2a = hit.metadata.get(A2A_ENDPOINT_FIELD)
        mcp = hit.metadata.get(MCP_ENDPOINT_FIELD)
        return cls(
            native_id=hit.native_id,
            uaid=_clean(hit.uaid),
            registry=hit.registry,
            name=hit.name,
            description=hit.description,
            a2a_endpoint=a2a if isinstance(a2a, str) else None,
            mcp_endpoint=mcp if isinstance(mcp, str) else None,
        )

    def with_uaid(self, uaid: str) -> "AgentHandle":
        return replace(self, uaid=uaid)


@dataclass(frozen=True)
class SessionTarget:
    """Where a chat session is opened: exactly one of ``uaid`` or ``agent_url``."""
    uaid: Optional[str] = None
    agent_url: Optional[str] = None

    def __post_init__(self):
        uaid = _clean(self.uaid)
        agent_url = _clean(self.agent_url)
        if bool(uaid) == bool(agent_url):
            raise ValidationError("Exactly one of uaid or agent_url is required for chat")
        object.__setattr__(self, "uaid", uaid)
        object.__setattr__(self, "agent_url", agent_url)

    @classmethod
    def for_uaid(cls, uaid: str) -> "SessionTarget":
        return cls(uaid=uaid)

    @classmethod
    def for_url(cls, agent_url: str) -> "SessionTarget":
        return cls(agent_url=agent_url)

    def to_dict(self) -> Dict[str, str]:
        if self.uaid:
            return {"uaid": self.uaid}
        return {"agentUrl": self.agent_url}


class SessionMode(Enum):
    """Transport mode of an established session. Fixed for its lifetime."""
    ENCRYPTED = "encrypted"
    PLAINTEXT = "plaintext"


class EncryptionPreference(Enum):
    """How hard the broker tries to encrypt a new session."""
    PREFERRED = "preferred"
    REQUIRED = "required"
    DISABLED = "disabled"


@dataclass
class AuthConfig:
    """Credentials forwarded to the agent through the chat backend."""
    token: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None
    header_name: Optional[str] = None
    header_value: Optional[str] = None
    headers: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = {
            "token": self.token,
            "username": self.username,
            "password": self.password,
            "headerName": self.header_name,
            "headerValue": self.header_value,
            "headers": self.headers or None,
        }
        return {k: v for k, v in payload.items() if v is not None}


@dataclass
class SessionOptions:
    """Options applied when a session is created."""
    history_ttl_seconds: Optional[int] = None
    auth: Optional[AuthConfig] = None
    sender_uaid: Optional[str] = None


@dataclass
class MessageOptions:
    """Options applied to a single message turn."""
    auth: Optional[AuthConfig] = None
    streaming: bool = False


@dataclass
class ChatReply:
    """The agent's answer to one turn."""
    text: Optional[str] = None
    raw: Any = None
    history_length: int = 0


@dataclass
class ChatResult:
    """Outcome of a one-shot chat: session opened plus one turn."""
    session_id: str
    reply: ChatReply
    mode: SessionMode


# Semantic index types

@dataclass(frozen=True)
class AgentKey:
    """Identity of an indexed agent."""
    registry: RegistryId
    native_id: str


@dataclass
class SemanticAgentRecord:
    """An agent as fed into the semantic index."""
    registry: RegistryId
    native_id: str
    name: str = ""
    description: str = ""
    capabilities: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> AgentKey:
        return AgentKey(self.registry, self.native_id)


@dataclass
class SemanticQueryRequest:
    """A semantic index lookup."""
    query: str
    limit: int = 10
    offset: int = 0
    filters: SearchFilters = field(default_factory=SearchFilters)
    min_score: Optional[float] = None


@dataclass
class SemanticMatch:
    """A ranked semantic index match."""
    rank: int
    vector_id: str
    native_id: str
    registry: RegistryId
    name: str
    description: str
    score: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_hit(self) -> SearchHit:
        return SearchHit(
            native_id=self.native_id,
            registry=self.registry,
            uaid=_clean(self.metadata.get("uaid")) if isinstance(self.metadata.get("uaid"), str) else None,
            name=self.name,
            description=self.description,
            score=self.score,
            metadata=dict(self.metadata),
        )
