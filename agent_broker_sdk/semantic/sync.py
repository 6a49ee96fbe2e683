"""Incremental semantic index sync.

Pulls agents changed since the last run from a record source in batches,
re-indexes the ones whose content hash changed and deletes the ones whose
registration disappeared. Progress is checkpointed to a state store after
every batch, so an interrupted run resumes where it stopped.
"""
import asyncio
import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from ..core.exceptions import ValidationError
from ..core.types import AgentKey, RegistryId, SemanticAgentRecord
from ..utils.logger import get_logger
from .manager import SemanticIndexManager, vector_id_for

logger = get_logger("semantic.sync")


@dataclass
class SyncState:
    """Checkpoint of a sync: the newest ``updated_at`` seen plus one hash per indexed agent."""
    last_updated_at: str = "0"
    agent_hashes: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, object]:
        return {"lastUpdatedAt": self.last_updated_at, "agentHashes": dict(self.agent_hashes)}

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> "SyncState":
        hashes = data.get("agentHashes") or {}
        return cls(
            last_updated_at=str(data.get("lastUpdatedAt") or "0"),
            agent_hashes={str(k): str(v) for k, v in dict(hashes).items()},
        )


@dataclass
class SyncedAgent:
    """One changed agent reported by a record source.

    ``record`` is None when the agent's registration is gone; the agent is
    then removed from the index.
    """
    registry: RegistryId
    native_id: str
    updated_at: str
    record: Optional[SemanticAgentRecord] = None

    @property
    def key(self) -> AgentKey:
        return AgentKey(self.registry, self.native_id)


@dataclass
class SyncReport:
    """What one :meth:`SemanticSyncRunner.run` did."""
    indexed: int = 0
    deleted: int = 0
    skipped: int = 0
    batches: int = 0
    last_updated_at: str = "0"


class AgentRecordSource(ABC):
    """Where agents to index come from (a subgraph, a registry export, ...)."""

    @abstractmethod
    async def fetch_updated(self, updated_after: str, limit: int) -> List[SyncedAgent]:
        """Agents with ``updated_at`` strictly after ``updated_after``, oldest first."""


class SyncStateStore(ABC):
    """Persists the sync checkpoint between runs."""

    @abstractmethod
    async def load(self) -> Optional[SyncState]:
        """Return the saved state, or None before the first run."""

    @abstractmethod
    async def save(self, state: SyncState) -> None:
        """Persist ``state``."""


class InMemorySyncStateStore(SyncStateStore):
    """Keeps the checkpoint for the lifetime of the process."""

    def __init__(self, state: Optional[SyncState] = None):
        self._state = state

    async def load(self) -> Optional[SyncState]:
        if self._state is None:
            return None
        return SyncState.from_dict(self._state.to_dict())

    async def save(self, state: SyncState) -> None:
        self._state = SyncState.from_dict(state.to_dict())


class JsonFileSyncStateStore(SyncStateStore):
    """Keeps the checkpoint in a JSON file."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    async def load(self) -> Optional[SyncState]:
        if not self.path.exists():
            return None
        text = await asyncio.to_thread(self.path.read_text, encoding="utf-8")
        return SyncState.from_dict(json.loads(text))

    async def save(self, state: SyncState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        text = json.dumps(state.to_dict(), indent=2, sort_keys=True)
        await asyncio.to_thread(self.path.write_text, text, encoding="utf-8")


def compute_agent_hash(record: SemanticAgentRecord) -> str:
    """Content hash of everything that ends up in the index for ``record``."""
    payload = json.dumps(asdict(record), sort_keys=True, default=str)
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


def _is_later(candidate: str, current: str) -> bool:
    # Block timestamps arrive as decimal strings; compare them numerically.
    if candidate.isdigit() and current.isdigit():
        return int(candidate) > int(current)
    return candidate > current


class SemanticSyncRunner:
    """
    Keeps a semantic index in step with a record source.

    Args:
        manager: Index to write to
        source: Provider of changed agents
        state_store: Checkpoint storage (in-memory by default)
        batch_size: Agents fetched per round trip
        include_orphaned: Delete agents whose registration is gone

    Example:
        >>> runner = SemanticSyncRunner(manager, MySubgraphSource(), JsonFileSyncStateStore("sync.json"))
        >>> report = await runner.run()
    """

    def __init__(
        self,
        manager: SemanticIndexManager,
        source: AgentRecordSource,
        state_store: Optional[SyncStateStore] = None,
        batch_size: int = 50,
        include_orphaned: bool = True,
    ):
        if batch_size < 1:
            raise ValidationError("batch_size must be at least 1")
        self.manager = manager
        self.source = source
        self.state_store = state_store or InMemorySyncStateStore()
        self.batch_size = batch_size
        self.include_orphaned = include_orphaned

    async def run(self) -> SyncReport:
        """Process every batch the source has, checkpointing after each one."""
        state = await self.state_store.load() or SyncState()
        report = SyncReport(last_updated_at=state.last_updated_at)

        while True:
            agents = await self.source.fetch_updated(state.last_updated_at, self.batch_size)
            if not agents:
                break

            to_index: List[SemanticAgentRecord] = []
            to_delete: List[AgentKey] = []
            new_hashes: Dict[str, Optional[str]] = {}
            newest = state.last_updated_at

            for agent in agents:
                updated_at = str(agent.updated_at or "0")
                if _is_later(updated_at, newest):
                    newest = updated_at

                hash_key = vector_id_for(agent.registry, agent.native_id)
                if agent.record is None:
                    if self.include_orphaned:
                        to_delete.append(agent.key)
                        new_hashes[hash_key] = None
                    continue

                digest = compute_agent_hash(agent.record)
                if state.agent_hashes.get(hash_key) == digest:
                    report.skipped += 1
                    continue
                to_index.append(agent.record)
                new_hashes[hash_key] = digest

            if to_index:
                await self.manager.index_batch(to_index)
            if to_delete:
                await self.manager.delete_batch(to_delete)

            # Hashes only move once the writes above went through.
            for hash_key, digest in new_hashes.items():
                if digest is None:
                    state.agent_hashes.pop(hash_key, None)
                else:
                    state.agent_hashes[hash_key] = digest

            advanced = newest != state.last_updated_at
            state.last_updated_at = newest
            await self.state_store.save(state)

            report.indexed += len(to_index)
            report.deleted += len(to_delete)
            report.batches += 1
            report.last_updated_at = newest
            logger.info(
                "Semantic sync batch processed",
                indexed=len(to_index),
                deleted=len(to_delete),
                last_updated_at=newest,
            )

            if not advanced:
                logger.warning(
                    "Record source returned agents without advancing updated_at; stopping sync",
                    last_updated_at=newest,
                )
                break

        if report.batches == 0:
            logger.info("Semantic sync found nothing new", last_updated_at=state.last_updated_at)
        return report
