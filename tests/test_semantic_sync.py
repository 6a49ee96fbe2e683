"""Tests for incremental semantic index sync."""

import json

import pytest

from agent_broker_sdk.core.exceptions import ValidationError
from agent_broker_sdk.core.types import SemanticAgentRecord
from agent_broker_sdk.semantic import (
    AgentRecordSource,
    EmbeddingProvider,
    InMemorySyncStateStore,
    JsonFileSyncStateStore,
    SemanticIndexManager,
    SemanticSyncRunner,
    SyncedAgent,
    SyncState,
    VectorStoreProvider,
    compute_agent_hash,
)


class FlatEmbedding(EmbeddingProvider):
    async def embed_one(self, text):
        return [1.0, 0.5]

    async def embed_batch(self, texts):
        return [[1.0, 0.5] for _ in texts]


class RecordingStore(VectorStoreProvider):
    supports_batch_upsert = True
    supports_batch_delete = True

    def __init__(self, fail_upserts=False):
        self.items = {}
        self.deleted = []
        self.fail_upserts = fail_upserts

    async def upsert(self, item):
        await self.upsert_batch([item])

    async def upsert_batch(self, items):
        if self.fail_upserts:
            raise RuntimeError("store offline")
        for item in items:
            self.items[item.id] = item

    async def query(self, params):
        return []

    async def delete(self, vector_id):
        await self.delete_batch([vector_id])

    async def delete_batch(self, vector_ids):
        for vector_id in vector_ids:
            self.deleted.append(vector_id)
            self.items.pop(vector_id, None)


class ListSource(AgentRecordSource):
    """Serves a fixed list of changes ordered by numeric ``updated_at``."""

    def __init__(self, agents):
        self.agents = sorted(agents, key=lambda a: int(a.updated_at))
        self.calls = []

    async def fetch_updated(self, updated_after, limit):
        self.calls.append((updated_after, limit))
        newer = [a for a in self.agents if int(a.updated_at) > int(updated_after)]
        return newer[:limit]


class StuckSource(AgentRecordSource):
    def __init__(self):
        self.calls = 0

    async def fetch_updated(self, updated_after, limit):
        self.calls += 1
        return [changed("1", "0")]


def agent(native_id, name="Trader", description="Trades tokens"):
    return SemanticAgentRecord(registry="erc-8004", native_id=native_id, name=name, description=description)


def changed(native_id, updated_at, **kwargs):
    return SyncedAgent(registry="erc-8004", native_id=native_id, updated_at=updated_at, record=agent(native_id, **kwargs))


def removed(native_id, updated_at):
    return SyncedAgent(registry="erc-8004", native_id=native_id, updated_at=updated_at)


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def manager(store, fast_retry):
    return SemanticIndexManager(FlatEmbedding(), store, retry=fast_retry)


@pytest.mark.asyncio
class TestSemanticSyncRunner:

    async def test_indexes_in_batches_and_checkpoints(self, manager, store):
        source = ListSource([changed("1", "100"), changed("2", "200"), changed("3", "300")])
        state_store = InMemorySyncStateStore()

        report = await SemanticSyncRunner(manager, source, state_store, batch_size=2).run()

        assert (report.indexed, report.batches, report.last_updated_at) == (3, 2, "300")
        assert set(store.items) == {"erc-8004-1", "erc-8004-2", "erc-8004-3"}
        assert source.calls == [("0", 2), ("200", 2), ("300", 2)]
        saved = await state_store.load()
        assert saved.last_updated_at == "300"
        assert saved.agent_hashes["erc-8004-2"] == compute_agent_hash(agent("2"))

    async def test_unchanged_content_is_skipped(self, manager, store):
        state_store = InMemorySyncStateStore(
            SyncState(last_updated_at="50", agent_hashes={"erc-8004-1": compute_agent_hash(agent("1"))})
        )
        source = ListSource([changed("1", "100"), changed("2", "150", name="Forecaster")])

        report = await SemanticSyncRunner(manager, source, state_store).run()

        assert (report.indexed, report.skipped) == (1, 1)
        assert set(store.items) == {"erc-8004-2"}
        assert (await state_store.load()).last_updated_at == "150"

    async def test_changed_content_is_reindexed(self, manager, store):
        old_hash = compute_agent_hash(agent("1"))
        state_store = InMemorySyncStateStore(SyncState("50", {"erc-8004-1": old_hash}))
        source = ListSource([changed("1", "100", description="Trades tokens and NFTs")])

        report = await SemanticSyncRunner(manager, source, state_store).run()

        assert report.indexed == 1
        assert (await state_store.load()).agent_hashes["erc-8004-1"] != old_hash

    async def test_removed_agents_are_deleted(self, manager, store):
        state_store = InMemorySyncStateStore(SyncState("50", {"erc-8004-7": "abc"}))
        source = ListSource([removed("7", "100")])

        report = await SemanticSyncRunner(manager, source, state_store).run()

        assert report.deleted == 1
        assert store.deleted == ["erc-8004-7"]
        assert (await state_store.load()).agent_hashes == {}

    async def test_removed_agents_kept_when_orphans_excluded(self, manager, store):
        state_store = InMemorySyncStateStore(SyncState("50", {"erc-8004-7": "abc"}))
        source = ListSource([removed("7", "100")])

        report = await SemanticSyncRunner(manager, source, state_store, include_orphaned=False).run()

        assert report.deleted == 0
        assert store.deleted == []
        saved = await state_store.load()
        assert saved.last_updated_at == "100"
        assert saved.agent_hashes == {"erc-8004-7": "abc"}

    async def test_second_run_resumes_from_checkpoint(self, manager):
        source = ListSource([changed("1", "9"), changed("2", "10")])
        state_store = InMemorySyncStateStore()
        runner = SemanticSyncRunner(manager, source, state_store)

        await runner.run()
        report = await runner.run()

        assert (report.indexed, report.batches, report.last_updated_at) == (0, 0, "10")
        assert source.calls[-1] == ("10", 50)

    async def test_timestamps_compare_numerically(self, manager):
        # "10" sorts before "9" as text
        source = ListSource([changed("1", "9"), changed("2", "10")])
        state_store = InMemorySyncStateStore()

        report = await SemanticSyncRunner(manager, source, state_store).run()

        assert report.last_updated_at == "10"

    async def test_stops_when_source_does_not_advance(self, manager):
        source = StuckSource()

        report = await SemanticSyncRunner(manager, source).run()

        assert source.calls == 1
        assert report.batches == 1

    async def test_failed_write_leaves_checkpoint(self, fast_retry):
        manager = SemanticIndexManager(FlatEmbedding(), RecordingStore(fail_upserts=True), retry=fast_retry)
        state_store = InMemorySyncStateStore(SyncState("50", {}))
        source = ListSource([changed("1", "100")])

        with pytest.raises(RuntimeError):
            await SemanticSyncRunner(manager, source, state_store).run()

        saved = await state_store.load()
        assert saved.last_updated_at == "50"
        assert saved.agent_hashes == {}

    async def test_rejects_empty_batches(self, manager):
        with pytest.raises(ValidationError):
            SemanticSyncRunner(manager, ListSource([]), batch_size=0)


@pytest.mark.asyncio
class TestSyncStateStores:

    async def test_json_file_store(self, tmp_path):
        path = tmp_path / "state" / "sync.json"
        state_store = JsonFileSyncStateStore(path)

        assert await state_store.load() is None
        await state_store.save(SyncState("123", {"erc-8004-1": "deadbeef"}))

        assert json.loads(path.read_text()) == {"agentHashes": {"erc-8004-1": "deadbeef"}, "lastUpdatedAt": "123"}
        loaded = await state_store.load()
        assert loaded == SyncState("123", {"erc-8004-1": "deadbeef"})

    async def test_in_memory_store_copies(self):
        state = SyncState("1", {"a": "x"})
        state_store = InMemorySyncStateStore()
        await state_store.save(state)

        state.agent_hashes["b"] = "y"

        assert (await state_store.load()).agent_hashes == {"a": "x"}
