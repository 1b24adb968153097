"""
PaperVectorStore 테스트 (AsyncQdrantClient mock)
================================================

Usage:
    pytest tests/test_storage.py -v
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock

import pytest
from qdrant_client.models import Distance, PointStruct

from ragscholar.common.config import QdrantConfig
from ragscholar.common.errors import ProvisioningError
from ragscholar.common.models import StoredPoint
from ragscholar.storage.qdrant_store import PaperVectorStore


def make_store(client=None, **config):
    qdrant = QdrantConfig(
        url="http://qdrant:6333",
        collection_name=config.pop("collection_name", "papers"),
        vector_size=config.pop("vector_size", 768),
    )
    return PaperVectorStore(qdrant, client=client or AsyncMock())


class TestEnsureCollection:
    """컬렉션 확인 / 생성 (idempotent)"""

    @pytest.mark.asyncio
    async def test_creates_missing_collection(self):
        client = AsyncMock()
        client.collection_exists.return_value = False
        store = make_store(client)

        created = await store.ensure_collection()

        assert created is True
        client.create_collection.assert_awaited_once()
        kwargs = client.create_collection.await_args.kwargs
        assert kwargs["collection_name"] == "papers"
        assert kwargs["vectors_config"].size == 768
        assert kwargs["vectors_config"].distance == Distance.COSINE

    @pytest.mark.asyncio
    async def test_existing_collection_left_alone(self):
        client = AsyncMock()
        client.collection_exists.return_value = True
        store = make_store(client)

        assert await store.ensure_collection() is False
        assert await store.ensure_collection() is False
        client.create_collection.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_check_failure_is_fatal(self):
        client = AsyncMock()
        client.collection_exists.side_effect = ConnectionError("refused")
        store = make_store(client)

        with pytest.raises(ProvisioningError, match="exists"):
            await store.ensure_collection()

    @pytest.mark.asyncio
    async def test_create_failure_is_fatal(self):
        client = AsyncMock()
        client.collection_exists.return_value = False
        client.create_collection.side_effect = RuntimeError("disk full")
        store = make_store(client)

        with pytest.raises(ProvisioningError, match="create"):
            await store.ensure_collection()


class TestUpsert:
    @pytest.mark.asyncio
    async def test_single_call_with_all_points(self):
        client = AsyncMock()
        store = make_store(client)
        points = [
            StoredPoint(id=f"00000000-0000-0000-0000-00000000000{i}", vector=[0.1] * 768, payload={"id": f"p{i}"})
            for i in range(3)
        ]

        assert await store.upsert(points) == 3

        client.upsert.assert_awaited_once()
        kwargs = client.upsert.await_args.kwargs
        assert kwargs["collection_name"] == "papers"
        assert kwargs["wait"] is True
        assert all(isinstance(p, PointStruct) for p in kwargs["points"])
        assert [p.payload["id"] for p in kwargs["points"]] == ["p0", "p1", "p2"]

    @pytest.mark.asyncio
    async def test_empty_batch_skips_call(self):
        client = AsyncMock()
        store = make_store(client)

        assert await store.upsert([]) == 0
        client.upsert.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failure_propagates(self):
        client = AsyncMock()
        client.upsert.side_effect = RuntimeError("503")
        store = make_store(client)

        with pytest.raises(RuntimeError):
            await store.upsert([StoredPoint(id="00000000-0000-0000-0000-0000000000aa", vector=[0.1], payload={})])


class TestReads:
    @pytest.mark.asyncio
    async def test_query_returns_points(self):
        client = AsyncMock()
        hit = SimpleNamespace(id="a", score=0.9, payload={"id": "p"})
        client.query_points.return_value = SimpleNamespace(points=[hit])
        store = make_store(client)

        assert await store.query([0.1] * 768, limit=3) == [hit]
        assert client.query_points.await_args.kwargs["limit"] == 3

    @pytest.mark.asyncio
    async def test_find_by_paper_id_missing(self):
        client = AsyncMock()
        client.scroll.return_value = ([], None)
        store = make_store(client)

        assert await store.find_by_paper_id("nope") is None
        scroll_filter = client.scroll.await_args.kwargs["scroll_filter"]
        assert scroll_filter.must[0].key == "id"
        assert scroll_filter.must[0].match.value == "nope"

    @pytest.mark.asyncio
    async def test_close_keeps_injected_client(self):
        client = AsyncMock()
        store = make_store(client)

        await store.close()

        client.close.assert_not_awaited()
