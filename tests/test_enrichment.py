"""
BatchEnricher 테스트
====================

배치 1개 → 임베딩 → 포인트 조립 → upsert 1회

Usage:
    pytest tests/test_enrichment.py -v
"""

import pytest
from prometheus_client import CollectorRegistry

from ragscholar.monitoring.metrics import PipelineMetrics
from ragscholar.pipeline.enrichment import BatchEnricher, build_point

from conftest import FakeEmbeddingClient, FakeVectorStore, make_record


class TestBuildPoint:
    def test_payload_and_surrogate_id(self):
        record = make_record("http://arxiv.org/abs/2401.00001v1")

        point = build_point(record, [0.1] * 768)

        assert point.payload == record.to_dict()
        assert point.id != record.id
        assert len(point.id) == 36

    def test_explicit_id(self):
        point = build_point(make_record(), [0.1], point_id="fixed")
        assert point.id == "fixed"


class TestBatchEnricher:
    """process(): 레코드 필터링 + upsert"""

    @pytest.mark.asyncio
    async def test_all_records_stored_in_one_upsert(self):
        client = FakeEmbeddingClient()
        store = FakeVectorStore()
        enricher = BatchEnricher(client, store)
        batch = [make_record(f"paper-{i}") for i in range(3)]

        stored = await enricher.process(batch)

        assert stored == 3
        assert len(store.calls) == 1
        points = store.calls[0]
        assert [p.payload["id"] for p in points] == ["paper-0", "paper-1", "paper-2"]
        assert len({p.id for p in points}) == 3
        assert all(len(p.vector) == 768 for p in points)
        assert enricher.stats.batches_stored == 1
        assert enricher.stats.points_stored == 3

    @pytest.mark.asyncio
    async def test_blank_abstract_skipped_without_embedding(self):
        client = FakeEmbeddingClient()
        store = FakeVectorStore()
        enricher = BatchEnricher(client, store)
        batch = [
            make_record("a"),
            make_record("b", summary="  "),
            make_record("c"),
        ]

        stored = await enricher.process(batch)

        assert stored == 2
        assert client.calls == ["Abstract of a", "Abstract of c"]
        assert [p.payload["id"] for p in store.calls[0]] == ["a", "c"]
        assert enricher.stats.records_skipped == 1

    @pytest.mark.asyncio
    async def test_only_record_with_abstract_is_upserted(self):
        client = FakeEmbeddingClient()
        store = FakeVectorStore()
        enricher = BatchEnricher(client, store)
        batch = [
            make_record("a", summary="quantum computing advances"),
            make_record("b", summary=""),
        ]

        await enricher.process(batch)

        assert len(store.calls) == 1
        assert [p.payload["id"] for p in store.calls[0]] == ["a"]
        assert len(store.calls[0][0].vector) == 768
        assert client.calls == ["quantum computing advances"]

    @pytest.mark.asyncio
    async def test_failed_embeddings_dropped(self):
        """N개 중 k개 실패하면 N-k개 저장"""
        batch = [make_record(f"p{i}") for i in range(5)]
        client = FakeEmbeddingClient(fail_on={"Abstract of p1", "Abstract of p3"})
        store = FakeVectorStore()
        enricher = BatchEnricher(client, store)

        stored = await enricher.process(batch)

        assert stored == 3
        assert [p.payload["id"] for p in store.calls[0]] == ["p0", "p2", "p4"]
        assert enricher.stats.records_failed == 2

    @pytest.mark.asyncio
    async def test_no_points_means_no_upsert(self):
        batch = [make_record("a"), make_record("b")]
        client = FakeEmbeddingClient(fail_on={"Abstract of a", "Abstract of b"})
        store = FakeVectorStore()
        enricher = BatchEnricher(client, store)

        stored = await enricher.process(batch)

        assert stored == 0
        assert store.calls == []
        assert enricher.stats.batches_empty == 1

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        store = FakeVectorStore()
        enricher = BatchEnricher(FakeEmbeddingClient(), store)

        assert await enricher.process([]) == 0
        assert store.calls == []

    @pytest.mark.asyncio
    async def test_dimension_mismatch_is_kept(self):
        """차원이 다른 벡터는 경고만 남기고 저장"""
        client = FakeEmbeddingClient(dimensions={"Abstract of short": 512})
        store = FakeVectorStore()
        enricher = BatchEnricher(client, store)

        stored = await enricher.process([make_record("short"), make_record("full")])

        assert stored == 2
        assert [len(p.vector) for p in store.calls[0]] == [512, 768]
        assert enricher.stats.dimension_mismatches == 1

    @pytest.mark.asyncio
    async def test_upsert_failure_propagates(self):
        store = FakeVectorStore(fail_times=1)
        enricher = BatchEnricher(FakeEmbeddingClient(), store)

        with pytest.raises(RuntimeError, match="qdrant unavailable"):
            await enricher.process([make_record()])

        assert len(store.calls) == 1
        assert enricher.stats.batches_failed == 1
        assert enricher.stats.points_stored == 0

    @pytest.mark.asyncio
    async def test_reingested_paper_gets_new_point(self):
        """같은 논문 id가 다시 들어오면 새 surrogate id로 중복 저장"""
        store = FakeVectorStore()
        enricher = BatchEnricher(FakeEmbeddingClient(), store)

        await enricher.process([make_record("dup")])
        await enricher.process([make_record("dup")])

        assert len(store.stored) == 2
        assert store.stored[0].id != store.stored[1].id

    @pytest.mark.asyncio
    async def test_metrics_recorded(self):
        registry = CollectorRegistry()
        metrics = PipelineMetrics(registry)
        client = FakeEmbeddingClient(fail_on={"Abstract of bad"})
        enricher = BatchEnricher(client, FakeVectorStore(), metrics=metrics)

        await enricher.process([
            make_record("ok"),
            make_record("bad"),
            make_record("blank", summary=""),
        ])

        def sample(name, **labels):
            return registry.get_sample_value(name, labels)

        assert sample("ragscholar_records_total", status="embedded") == 1
        assert sample("ragscholar_records_total", status="failed") == 1
        assert sample("ragscholar_records_total", status="skipped") == 1
        assert sample("ragscholar_batches_total", status="stored") == 1
