"""
Ingestor 테스트 (arXiv 수집 / 배치 발행)
========================================

httpx.MockTransport로 arXiv API를, 가짜 producer로 Kafka를 대체

Usage:
    pytest tests/test_ingestor.py -v
"""

import json
import random

import httpx
import pytest
from aiokafka.errors import KafkaTimeoutError

from ragscholar.common.config import ArxivConfig
from ragscholar.ingestor.arxiv_fetcher import DEFAULT_TOPICS, ArxivFetcher, parse_feed
from ragscholar.ingestor.kafka_producer import BatchPublisher

from conftest import make_record


ATOM_FEED = """<?xml version="1.0" encoding="UTF-8"?>
<feed xmlns="http://www.w3.org/2005/Atom"
      xmlns:arxiv="http://arxiv.org/schemas/atom"
      xmlns:opensearch="http://a9.com/-/spec/opensearch/1.1/">
  <title type="html">ArXiv Query</title>
  <id>http://arxiv.org/api/query-id</id>
  <opensearch:totalResults>2</opensearch:totalResults>
  <entry>
    <id>http://arxiv.org/abs/2401.01234v1</id>
    <updated>2024-01-03T12:00:00Z</updated>
    <published>2024-01-02T12:00:00Z</published>
    <title>Scaling Laws
      for Sparse   Models</title>
    <summary>  We study scaling.
      Results follow.  </summary>
    <author><name>Ada Lovelace</name></author>
    <author><name>Alan Turing</name><arxiv:affiliation>Cambridge</arxiv:affiliation></author>
    <arxiv:comment>10 pages</arxiv:comment>
    <arxiv:doi>10.1000/abc</arxiv:doi>
    <arxiv:journal_ref>NeurIPS 2024</arxiv:journal_ref>
    <link href="http://arxiv.org/abs/2401.01234v1" rel="alternate" type="text/html"/>
    <link title="pdf" href="http://arxiv.org/pdf/2401.01234v1" rel="related" type="application/pdf"/>
    <arxiv:primary_category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
    <category term="cs.LG" scheme="http://arxiv.org/schemas/atom"/>
    <category term="stat.ML" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
  <entry>
    <id>http://arxiv.org/abs/2401.05678v2</id>
    <updated>2024-01-05T00:00:00Z</updated>
    <published>2024-01-04T00:00:00Z</published>
    <title>Minimal Entry</title>
    <summary></summary>
    <author><name>Grace Hopper</name></author>
    <arxiv:primary_category term="math.CO" scheme="http://arxiv.org/schemas/atom"/>
    <category term="math.CO" scheme="http://arxiv.org/schemas/atom"/>
  </entry>
</feed>
"""


def make_fetcher(handler, seed=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    config = ArxivConfig(
        api_url="http://export.arxiv.org/api/query",
        max_results=10,
        max_start=200,
        request_timeout=5.0,
    )
    rng = random.Random(seed) if seed is not None else None
    return ArxivFetcher(config, client=client, rng=rng), client


class TestParseFeed:
    """Atom → CandidateRecord"""

    def test_maps_entry_fields(self):
        records = parse_feed(ATOM_FEED.encode())

        assert len(records) == 2
        first = records[0]
        assert first.id == "http://arxiv.org/abs/2401.01234v1"
        assert first.title == "Scaling Laws for Sparse Models"
        assert first.summary == "We study scaling. Results follow."
        assert [a.name for a in first.authors] == ["Ada Lovelace", "Alan Turing"]
        assert first.comment == "10 pages"
        assert first.doi == "10.1000/abc"
        assert first.journal_ref == "NeurIPS 2024"
        assert first.primary_category == "cs.LG"
        assert first.categories == ("cs.LG", "stat.ML")
        assert first.links[1].href == "http://arxiv.org/pdf/2401.01234v1"
        assert first.links[1].type == "application/pdf"

    def test_optional_fields_default_to_empty(self):
        second = parse_feed(ATOM_FEED.encode())[1]

        assert second.summary == ""
        assert not second.has_abstract
        assert second.doi == ""
        assert second.links == ()

    def test_feed_without_entries(self):
        assert parse_feed('<feed xmlns="http://www.w3.org/2005/Atom"></feed>') == []


class TestArxivFetcher:
    @pytest.mark.asyncio
    async def test_fetch_sends_query_params(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=ATOM_FEED)

        fetcher, client = make_fetcher(handler)
        async with client:
            records = await fetcher.fetch("cat:cs.LG", start=20, max_results=5)

        assert len(records) == 2
        params = seen[0].url.params
        assert params["search_query"] == "cat:cs.LG"
        assert params["start"] == "20"
        assert params["max_results"] == "5"
        assert fetcher.stats.entries_fetched == 2

    @pytest.mark.asyncio
    async def test_http_error_raises(self):
        fetcher, client = make_fetcher(lambda request: httpx.Response(503))

        async with client:
            with pytest.raises(httpx.HTTPStatusError):
                await fetcher.fetch("robotics")

        assert fetcher.stats.failed_requests == 1

    @pytest.mark.asyncio
    async def test_fetch_random_picks_topic_and_start(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, text=ATOM_FEED)

        fetcher, client = make_fetcher(handler, seed=7)
        async with client:
            for _ in range(5):
                await fetcher.fetch_random()

        for request in seen:
            assert request.url.params["search_query"] in DEFAULT_TOPICS
            assert 1 <= int(request.url.params["start"]) <= 200
            assert request.url.params["max_results"] == "10"


class FakeProducer:
    def __init__(self, error=None):
        self.error = error
        self.sent = []
        self.started = False

    async def start(self):
        self.started = True

    async def stop(self):
        self.started = False

    async def send_and_wait(self, topic, value=None, key=None):
        if self.error:
            raise self.error
        self.sent.append((topic, value))


class TestBatchPublisher:
    @pytest.mark.asyncio
    async def test_publishes_json_array(self):
        producer = FakeProducer()
        publisher = BatchPublisher(topic="paper-fetcher", producer=producer)

        async with publisher:
            ok = await publisher.publish([make_record("a"), make_record("b")])

        assert ok
        topic, value = producer.sent[0]
        assert topic == "paper-fetcher"
        assert [e["id"] for e in json.loads(value)] == ["a", "b"]
        assert publisher.stats.records_sent == 2
        assert not producer.started

    @pytest.mark.asyncio
    async def test_empty_batch_not_published(self):
        producer = FakeProducer()
        publisher = BatchPublisher(producer=producer)

        async with publisher:
            assert await publisher.publish([]) is False

        assert producer.sent == []
        assert publisher.stats.batches_skipped == 1

    @pytest.mark.asyncio
    async def test_send_failure_counted(self):
        publisher = BatchPublisher(producer=FakeProducer(error=KafkaTimeoutError()))

        async with publisher:
            assert await publisher.publish([make_record()]) is False

        assert publisher.stats.batches_failed == 1

    @pytest.mark.asyncio
    async def test_publish_before_start(self):
        publisher = BatchPublisher(producer=FakeProducer())

        with pytest.raises(RuntimeError):
            await publisher.publish([make_record()])
