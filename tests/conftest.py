"""
공용 테스트 fixture / fake
==========================

외부 의존성(Kafka, Qdrant, 임베딩 API) 없이 파이프라인을 돌리기 위한 가짜 구현
"""

import asyncio
import json
import sys
from pathlib import Path
from types import SimpleNamespace
from typing import Optional

import pytest

# 프로젝트 루트를 path에 추가
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ragscholar.common.config import reset_config
from ragscholar.common.errors import EmbeddingError
from ragscholar.common.models import Author, CandidateRecord, Link


def make_record(paper_id: str = "http://arxiv.org/abs/2401.00001v1", **overrides) -> CandidateRecord:
    fields = dict(
        id=paper_id,
        updated="2024-01-02T00:00:00Z",
        published="2024-01-01T00:00:00Z",
        title=f"Title of {paper_id}",
        summary=f"Abstract of {paper_id}",
        authors=(Author(name="Ada Lovelace"),),
        links=(Link(href=paper_id, rel="alternate", type="text/html"),),
        primary_category="cs.LG",
        categories=("cs.LG", "stat.ML"),
    )
    fields.update(overrides)
    return CandidateRecord(**fields)


def make_message(records: list[CandidateRecord]) -> bytes:
    return json.dumps([r.to_dict() for r in records]).encode('utf-8')


class FakeEmbeddingClient:
    """EmbeddingClient 대역 (레이트 리미터 없음)"""

    def __init__(self, dimension: int = 768, fail_on: Optional[set] = None, dimensions: Optional[dict] = None):
        self.dimension = dimension
        self.fail_on = fail_on or set()
        self.dimensions = dimensions or {}
        self.calls: list[str] = []
        self.model_name = "fake-embedder"

    async def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        if text in self.fail_on:
            raise EmbeddingError(f"embedding failed for {text!r}")
        size = self.dimensions.get(text, self.dimension)
        return [0.1] * size


class FakeVectorStore:
    """
    PaperVectorStore 대역

    release가 주어지면 upsert는 이벤트가 set될 때까지 대기.
    fail_times만큼 앞쪽 upsert 호출은 예외.
    """

    def __init__(self, release: Optional[asyncio.Event] = None, fail_times: int = 0, delay: float = 0.0):
        self.release = release
        self.fail_times = fail_times
        self.delay = delay
        self.calls: list[list] = []
        self.stored: list = []
        self.in_flight = 0

    async def upsert(self, points: list) -> int:
        self.calls.append(points)
        self.in_flight += 1
        try:
            if self.release is not None:
                await self.release.wait()
            if self.delay:
                await asyncio.sleep(self.delay)
            if len(self.calls) <= self.fail_times:
                raise RuntimeError("qdrant unavailable")
            self.stored.extend(points)
            return len(points)
        finally:
            self.in_flight -= 1


class FakeRecordQueue:
    """
    KafkaRecordQueue 대역

    payloads를 순서대로 전달. block_at_end면 다 보낸 뒤 종료 요청까지 대기.
    """

    def __init__(self, payloads: list, block_at_end: bool = False):
        self.payloads = list(payloads)
        self.block_at_end = block_at_end
        self.delivered = 0
        self.acked = 0

    async def messages(self):
        for payload in self.payloads:
            self.delivered += 1
            yield payload
        if self.block_at_end:
            await asyncio.Event().wait()

    async def ack(self) -> None:
        self.acked = self.delivered


class FakeReadStore:
    """PaperVectorStore 읽기 API 대역"""

    def __init__(self, hits=None, by_id=None, points=None):
        self.hits = hits or []
        self.by_id = by_id or {}
        self.points = points or []
        self.queries = []

    async def query(self, vector, limit):
        self.queries.append((vector, limit))
        return self.hits[:limit]

    async def find_by_paper_id(self, paper_id):
        return self.by_id.get(paper_id)

    async def scroll(self, limit):
        return self.points[:limit]


def make_point(paper_id: str, score: Optional[float] = None) -> SimpleNamespace:
    """Qdrant ScoredPoint 모양의 검색 결과"""
    return SimpleNamespace(
        id=f"uuid-{paper_id}",
        score=score,
        payload=make_record(paper_id).to_dict(),
    )


class FakeClock:
    """수동으로 진행되는 시계 + 가짜 sleep"""

    def __init__(self, now: float = 1000.0):
        self.now = now
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


async def wait_until(predicate, timeout: float = 2.0) -> None:
    """조건이 참이 될 때까지 이벤트 루프 양보"""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()
