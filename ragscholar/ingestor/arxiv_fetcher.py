"""
arXiv Fetcher - arXiv API 검색 결과 수집
========================================

arXiv query API(Atom XML)를 httpx로 호출하고
각 entry를 CandidateRecord로 정규화합니다.

- 무작위 주제 + 무작위 시작 위치로 다양한 논문 수집 (fetch_random)
- 제목/초록의 줄바꿈·연속 공백 정리
"""

import logging
import random
import re
import time
from dataclasses import dataclass, field
from typing import Optional, Union

import httpx
from bs4 import BeautifulSoup

from ragscholar.common.config import ArxivConfig, get_config
from ragscholar.common.models import Author, CandidateRecord, Link

logger = logging.getLogger(__name__)

# 검색 주제 (자연어 질의 + arXiv 카테고리 질의)
DEFAULT_TOPICS = [
    # Computer Science
    "machine learning", "cat:cs.LG",
    "artificial intelligence", "cat:cs.AI",
    "deep learning", "cat:cs.NE",
    "computer vision", "cat:cs.CV",
    "natural language processing", "cat:cs.CL",
    "data mining", "cat:cs.IR",
    "cryptography", "cat:cs.CR",
    "algorithms", "cat:cs.DS",
    "distributed computing", "cat:cs.DC",
    "quantum computing", "cat:cs.ET",
    # Physics
    "quantum physics", "cat:quant-ph",
    "condensed matter", "cat:cond-mat",
    "astrophysics", "cat:astro-ph",
    "high energy physics", "cat:hep-th",
    "optics", "cat:physics.optics",
    "fluid dynamics", "cat:physics.flu-dyn",
    "plasma physics", "cat:physics.plasm-ph",
    # Mathematics
    "algebra", "cat:math.AG",
    "combinatorics", "cat:math.CO",
    "number theory", "cat:math.NT",
    "probability", "cat:math.PR",
    "differential geometry", "cat:math.DG",
    "topology", "cat:math.GT",
    # Other Fields
    "bioinformatics", "cat:q-bio.BM",
    "neuroscience", "cat:q-bio.NC",
    "robotics", "cat:cs.RO",
    "game theory", "cat:cs.GT",
    "statistics", "cat:stat.ML",
    "optimization", "cat:math.OC",
    "signal processing", "cat:eess.SP",
    "networks", "cat:cs.SI",
    "economics", "cat:econ.EM",
    "climate modeling", "cat:physics.ao-ph",
]

_WHITESPACE = re.compile(r'\s+')


@dataclass
class FetcherStats:
    """수집기 통계"""
    requests: int = 0
    failed_requests: int = 0
    entries_fetched: int = 0
    start_time: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return (
            f"FetcherStats("
            f"requests={self.requests:,}, "
            f"failed={self.failed_requests:,}, "
            f"entries={self.entries_fetched:,})"
        )


def _clean(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WHITESPACE.sub(' ', text).strip()


def _child_text(entry, name: str) -> str:
    tag = entry.find(name, recursive=False)
    return _clean(tag.get_text()) if tag else ""


def parse_feed(xml: Union[bytes, str]) -> list[CandidateRecord]:
    """
    arXiv Atom 피드 → CandidateRecord 목록

    lxml-xml 파서는 네임스페이스 접두어 없이 로컬 이름으로 검색 가능
    (arxiv:comment → "comment", arxiv:primary_category → "primary_category")
    """
    soup = BeautifulSoup(xml, "xml")
    records = []

    for entry in soup.find_all("entry"):
        authors = tuple(
            Author(name=_child_text(author, "name"))
            for author in entry.find_all("author", recursive=False)
        )
        links = tuple(
            Link(
                href=link.get("href", ""),
                rel=link.get("rel", ""),
                type=link.get("type", ""),
            )
            for link in entry.find_all("link", recursive=False)
        )
        categories = tuple(
            c.get("term", "")
            for c in entry.find_all("category", recursive=False)
            if c.get("term")
        )
        primary = entry.find("primary_category", recursive=False)

        records.append(CandidateRecord(
            id=_child_text(entry, "id"),
            updated=_child_text(entry, "updated"),
            published=_child_text(entry, "published"),
            title=_child_text(entry, "title"),
            summary=_child_text(entry, "summary"),
            authors=authors,
            comment=_child_text(entry, "comment"),
            links=links,
            primary_category=primary.get("term", "") if primary else "",
            categories=categories,
            doi=_child_text(entry, "doi"),
            journal_ref=_child_text(entry, "journal_ref"),
        ))

    return records


class ArxivFetcher:
    """arXiv query API 클라이언트"""

    def __init__(
        self,
        config: Optional[ArxivConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
        rng: Optional[random.Random] = None,
    ):
        """
        Args:
            config: arXiv 설정 (없으면 환경변수)
            client: 주입할 httpx 클라이언트 (테스트용)
            rng: 주제/시작 위치 선택용 난수 생성기
        """
        self.config = config or get_config().arxiv
        self._client = client
        self._owns_client = client is None
        self._rng = rng or random.Random()
        self.stats = FetcherStats()

    async def start(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.config.request_timeout,
                follow_redirects=True,
            )

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "ArxivFetcher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def fetch(
        self,
        query: str,
        start: int = 0,
        max_results: Optional[int] = None,
    ) -> list[CandidateRecord]:
        """
        검색 1페이지 수집

        Raises:
            httpx.HTTPError: 요청 실패 또는 HTTP 오류 상태
        """
        if self._client is None:
            await self.start()

        params = {
            'search_query': query,
            'start': start,
            'max_results': max_results or self.config.max_results,
        }

        self.stats.requests += 1
        try:
            response = await self._client.get(self.config.api_url, params=params)
            response.raise_for_status()
        except httpx.HTTPError as e:
            self.stats.failed_requests += 1
            logger.error(f"arXiv request failed (query={query!r}, start={start}): {e}")
            raise

        records = parse_feed(response.content)
        self.stats.entries_fetched += len(records)

        logger.info(f"Fetched {len(records)} entries (query={query!r}, start={start})")
        return records

    async def fetch_random(
        self,
        topics: Optional[list[str]] = None,
        max_results: Optional[int] = None,
    ) -> list[CandidateRecord]:
        """무작위 주제 / 무작위 시작 위치(1 ~ max_start)로 1페이지 수집"""
        topics = topics or DEFAULT_TOPICS
        topic = self._rng.choice(topics)
        start = self._rng.randint(1, self.config.max_start)

        logger.info(f"Selected topic={topic!r}, start={start}")
        return await self.fetch(topic, start=start, max_results=max_results)
