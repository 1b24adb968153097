"""
Paper Search - 논문 벡터 검색 인터페이스
========================================

papers 컬렉션에 대한 읽기 전용 조회.

사용 예시:
    searcher = PaperSearcher(embedding_client, store)
    results = await searcher.search("graph neural networks for molecules")
    context = searcher.format_context(results)
    # PaperExplainer.answer()가 context를 Gemini 프롬프트로 사용

쿼리 임베딩은 파이프라인과 같은 EmbeddingClient(레이트 리미터 포함)를 사용합니다.
"""

import logging
from typing import Any, Optional

from ragscholar.common.models import CandidateRecord, SearchResult
from ragscholar.embedding.client import EmbeddingClient

logger = logging.getLogger(__name__)


def _to_result(point: Any) -> SearchResult:
    return SearchResult(
        record=CandidateRecord.from_dict(point.payload or {}),
        score=float(getattr(point, 'score', 0.0) or 0.0),
        point_id=str(point.id),
    )


class PaperSearcher:
    """Qdrant 기반 논문 유사도 검색기"""

    DEFAULT_TOP_K = 5

    def __init__(self, embedding_client: EmbeddingClient, vector_store: Any):
        """
        Args:
            embedding_client: 쿼리 임베딩용 클라이언트
            vector_store: PaperVectorStore (query / find_by_paper_id / scroll)
        """
        self.embedding_client = embedding_client
        self.vector_store = vector_store

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> list[SearchResult]:
        """
        자연어 쿼리로 유사 논문 검색

        Returns:
            SearchResult 리스트 (score 내림차순)

        Raises:
            EmbeddingError: 쿼리 임베딩 실패
        """
        if not query.strip():
            return []
        if top_k < 1:
            raise ValueError(f"top_k must be >= 1, got {top_k}")

        vector = await self.embedding_client.embed(query)
        points = await self.vector_store.query(vector, limit=top_k)

        results = [_to_result(p) for p in points]
        results.sort(key=lambda r: r.score, reverse=True)

        logger.info(f"Search '{query[:50]}' returned {len(results)} results")
        return results

    async def fetch_by_id(self, paper_id: str) -> Optional[CandidateRecord]:
        """arXiv id(payload의 id)로 논문 1건 조회. 없으면 None"""
        point = await self.vector_store.find_by_paper_id(paper_id)
        if point is None:
            return None
        return CandidateRecord.from_dict(point.payload or {})

    async def sample(self, limit: int = 10) -> list[CandidateRecord]:
        """저장된 논문 limit개 조회"""
        points = await self.vector_store.scroll(limit=limit)
        return [CandidateRecord.from_dict(p.payload or {}) for p in points]

    def format_context(
        self,
        results: list[SearchResult],
        max_total_chars: int = 4000,
    ) -> str:
        """
        LLM 프롬프트용 컨텍스트 문자열 생성

        Args:
            results: search() 결과 목록
            max_total_chars: 전체 컨텍스트 최대 문자 수
        """
        if not results:
            return "관련 논문을 찾을 수 없습니다."

        parts: list[str] = []
        total_chars = 0

        for i, result in enumerate(results, 1):
            record = result.record
            authors = ", ".join(a.name for a in record.authors) or "unknown"
            header = (
                f"[{i}] {record.title or '제목 없음'} ({record.primary_category or '-'})\n"
                f"ID: {record.id}\n"
                f"Authors: {authors}\n"
                f"(유사도: {result.score:.2f})"
            )
            section = f"{header}\n\n{record.summary}"

            if total_chars + len(section) > max_total_chars:
                remaining = max_total_chars - total_chars - len(header) - 10
                if remaining > 100:
                    parts.append(f"{header}\n\n{record.summary[:remaining]}...")
                break

            parts.append(section)
            total_chars += len(section)

        return "\n\n---\n\n".join(parts)
