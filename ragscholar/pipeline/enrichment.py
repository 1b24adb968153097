"""
Batch Enricher - 레코드 배치 → 임베딩 → Qdrant upsert
=====================================================

배치 1개 처리 순서:
1. 레코드를 받은 순서대로 처리
   - 초록이 비어 있으면 건너뜀 (임베딩 호출 없음)
   - 레이트 리미터 통과 후 임베딩 호출, 실패하면 해당 레코드만 버림
   - 차원 불일치는 경고만 남기고 저장
2. 레코드마다 새 uuid4를 surrogate id로 발급해 StoredPoint 조립
3. 포인트가 0개면 저장소를 호출하지 않고 성공 처리
4. 아니면 정확히 한 번 upsert (실패는 호출자에게 그대로 전파)
"""

import logging
import time
import uuid
from typing import Any, Callable, Optional

from ragscholar.common.errors import EmbeddingError
from ragscholar.common.models import CandidateRecord, StoredPoint
from ragscholar.embedding.client import EmbeddingClient
from ragscholar.embedding.embedder import DEFAULT_DIMENSION
from ragscholar.monitoring.metrics import PipelineMetrics
from .stats import PipelineStats

logger = logging.getLogger(__name__)


def build_point(
    record: CandidateRecord,
    vector: list[float],
    point_id: Optional[str] = None,
) -> StoredPoint:
    """레코드 + 벡터 → StoredPoint (payload는 와이어 필드명 그대로)"""
    return StoredPoint(
        id=point_id or str(uuid.uuid4()),
        vector=vector,
        payload=record.to_dict(),
    )


class BatchEnricher:
    """
    배치 단위 임베딩 + upsert

    embedding_client / vector_store는 모든 워커가 공유하는 읽기 전용 참조.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: Any,
        expected_dimension: int = DEFAULT_DIMENSION,
        stats: Optional[PipelineStats] = None,
        metrics: Optional[PipelineMetrics] = None,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        """
        Args:
            embedding_client: 레이트 리미터가 적용된 임베딩 클라이언트
            vector_store: upsert(points) 코루틴을 가진 저장소 (PaperVectorStore)
            expected_dimension: 컬렉션 벡터 차원
            stats: 공유 통계 (없으면 새로 생성)
            metrics: Prometheus 메트릭 (없으면 기록 안 함)
            id_factory: surrogate id 생성 함수
        """
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.expected_dimension = expected_dimension
        self.stats = stats if stats is not None else PipelineStats()
        self.metrics = metrics
        self._id_factory = id_factory

    async def enrich(self, batch: list[CandidateRecord]) -> list[StoredPoint]:
        """
        배치의 각 레코드를 임베딩하여 포인트 목록 생성

        Returns:
            입력 순서를 유지한 StoredPoint 목록 (길이 <= len(batch))
        """
        points: list[StoredPoint] = []

        for record in batch:
            self.stats.records_received += 1

            if not record.has_abstract:
                logger.info(f"Entry {record.id} has empty summary, skipping")
                self.stats.records_skipped += 1
                self._count_record('skipped')
                continue

            embed_start = time.time()
            try:
                vector = await self.embedding_client.embed(record.summary)
            except EmbeddingError as e:
                logger.warning(f"Failed to generate embedding for entry {record.id}: {e}")
                self.stats.records_failed += 1
                self._count_record('failed')
                continue
            finally:
                elapsed = time.time() - embed_start
                self.stats.embed_time_ms += elapsed * 1000
                if self.metrics:
                    self.metrics.embed_latency.observe(elapsed)

            if len(vector) != self.expected_dimension:
                logger.warning(
                    f"Generated vector size ({len(vector)}) doesn't match "
                    f"expected size ({self.expected_dimension}) for entry {record.id}"
                )
                self.stats.dimension_mismatches += 1
                if self.metrics:
                    self.metrics.dimension_mismatch_total.inc()

            points.append(build_point(record, vector, point_id=self._id_factory()))
            self._count_record('embedded')

        return points

    async def process(self, batch: list[CandidateRecord]) -> int:
        """
        배치 1개 enrich + upsert

        Returns:
            저장한 포인트 수 (0이면 저장소 미호출)

        Raises:
            upsert 중 발생한 예외 (재시도 없음)
        """
        if not batch:
            logger.warning("Received empty batch of entries to store")

        points = await self.enrich(batch)

        if not points:
            logger.warning("No valid points to store after processing")
            self.stats.batches_empty += 1
            self._count_batch('empty')
            return 0

        logger.debug(f"Sending upsert request with {len(points)} points")
        store_start = time.time()
        try:
            await self.vector_store.upsert(points)
        except Exception:
            self.stats.batches_failed += 1
            self._count_batch('failed')
            raise
        finally:
            elapsed = time.time() - store_start
            self.stats.store_time_ms += elapsed * 1000
            if self.metrics:
                self.metrics.upsert_latency.observe(elapsed)

        self.stats.batches_stored += 1
        self.stats.points_stored += len(points)
        self._count_batch('stored')
        return len(points)

    def _count_record(self, status: str) -> None:
        if self.metrics:
            self.metrics.records_total.labels(status=status).inc()

    def _count_batch(self, status: str) -> None:
        if self.metrics:
            self.metrics.batches_total.labels(status=status).inc()
