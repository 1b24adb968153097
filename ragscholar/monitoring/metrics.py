import logging
from typing import Optional

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, REGISTRY, start_http_server

logger = logging.getLogger(__name__)


class PipelineMetrics:
    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry
        self.server_started = False

        # 1. 큐 메시지 (status: accepted / malformed)
        self.messages_total = Counter(
            'ragscholar_messages_total',
            'Queue messages consumed by status',
            ['status'],
            registry=registry,
        )

        # 2. 레코드 처리 결과 (status: embedded / skipped / failed)
        self.records_total = Counter(
            'ragscholar_records_total',
            'Candidate records by enrichment outcome',
            ['status'],
            registry=registry,
        )

        # 3. 배치 upsert 결과 (status: stored / empty / failed)
        self.batches_total = Counter(
            'ragscholar_batches_total',
            'Batches by upsert outcome',
            ['status'],
            registry=registry,
        )

        # 4. 차원 불일치 경고
        self.dimension_mismatch_total = Counter(
            'ragscholar_dimension_mismatch_total',
            'Embeddings whose length differs from the collection dimension',
            registry=registry,
        )

        # 5. 지연 시간 분포
        self.embed_latency = Histogram(
            'ragscholar_embed_latency_seconds',
            'Time spent in a rate-limited embedding call',
            buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0],
            registry=registry,
        )
        self.upsert_latency = Histogram(
            'ragscholar_upsert_latency_seconds',
            'Time spent in a batch upsert',
            buckets=[0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
            registry=registry,
        )

        # 6. 내부 작업 버퍼 깊이
        self.buffer_depth = Gauge(
            'ragscholar_task_buffer_depth',
            'Batches waiting in the internal task buffer',
            registry=registry,
        )

    def start_server(self, port: int) -> None:
        if not self.server_started:
            start_http_server(port, registry=self.registry)
            self.server_started = True
            logger.info(f"Prometheus metrics server started on port {port}")


_metrics: Optional[PipelineMetrics] = None


def get_metrics() -> PipelineMetrics:
    """기본 REGISTRY에 등록된 메트릭 싱글톤"""
    global _metrics
    if _metrics is None:
        _metrics = PipelineMetrics()
    return _metrics
