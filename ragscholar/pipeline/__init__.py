"""
Pipeline Module - 비동기 임베딩 파이프라인
==========================================

주요 컴포넌트:
  - record_queue.py : Kafka paper-fetcher 토픽 consumer (수동 커밋)
  - enrichment.py   : 배치 → 임베딩 → StoredPoint → Qdrant upsert
  - supervisor.py   : 작업 버퍼 + 워커 풀 + drain 종료 프로토콜
  - stats.py        : 파이프라인 통계
"""

from .enrichment import BatchEnricher, build_point
from .stats import PipelineStats
from .supervisor import PoolState, Supervisor

__all__ = [
    "BatchEnricher",
    "build_point",
    "PipelineStats",
    "PoolState",
    "Supervisor",
]
