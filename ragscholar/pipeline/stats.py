"""Enrichment pipeline statistics model."""

import time
from dataclasses import dataclass, field


@dataclass
class PipelineStats:
    """파이프라인 통계 (모든 워커가 공유, 이벤트 루프 단일 스레드에서만 갱신)"""

    messages_consumed: int = 0
    messages_malformed: int = 0
    batches_stored: int = 0
    batches_empty: int = 0
    batches_failed: int = 0
    records_received: int = 0
    records_skipped: int = 0
    records_failed: int = 0
    points_stored: int = 0
    dimension_mismatches: int = 0
    embed_time_ms: float = 0.0
    store_time_ms: float = 0.0
    start_time: float = field(default_factory=time.time)

    @property
    def batches_processed(self) -> int:
        return self.batches_stored + self.batches_empty + self.batches_failed

    @property
    def elapsed_sec(self) -> float:
        return time.time() - self.start_time

    @property
    def records_per_second(self) -> float:
        return self.points_stored / self.elapsed_sec if self.elapsed_sec > 0 else 0.0

    def to_dict(self) -> dict:
        return {
            'messages_consumed': self.messages_consumed,
            'messages_malformed': self.messages_malformed,
            'batches_stored': self.batches_stored,
            'batches_empty': self.batches_empty,
            'batches_failed': self.batches_failed,
            'records_received': self.records_received,
            'records_skipped': self.records_skipped,
            'records_failed': self.records_failed,
            'points_stored': self.points_stored,
            'dimension_mismatches': self.dimension_mismatches,
            'avg_embed_ms': round(self.embed_time_ms / max(self.records_received, 1), 1),
            'avg_store_ms': round(self.store_time_ms / max(self.batches_stored, 1), 1),
            'records_per_second': round(self.records_per_second, 2),
        }

    def __str__(self) -> str:
        return (
            f"PipelineStats("
            f"messages={self.messages_consumed:,}, "
            f"malformed={self.messages_malformed:,}, "
            f"batches={self.batches_stored:,}/{self.batches_processed:,}, "
            f"points={self.points_stored:,}, "
            f"skipped={self.records_skipped:,}, "
            f"failed={self.records_failed:,}, "
            f"rps={self.records_per_second:.2f})"
        )
