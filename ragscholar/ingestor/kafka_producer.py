"""
Batch Publisher - 논문 배치를 Kafka로 발행
==========================================

ArxivFetcher가 수집한 레코드 1페이지를 JSON 배열 메시지 1개로
paper-fetcher 토픽에 전송합니다 (enrichment 파이프라인의 입력).
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError, KafkaConnectionError

from ragscholar.common.config import ProducerConfig, get_config
from ragscholar.common.models import CandidateRecord, serialize_batch

logger = logging.getLogger(__name__)


@dataclass
class PublisherStats:
    """발행 통계"""
    batches_sent: int = 0
    batches_failed: int = 0
    batches_skipped: int = 0
    records_sent: int = 0
    bytes_sent: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def success_rate(self) -> float:
        total = self.batches_sent + self.batches_failed
        return self.batches_sent / total if total > 0 else 0

    def __str__(self) -> str:
        return (
            f"PublisherStats(sent={self.batches_sent:,}, "
            f"failed={self.batches_failed:,}, "
            f"skipped={self.batches_skipped:,}, "
            f"records={self.records_sent:,}, "
            f"bytes={self.bytes_sent:,}, "
            f"success={self.success_rate:.1%})"
        )


def _acks(value: str):
    # aiokafka는 0 / 1 / "all"만 허용
    return int(value) if value.isdigit() else value


class BatchPublisher:
    """
    레코드 배치 → Kafka 메시지 1개

    빈 배치는 발행하지 않습니다.
    """

    def __init__(
        self,
        bootstrap_servers: Optional[str] = None,
        topic: Optional[str] = None,
        producer_config: Optional[ProducerConfig] = None,
        producer: Optional[AIOKafkaProducer] = None,
    ):
        """
        Args:
            bootstrap_servers: Kafka 브로커 주소
            topic: 배치 메시지 토픽
            producer_config: Producer 설정 (없으면 환경변수)
            producer: 주입할 producer (테스트용, start/stop은 그대로 호출됨)
        """
        config = get_config()

        self.bootstrap_servers = bootstrap_servers or config.kafka.bootstrap_servers
        self.topic = topic or config.topics.paper_batches
        self.producer_config = producer_config or config.producer
        self._kafka_config = config.kafka

        self._producer = producer
        self._started = False
        self.stats = PublisherStats()

    async def start(self) -> None:
        if self._started:
            logger.warning("Publisher already started")
            return

        if self._producer is None:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                linger_ms=self.producer_config.linger_ms,
                compression_type=self.producer_config.compression_type,
                acks=_acks(self.producer_config.acks),
                request_timeout_ms=self.producer_config.request_timeout_ms,
                security_protocol=self._kafka_config.security_protocol,
                sasl_mechanism=self._kafka_config.sasl_mechanism or "PLAIN",
                sasl_plain_username=self._kafka_config.sasl_username,
                sasl_plain_password=self._kafka_config.sasl_password,
            )

        try:
            await self._producer.start()
        except KafkaConnectionError as e:
            logger.error(f"Failed to connect to Kafka: {e}")
            raise

        self._started = True
        logger.info(f"Batch publisher started (topic={self.topic})")

    async def stop(self) -> None:
        if self._producer is None or not self._started:
            return

        await self._producer.stop()
        self._started = False
        logger.info(f"Batch publisher stopped. {self.stats}")

    async def __aenter__(self) -> "BatchPublisher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def publish(self, records: list[CandidateRecord]) -> bool:
        """
        배치 1개 발행 (브로커 ack까지 대기)

        Returns:
            발행했으면 True, 빈 배치이거나 전송 실패면 False
        """
        if not self._started:
            raise RuntimeError("Publisher not started. Call start() first.")

        if not records:
            logger.warning("No entries to publish, skipping")
            self.stats.batches_skipped += 1
            return False

        payload = serialize_batch(records)

        try:
            await self._producer.send_and_wait(self.topic, value=payload)
        except KafkaError as e:
            logger.error(f"Failed to publish batch of {len(records)} entries: {e}")
            self.stats.batches_failed += 1
            return False

        self.stats.batches_sent += 1
        self.stats.records_sent += len(records)
        self.stats.bytes_sent += len(payload)

        logger.info(f"Published batch of {len(records)} entries to '{self.topic}'")
        return True
