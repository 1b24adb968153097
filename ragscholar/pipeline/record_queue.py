"""
Record Queue - Kafka 기반 배치 메시지 채널
=========================================

프로듀서(ingestor)가 발행한 JSON 배치를 순서대로 전달합니다.

- enable_auto_commit=False: 메시지가 작업 버퍼에 들어간 뒤에만 ack()로 커밋
- 버퍼가 가득 차면 dispatch 루프가 멈추고 커밋도 멈춤 (backpressure)
- 커밋 전에 종료되면 재시작 후 다시 전달됨 (at-least-once)
"""

import logging
from typing import AsyncIterator, Optional

from aiokafka import AIOKafkaConsumer
from aiokafka.errors import KafkaError

from ragscholar.common.config import get_config

logger = logging.getLogger(__name__)


class KafkaRecordQueue:
    """paper-fetcher 토픽 consumer"""

    def __init__(
        self,
        bootstrap_servers: Optional[str] = None,
        topic: Optional[str] = None,
        group_id: Optional[str] = None,
    ):
        """
        Args:
            bootstrap_servers: Kafka 브로커 주소
            topic: 배치 메시지 토픽
            group_id: Consumer 그룹 ID
        """
        config = get_config()

        self.bootstrap_servers = bootstrap_servers or config.kafka.bootstrap_servers
        self.topic = topic or config.topics.paper_batches
        self.group_id = group_id or config.consumer.group_id
        self._consumer_config = config.consumer
        self._kafka_config = config.kafka

        self._consumer: Optional[AIOKafkaConsumer] = None
        self._uncommitted = 0

        logger.info(
            f"KafkaRecordQueue initialized: "
            f"topic={self.topic}, group={self.group_id}"
        )

    async def start(self) -> None:
        """Consumer 시작 (연결 실패는 그대로 전파 - 치명적)"""
        self._consumer = AIOKafkaConsumer(
            self.topic,
            bootstrap_servers=self.bootstrap_servers,
            group_id=self.group_id,
            auto_offset_reset=self._consumer_config.auto_offset_reset,
            enable_auto_commit=False,
            session_timeout_ms=self._consumer_config.session_timeout_ms,
            heartbeat_interval_ms=self._consumer_config.heartbeat_interval_ms,
            max_poll_interval_ms=self._consumer_config.max_poll_interval_ms,
            security_protocol=self._kafka_config.security_protocol,
            sasl_mechanism=self._kafka_config.sasl_mechanism or "PLAIN",
            sasl_plain_username=self._kafka_config.sasl_username,
            sasl_plain_password=self._kafka_config.sasl_password,
        )
        try:
            await self._consumer.start()
        except Exception:
            self._consumer = None
            raise

        logger.info(f"Connected to Kafka, waiting for messages on '{self.topic}'...")

    async def stop(self) -> None:
        """Consumer 중지 (ack 안 된 메시지는 커밋하지 않음)"""
        if self._consumer is None:
            return

        await self._consumer.stop()
        self._consumer = None
        logger.info("KafkaRecordQueue stopped")

    async def __aenter__(self) -> "KafkaRecordQueue":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    async def messages(self) -> AsyncIterator[bytes]:
        """메시지 본문(bytes)을 도착 순서대로 반환"""
        if self._consumer is None:
            raise RuntimeError("Queue not started. Call start() first.")

        async for message in self._consumer:
            self._uncommitted += 1
            yield message.value

    async def ack(self) -> None:
        """지금까지 받은 메시지까지 오프셋 커밋"""
        if self._consumer is None or not self._uncommitted:
            return

        try:
            await self._consumer.commit()
            self._uncommitted = 0
        except KafkaError as e:
            # 커밋 안 된 메시지는 재전달됨
            logger.warning(f"Offset commit failed: {e}")
