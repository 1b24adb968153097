"""
Supervisor - 임베딩 워커 풀 생명주기 관리
=========================================

상태: STOPPED → RUNNING → DRAINING → STOPPED

- start()    : 작업 버퍼(asyncio.Queue, maxsize=buffer_size)와 워커 W개 생성
- dispatch() : 큐 메시지 → 배치 파싱 → 작업 버퍼 put (가득 차면 대기 = backpressure)
               put이 끝난 메시지만 ack
- drain()    : 새 배치 수락 중단, 워커 수만큼 종료 마커를 버퍼 뒤에 넣고
               모든 워커가 끝날 때까지 대기 (이미 받은 배치는 끝까지 처리)
- request_stop(): 종료 시그널 (SIGINT/SIGTERM) 처리용. start() 전에 호출되면
                 run()은 메시지를 받지 않고 바로 drain

워커는 배치 하나의 실패(임베딩/upsert)로 죽지 않습니다.
"""

import asyncio
import logging
from enum import Enum
from typing import Any, Awaitable, Optional

from ragscholar.common.errors import MalformedBatchError
from ragscholar.common.models import CandidateRecord, parse_batch
from ragscholar.monitoring.metrics import PipelineMetrics
from .enrichment import BatchEnricher
from .stats import PipelineStats

logger = logging.getLogger(__name__)

# 작업 버퍼 종료 마커
_CLOSED = object()


class PoolState(Enum):
    """워커 풀 상태"""
    STOPPED = "stopped"
    RUNNING = "running"
    DRAINING = "draining"


class Supervisor:
    """
    워커 풀 + dispatch 루프

    worker_count / buffer_size / drain_timeout은 모두 생성자 인자로 받음.
    """

    def __init__(
        self,
        enricher: BatchEnricher,
        worker_count: int = 10,
        buffer_size: int = 10,
        drain_timeout: Optional[float] = None,
        metrics: Optional[PipelineMetrics] = None,
    ):
        """
        Args:
            enricher: 배치 처리기 (모든 워커가 공유)
            worker_count: 워커 수
            buffer_size: 내부 작업 버퍼 용량
            drain_timeout: drain 최대 대기 시간 (None이면 무기한)
            metrics: Prometheus 메트릭
        """
        if worker_count < 1:
            raise ValueError(f"worker_count must be >= 1, got {worker_count}")
        if buffer_size < 1:
            raise ValueError(f"buffer_size must be >= 1, got {buffer_size}")

        self.enricher = enricher
        self.worker_count = worker_count
        self.buffer_size = buffer_size
        self.drain_timeout = drain_timeout
        self.metrics = metrics

        self._state = PoolState.STOPPED
        self._tasks: Optional[asyncio.Queue] = None
        self._workers: list[asyncio.Task] = []
        # start() 이전에 들어온 종료 요청도 유지
        self._stop_event = asyncio.Event()

        logger.info(
            f"Supervisor initialized: "
            f"workers={worker_count}, buffer_size={buffer_size}, "
            f"drain_timeout={drain_timeout}"
        )

    @property
    def state(self) -> PoolState:
        return self._state

    @property
    def stats(self) -> PipelineStats:
        return self.enricher.stats

    @property
    def pending(self) -> int:
        """작업 버퍼에 대기 중인 배치 수"""
        return self._tasks.qsize() if self._tasks is not None else 0

    async def start(self) -> None:
        """워커 W개 시작"""
        if self._state is not PoolState.STOPPED:
            logger.warning(f"Supervisor already {self._state.value}")
            return

        self._tasks = asyncio.Queue(maxsize=self.buffer_size)
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"enrichment-worker-{i}")
            for i in range(self.worker_count)
        ]
        self._state = PoolState.RUNNING

        logger.info(f"Started {self.worker_count} enrichment workers")

    def request_stop(self) -> None:
        """dispatch 루프 종료 요청 (시그널 핸들러에서 호출)"""
        if not self._stop_event.is_set():
            logger.info("Stop requested, no longer accepting new batches")
            self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()

    async def submit(self, batch: list[CandidateRecord]) -> bool:
        """
        배치를 작업 버퍼에 넣음 (가득 차면 자리가 날 때까지 대기)

        Returns:
            버퍼에 들어갔으면 True, 대기 중 종료 요청이 오면 False
        """
        if self._state is not PoolState.RUNNING:
            raise RuntimeError(f"Cannot submit while {self._state.value}")
        if self.stop_requested:
            return False

        if not self._tasks.full():
            self._tasks.put_nowait(batch)
        else:
            completed, _ = await self._until_stopped(self._tasks.put(batch))
            if not completed:
                return False

        if self.metrics:
            self.metrics.buffer_depth.set(self._tasks.qsize())
        return True

    async def dispatch(self, queue: Any, max_messages: Optional[int] = None) -> None:
        """
        큐 메시지를 작업 버퍼로 전달하는 루프

        큐가 닫히거나(반복 종료) 종료 요청이 오거나 max_messages에 도달하면 반환.

        Args:
            queue: messages() 비동기 이터레이터와 ack() 코루틴을 가진 큐
            max_messages: 처리할 최대 메시지 수 (None이면 무제한)
        """
        if self._state is not PoolState.RUNNING:
            raise RuntimeError("Supervisor not started. Call start() first.")

        logger.info(
            f"Dispatch loop started "
            f"(max_messages={max_messages or 'unlimited'})"
        )

        messages = queue.messages().__aiter__()
        consumed = 0

        try:
            while not self.stop_requested:
                try:
                    completed, payload = await self._until_stopped(messages.__anext__())
                except StopAsyncIteration:
                    logger.info("Message channel closed")
                    break
                if not completed:
                    break

                consumed += 1
                self.stats.messages_consumed += 1

                try:
                    batch = parse_batch(payload)
                except MalformedBatchError as e:
                    logger.error(f"Failed to parse message: {e}")
                    self.stats.messages_malformed += 1
                    self._count_message('malformed')
                    await queue.ack()
                else:
                    if not batch:
                        logger.warning("Received message with 0 entries, discarding")
                        self.stats.messages_malformed += 1
                        self._count_message('malformed')
                        await queue.ack()
                    else:
                        logger.info(f"Received message with {len(batch)} entries")
                        if not await self.submit(batch):
                            # 버퍼에 못 들어간 배치는 ack하지 않음 → 재전달
                            break
                        self._count_message('accepted')
                        await queue.ack()

                if max_messages and consumed >= max_messages:
                    logger.info(f"Reached max_messages={max_messages}")
                    break
        finally:
            aclose = getattr(messages, "aclose", None)
            if aclose is not None:
                await aclose()

        if self.stop_requested:
            logger.info("Dispatch loop stopped by stop request")

    async def drain(self) -> None:
        """
        RUNNING → DRAINING → STOPPED

        버퍼를 닫고 이미 들어간 배치가 모두 처리될 때까지 대기.
        drain_timeout을 넘기면 남은 워커를 취소.
        """
        if self._state is not PoolState.RUNNING:
            return

        self._state = PoolState.DRAINING
        logger.info(f"Waiting for in-flight tasks to complete... (pending={self.pending})")

        async def close_and_join() -> None:
            for _ in self._workers:
                await self._tasks.put(_CLOSED)
            await asyncio.gather(*self._workers, return_exceptions=True)

        try:
            if self.drain_timeout is None:
                await close_and_join()
            else:
                await asyncio.wait_for(close_and_join(), timeout=self.drain_timeout)
        except asyncio.TimeoutError:
            remaining = [w for w in self._workers if not w.done()]
            logger.error(
                f"Drain timed out after {self.drain_timeout}s, "
                f"cancelling {len(remaining)} workers (pending={self.pending})"
            )
            for worker in remaining:
                worker.cancel()
            await asyncio.gather(*remaining, return_exceptions=True)

        self._workers = []
        self._state = PoolState.STOPPED
        logger.info(f"Shutdown complete. {self.stats}")

    async def run(self, queue: Any, max_messages: Optional[int] = None) -> PipelineStats:
        """start → dispatch → drain. 모든 워커가 끝난 뒤 반환"""
        await self.start()
        try:
            await self.dispatch(queue, max_messages=max_messages)
        finally:
            await self.drain()
        return self.stats

    async def _worker(self, worker_id: int) -> None:
        """버퍼에서 배치를 꺼내 처리. 종료 마커를 받으면 종료"""
        logger.info(f"Worker {worker_id} started")

        while True:
            batch = await self._tasks.get()
            try:
                if batch is _CLOSED:
                    break

                if self.metrics:
                    self.metrics.buffer_depth.set(self._tasks.qsize())

                try:
                    stored = await self.enricher.process(batch)
                except Exception as e:
                    logger.error(
                        f"Worker {worker_id}: Failed to store entries in Qdrant: {e}",
                        exc_info=True,
                    )
                else:
                    logger.info(
                        f"Worker {worker_id}: Stored {stored} of {len(batch)} entries in Qdrant"
                    )
            finally:
                self._tasks.task_done()

        logger.info(f"Worker {worker_id} stopped")

    async def _until_stopped(self, awaitable: Awaitable) -> tuple[bool, Any]:
        """
        awaitable 완료와 종료 요청 중 먼저 일어난 쪽을 반환

        Returns:
            (True, 결과) 또는 종료 요청 시 (False, None) - awaitable은 취소됨
        """
        task = asyncio.ensure_future(awaitable)
        stop_wait = asyncio.ensure_future(self._stop_event.wait())

        try:
            done, _ = await asyncio.wait(
                {task, stop_wait},
                return_when=asyncio.FIRST_COMPLETED,
            )
        except asyncio.CancelledError:
            task.cancel()
            try:
                await task
            except (asyncio.CancelledError, StopAsyncIteration):
                pass
            raise
        finally:
            stop_wait.cancel()

        if task in done:
            return True, task.result()

        task.cancel()
        try:
            await task
        except (asyncio.CancelledError, StopAsyncIteration):
            pass
        return False, None

    def _count_message(self, status: str) -> None:
        if self.metrics:
            self.metrics.messages_total.labels(status=status).inc()
