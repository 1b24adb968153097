"""
Rate Limiter - 임베딩 API 호출 속도 제한
========================================

모든 워커가 하나의 TokenBucketLimiter 인스턴스를 공유하여
워커 수와 무관하게 전체 호출 속도를 requests_per_minute 이하로 유지합니다.

- 버킷 용량 1 (burst 없음), 토큰 1개당 60 / requests_per_minute 초
- asyncio.Lock 대기열 순서대로 토큰 지급 (FIFO, 기아 없음)
- acquire() 대기 중 취소되면 CancelledError가 그대로 전파됨
"""

import asyncio
import logging
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


class TokenBucketLimiter:
    """
    공유 토큰 버킷

    clock / sleep은 테스트에서 가짜 시계로 교체할 수 있도록 주입 가능.
    """

    def __init__(
        self,
        requests_per_minute: float,
        capacity: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        """
        Args:
            requests_per_minute: 분당 최대 호출 수
            capacity: 버킷 최대 토큰 수 (burst)
            clock: 단조 증가 시계 (초)
            sleep: 비동기 sleep 함수
        """
        if requests_per_minute <= 0:
            raise ValueError(f"requests_per_minute must be positive, got {requests_per_minute}")
        if capacity < 1:
            raise ValueError(f"capacity must be >= 1, got {capacity}")

        self.interval = 60.0 / requests_per_minute
        self.capacity = capacity

        self._clock = clock
        self._sleep = sleep
        self._tokens = float(capacity)
        self._last = clock()
        self._lock = asyncio.Lock()

        logger.info(
            f"TokenBucketLimiter initialized: "
            f"rpm={requests_per_minute}, interval={self.interval:.3f}s, capacity={capacity}"
        )

    @property
    def tokens(self) -> float:
        """현재 토큰 수 (refill 반영)"""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self._last
        if elapsed > 0:
            self._tokens = min(self.capacity, self._tokens + elapsed / self.interval)
            self._last = now

    async def acquire(self) -> None:
        """토큰 1개를 얻을 때까지 대기"""
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                wait = (1.0 - self._tokens) * self.interval
                await self._sleep(max(wait, 0.001))
