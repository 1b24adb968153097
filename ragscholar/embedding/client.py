"""
Embedding Client - 레이트 리미터로 보호되는 비동기 임베딩 호출
==============================================================

워커는 BaseEmbedder를 직접 부르지 않고 EmbeddingClient.embed()를 사용합니다.

1. limiter.acquire() (취소되면 임베딩 호출 없이 CancelledError 전파)
2. 동기 SDK 호출을 클라이언트 전용 스레드 풀에서 실행, timeout으로 상한
   (타임아웃 후에도 SDK 호출은 스레드에서 끝날 때까지 실행되므로
    동시에 붙잡히는 스레드 수는 max_workers로 제한)
3. 실패/타임아웃/빈 결과 → EmbeddingError
"""

import asyncio
import concurrent.futures
import logging
from typing import Optional

from ragscholar.common.errors import EmbeddingError
from .embedder import BaseEmbedder
from .rate_limiter import TokenBucketLimiter

logger = logging.getLogger(__name__)


class EmbeddingClient:
    """여러 워커가 공유하는 임베딩 클라이언트"""

    def __init__(
        self,
        embedder: BaseEmbedder,
        limiter: TokenBucketLimiter,
        timeout: Optional[float] = 30.0,
        max_workers: Optional[int] = None,
    ):
        """
        Args:
            embedder: 실제 임베딩 백엔드
            limiter: 모든 워커가 공유하는 토큰 버킷
            timeout: 호출 1건당 최대 대기 시간 (초)
            max_workers: 임베딩 스레드 수 (보통 워커 수와 동일, None이면 기본값)
        """
        self.embedder = embedder
        self.limiter = limiter
        self.timeout = timeout
        self.max_workers = max_workers
        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix="EmbeddingWorker",
        )

    @property
    def model_name(self) -> str:
        return self.embedder.model_name

    async def embed(self, text: str) -> list[float]:
        """
        텍스트 임베딩

        Raises:
            EmbeddingError: 빈 입력, 원격 호출 실패, 타임아웃, 빈 임베딩
            asyncio.CancelledError: 토큰 대기 또는 호출 중 취소
        """
        if not text or not text.strip():
            raise EmbeddingError("cannot generate embedding for empty text")

        await self.limiter.acquire()

        loop = asyncio.get_running_loop()
        try:
            vector = await asyncio.wait_for(
                loop.run_in_executor(self._executor, self.embedder.embed, text),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingError(f"embedding request timed out after {self.timeout}s") from e
        except EmbeddingError:
            raise
        except Exception as e:
            raise EmbeddingError(f"{type(e).__name__}: {e}") from e

        if not vector:
            raise EmbeddingError(f"received empty embedding from {self.embedder.model_name}")

        logger.debug(f"Generated embedding with size: {len(vector)}")
        return [float(v) for v in vector]

    def close(self) -> None:
        """스레드 풀 종료 (실행 중인 SDK 호출은 기다리지 않음)"""
        self._executor.shutdown(wait=False, cancel_futures=True)
        logger.info("Embedding client closed")
