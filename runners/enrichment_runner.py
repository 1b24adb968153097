#!/usr/bin/env python3
"""
Enrichment Runner - paper-fetcher → 임베딩 → Qdrant 실행기
==========================================================

Supervisor(워커 풀)를 실행하여 Kafka paper-fetcher 토픽의 논문 배치를
임베딩하고 Qdrant papers 컬렉션에 저장합니다.

Usage:
    # 기본 실행 (Gemini text-embedding-004, 워커 10개)
    GEMINI_API_KEY=... python runners/enrichment_runner.py

    # 워커/버퍼/레이트 조정
    python runners/enrichment_runner.py --workers 4 --buffer-size 20 --rpm 120

    # 일정 수만 처리 (테스트)
    python runners/enrichment_runner.py --max-messages 5

    # 연결 테스트
    python runners/enrichment_runner.py --test-connection

    # 검색 데모
    python runners/enrichment_runner.py --search "diffusion models for audio"

    # 검색 결과 기반 답변 / 텍스트 설명 (Gemini)
    python runners/enrichment_runner.py --ask "how are diffusion models used for audio?"
    python runners/enrichment_runner.py --explain "We propose ..." --title "Paper title"

환경변수:
    EMBED_BACKEND             : "gemini" | "openai" | "local" (기본: gemini)
    GEMINI_API_KEY            : Gemini API 키
    KAFKA_BOOTSTRAP_SERVERS   : Kafka 브로커
    KAFKA_PAPER_TOPIC         : 배치 토픽 (기본: paper-fetcher)
    QDRANT_URL                : Qdrant 주소 (기본: http://localhost:6333)
    QDRANT_COLLECTION         : 컬렉션 (기본: papers)
    PIPELINE_WORKERS          : 워커 수 (기본: 10)
    PIPELINE_BUFFER_SIZE      : 작업 버퍼 크기 (기본: 10)
    EMBED_REQUESTS_PER_MINUTE : 임베딩 요청 한도 (기본: 60)
    METRICS_PORT              : Prometheus 포트 (없으면 미노출)
    EXPLAIN_MODEL             : 설명/답변 모델 (기본: gemini-2.5-flash)
"""

import asyncio
import argparse
import logging
import signal
import sys
import time
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ragscholar.common.config import get_config
from ragscholar.common.errors import ProvisioningError
from ragscholar.embedding import EmbeddingClient, TokenBucketLimiter, create_embedder
from ragscholar.monitoring import get_metrics
from ragscholar.pipeline import BatchEnricher, Supervisor
from ragscholar.pipeline.record_queue import KafkaRecordQueue
from ragscholar.search import PaperExplainer, PaperSearcher
from ragscholar.storage import PaperVectorStore

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


class EnrichmentRunner:
    """Supervisor 실행기"""

    def __init__(
        self,
        workers: Optional[int] = None,
        buffer_size: Optional[int] = None,
        rpm: Optional[float] = None,
    ):
        self.config = get_config()
        pipeline = self.config.pipeline

        self.workers = workers or pipeline.worker_count
        self.buffer_size = buffer_size or pipeline.buffer_size
        self.rpm = rpm or pipeline.requests_per_minute

    def _build_client(self) -> EmbeddingClient:
        return EmbeddingClient(
            embedder=create_embedder(self.config.embedding),
            limiter=TokenBucketLimiter(self.rpm),
            timeout=self.config.embedding.request_timeout,
            max_workers=self.workers,
        )

    async def run(self, max_messages: Optional[int] = None) -> int:
        """파이프라인 실행. 종료 코드 반환"""
        start_time = time.time()

        logger.info("=" * 60)
        logger.info("Enrichment Runner starting")
        logger.info(f"  Kafka: {self.config.kafka.bootstrap_servers}")
        logger.info(f"  Topic: {self.config.topics.paper_batches}")
        logger.info(f"  Qdrant: {self.config.qdrant.url} ({self.config.qdrant.collection_name})")
        logger.info(f"  Backend: {self.config.embedding.backend}")
        logger.info(f"  Workers: {self.workers}, buffer: {self.buffer_size}, rpm: {self.rpm}")
        logger.info("=" * 60)

        metrics = None
        if self.config.metrics.port:
            metrics = get_metrics()
            metrics.start_server(self.config.metrics.port)

        async with PaperVectorStore(self.config.qdrant) as store:
            try:
                await store.ensure_collection()
            except ProvisioningError as e:
                logger.error(f"Failed to provision collection: {e}")
                return 1

            embedding_client = self._build_client()
            enricher = BatchEnricher(
                embedding_client=embedding_client,
                vector_store=store,
                expected_dimension=self.config.qdrant.vector_size,
                metrics=metrics,
            )
            supervisor = Supervisor(
                enricher,
                worker_count=self.workers,
                buffer_size=self.buffer_size,
                drain_timeout=self.config.pipeline.drain_timeout,
                metrics=metrics,
            )

            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.add_signal_handler(sig, supervisor.request_stop)

            try:
                async with KafkaRecordQueue() as queue:
                    stats = await supervisor.run(queue, max_messages=max_messages)
            finally:
                for sig in (signal.SIGINT, signal.SIGTERM):
                    loop.remove_signal_handler(sig)
                embedding_client.close()

        elapsed = time.time() - start_time
        logger.info("=" * 60)
        logger.info("Enrichment Runner stopped")
        logger.info(f"  Runtime: {elapsed:.1f}s")
        logger.info(f"  Messages consumed: {stats.messages_consumed:,}")
        logger.info(f"  Batches stored: {stats.batches_stored:,} (failed: {stats.batches_failed:,})")
        logger.info(f"  Points stored: {stats.points_stored:,}")
        logger.info(f"  Records skipped/failed: {stats.records_skipped:,}/{stats.records_failed:,}")
        logger.info(f"  Throughput: {stats.records_per_second:.2f} records/s")
        logger.info("=" * 60)
        return 0

    async def test_connection(self) -> bool:
        """Kafka, Qdrant, 임베딩 백엔드 연결 테스트"""
        all_ok = True

        try:
            queue = KafkaRecordQueue()
            await queue.start()
            await queue.stop()
            logger.info(f"Kafka: OK ({self.config.kafka.bootstrap_servers})")
        except Exception as e:
            logger.error(f"Kafka: FAILED - {e}")
            all_ok = False

        try:
            async with PaperVectorStore(self.config.qdrant) as store:
                exists = await store.client.collection_exists(store.collection_name)
            logger.info(f"Qdrant: OK ({self.config.qdrant.url}, collection exists={exists})")
        except Exception as e:
            logger.error(f"Qdrant: FAILED - {e}")
            all_ok = False

        try:
            client = self._build_client()
            try:
                vector = await client.embed("test")
            finally:
                client.close()
            logger.info(f"Embedder: OK (model={client.model_name}, dim={len(vector)})")
        except Exception as e:
            logger.error(f"Embedder: FAILED - {e}")
            all_ok = False

        return all_ok

    async def demo_search(self, query: str) -> None:
        """검색 데모"""
        logger.info(f"Searching: '{query}'")
        async with PaperVectorStore(self.config.qdrant) as store:
            client = self._build_client()
            try:
                results = await PaperSearcher(client, store).search(query, top_k=3)
            finally:
                client.close()

        if not results:
            logger.info("No results found")
            return

        logger.info(f"Found {len(results)} results:")
        for i, r in enumerate(results, 1):
            logger.info(f"  [{i}] {r.record.title or 'No title'} ({r.record.id}) score={r.score:.3f}")
            logger.info(f"      {r.record.summary[:100]}...")

    async def demo_answer(self, question: str) -> None:
        """검색 결과 기반 Gemini 답변 데모"""
        logger.info(f"Asking: '{question}'")
        async with PaperVectorStore(self.config.qdrant) as store:
            client = self._build_client()
            try:
                explainer = PaperExplainer(searcher=PaperSearcher(client, store))
                reply = await explainer.answer(question, top_k=3)
            finally:
                client.close()

        logger.info(f"Answer:\n{reply}")

    async def demo_explain(self, text: str, title: str = "") -> None:
        """논문 텍스트 설명 데모"""
        explanation = await PaperExplainer().explain(text, paper_title=title)
        logger.info(f"Explanation:\n{explanation}")


def parse_args():
    parser = argparse.ArgumentParser(
        description='Enrichment Runner: paper-fetcher → Qdrant',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('--workers', type=int, default=None,
                        help='워커 수 (기본: PIPELINE_WORKERS)')
    parser.add_argument('--buffer-size', type=int, default=None,
                        help='작업 버퍼 크기 (기본: PIPELINE_BUFFER_SIZE)')
    parser.add_argument('--rpm', type=float, default=None,
                        help='분당 임베딩 요청 수 (기본: EMBED_REQUESTS_PER_MINUTE)')
    parser.add_argument('--max-messages', type=int, default=None,
                        help='처리할 최대 메시지 수')
    parser.add_argument('--test-connection', action='store_true',
                        help='연결 테스트 후 종료')
    parser.add_argument('--search', type=str, default=None,
                        help='검색 쿼리 데모')
    parser.add_argument('--ask', type=str, default=None,
                        help='검색 결과 기반 Gemini 답변 데모')
    parser.add_argument('--explain', type=str, default=None,
                        help='논문 텍스트 설명 데모')
    parser.add_argument('--title', type=str, default='',
                        help='--explain 텍스트의 논문 제목')
    parser.add_argument('--debug', action='store_true')
    return parser.parse_args()


async def main() -> int:
    args = parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    runner = EnrichmentRunner(
        workers=args.workers,
        buffer_size=args.buffer_size,
        rpm=args.rpm,
    )

    if args.test_connection:
        ok = await runner.test_connection()
        return 0 if ok else 1

    if args.search:
        await runner.demo_search(args.search)
        return 0

    if args.ask:
        await runner.demo_answer(args.ask)
        return 0

    if args.explain:
        await runner.demo_explain(args.explain, title=args.title)
        return 0

    return await runner.run(max_messages=args.max_messages)


if __name__ == "__main__":
    load_dotenv()
    sys.exit(asyncio.run(main()))
