#!/usr/bin/env python3
"""
Ingestor Runner - arXiv → Kafka paper-fetcher 실행기
====================================================

arXiv에서 무작위 주제/위치의 논문 페이지를 수집하여
페이지마다 JSON 배열 메시지 1개로 발행합니다.

Usage:
    # 무작위 주제 5페이지
    python runners/ingestor_runner.py --pages 5

    # 특정 질의
    python runners/ingestor_runner.py --topic-query "cat:cs.CL" --max-results 20

    # 발행 없이 수집 결과만 확인
    python runners/ingestor_runner.py --dry-run
"""

import asyncio
import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import Optional

import httpx
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from ragscholar.common.config import get_config
from ragscholar.ingestor import ArxivFetcher, BatchPublisher

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


class IngestorRunner:
    """ArxivFetcher + BatchPublisher 실행기"""

    def __init__(
        self,
        topic_query: Optional[str] = None,
        max_results: Optional[int] = None,
        dry_run: bool = False,
    ):
        self.config = get_config()
        self.topic_query = topic_query
        self.max_results = max_results or self.config.arxiv.max_results
        self.dry_run = dry_run
        self._running = False

    def _signal_handler(self):
        logger.info("Received shutdown signal, finishing current page...")
        self._running = False

    async def run(self, pages: int) -> int:
        """pages 페이지 수집/발행. 발행한 배치 수 반환"""
        self._running = True
        published = 0

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self._signal_handler)

        publisher = None if self.dry_run else BatchPublisher()

        try:
            async with ArxivFetcher(self.config.arxiv) as fetcher:
                if publisher:
                    await publisher.start()

                for page in range(1, pages + 1):
                    if not self._running:
                        break

                    try:
                        if self.topic_query:
                            start = (page - 1) * self.max_results
                            records = await fetcher.fetch(
                                self.topic_query, start=start, max_results=self.max_results
                            )
                        else:
                            records = await fetcher.fetch_random(max_results=self.max_results)
                    except httpx.HTTPError:
                        # fetch()에서 이미 로깅됨
                        continue

                    if self.dry_run:
                        for r in records:
                            logger.info(f"  {r.id} | {r.title[:80]}")
                        continue

                    if await publisher.publish(records):
                        published += 1

                logger.info(f"Fetcher: {fetcher.stats}")
        finally:
            if publisher:
                await publisher.stop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

        logger.info(f"Published {published} batches")
        return published


def parse_args():
    parser = argparse.ArgumentParser(
        description='Ingestor Runner: arXiv → paper-fetcher',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument('--pages', type=int, default=1,
                        help='수집할 페이지 수')
    parser.add_argument('--topic-query', type=str, default=None,
                        help='arXiv search_query (없으면 무작위 주제)')
    parser.add_argument('--max-results', type=int, default=None,
                        help='페이지당 논문 수 (기본: ARXIV_MAX_RESULTS)')
    parser.add_argument('--dry-run', action='store_true',
                        help='발행하지 않고 수집 결과만 출력')
    parser.add_argument('--debug', action='store_true')
    return parser.parse_args()


async def main() -> int:
    args = parse_args()

    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)

    runner = IngestorRunner(
        topic_query=args.topic_query,
        max_results=args.max_results,
        dry_run=args.dry_run,
    )
    await runner.run(pages=args.pages)
    return 0


if __name__ == "__main__":
    load_dotenv()
    sys.exit(asyncio.run(main()))
