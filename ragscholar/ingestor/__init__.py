"""
Ingestor Module - arXiv 수집 → Kafka 발행
=========================================

  - arxiv_fetcher.py  : arXiv query API(Atom) 수집 + 파싱
  - kafka_producer.py : 레코드 배치를 JSON 배열 메시지로 발행
"""

from .arxiv_fetcher import DEFAULT_TOPICS, ArxivFetcher, parse_feed
from .kafka_producer import BatchPublisher

__all__ = [
    "DEFAULT_TOPICS",
    "ArxivFetcher",
    "parse_feed",
    "BatchPublisher",
]
