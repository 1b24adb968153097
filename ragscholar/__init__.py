"""
RAGScholar - arXiv 논문 임베딩 파이프라인
==========================================

arXiv → Kafka → 임베딩 워커 풀 → Qdrant
"""

__version__ = "0.1.0"
