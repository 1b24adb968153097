"""
Embedding Module - 논문 초록 임베딩
====================================

주요 컴포넌트:
  - embedder.py     : 텍스트 → 벡터 변환 (Gemini / OpenAI / Local)
  - rate_limiter.py : 워커 간 공유 토큰 버킷
  - client.py       : 레이트 리미터 + 타임아웃이 적용된 비동기 임베딩 호출
"""

from .embedder import BaseEmbedder, create_embedder
from .rate_limiter import TokenBucketLimiter
from .client import EmbeddingClient

__all__ = [
    "BaseEmbedder",
    "create_embedder",
    "TokenBucketLimiter",
    "EmbeddingClient",
]
