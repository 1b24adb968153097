"""
Storage Module - Qdrant 벡터 저장소
===================================

- qdrant_store.py : 컬렉션 프로비저닝, 배치 upsert, 조회
"""

from .qdrant_store import PaperVectorStore

__all__ = ["PaperVectorStore"]
