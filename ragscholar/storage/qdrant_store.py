"""
Qdrant Vector Store - 논문 벡터 저장소
======================================

- 컬렉션 프로비저닝 (시작 시 1회, 멱등)
- 배치 단위 upsert (배치당 정확히 1회 호출, 재시도 없음)
- 검색용 조회 (vector query, payload id 필터, scroll)

AsyncQdrantClient 하나를 모든 워커가 공유합니다.
"""

import logging
from typing import Any, Optional

from qdrant_client import AsyncQdrantClient
from qdrant_client.models import (
    Distance,
    FieldCondition,
    Filter,
    MatchValue,
    PointStruct,
    VectorParams,
)

from ragscholar.common.config import QdrantConfig, get_config
from ragscholar.common.errors import ProvisioningError
from ragscholar.common.models import StoredPoint

logger = logging.getLogger(__name__)


class PaperVectorStore:
    """Qdrant 컬렉션 래퍼"""

    def __init__(
        self,
        config: Optional[QdrantConfig] = None,
        client: Optional[Any] = None,
    ):
        """
        Args:
            config: Qdrant 설정 (없으면 환경변수)
            client: 주입할 클라이언트 (테스트용, None이면 AsyncQdrantClient 생성)
        """
        self.config = config or get_config().qdrant
        self.collection_name = self.config.collection_name
        self.vector_size = self.config.vector_size

        self._client = client
        self._owns_client = client is None

        logger.info(
            f"PaperVectorStore initialized: "
            f"url={self.config.url}, collection={self.collection_name}, dim={self.vector_size}"
        )

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = AsyncQdrantClient(
                url=self.config.url,
                api_key=self.config.api_key,
                timeout=int(self.config.timeout),
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.close()
            self._client = None

    async def __aenter__(self) -> "PaperVectorStore":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def ensure_collection(self) -> bool:
        """
        컬렉션이 없으면 생성 (cosine, vector_size 차원)

        Returns:
            새로 생성했으면 True, 이미 있으면 False

        Raises:
            ProvisioningError: 존재 확인 또는 생성 실패
        """
        try:
            exists = await self.client.collection_exists(self.collection_name)
        except Exception as e:
            raise ProvisioningError(
                f"failed to check if collection '{self.collection_name}' exists: {e}"
            ) from e

        if exists:
            logger.info(f"Collection '{self.collection_name}' already exists")
            return False

        logger.info(
            f"Creating collection '{self.collection_name}' with vector size {self.vector_size}"
        )
        try:
            await self.client.create_collection(
                collection_name=self.collection_name,
                vectors_config=VectorParams(
                    size=self.vector_size,
                    distance=Distance.COSINE,
                ),
            )
        except Exception as e:
            raise ProvisioningError(
                f"failed to create collection '{self.collection_name}': {e}"
            ) from e

        logger.info(f"Collection '{self.collection_name}' created successfully")
        return True

    async def upsert(self, points: list[StoredPoint]) -> int:
        """
        포인트 배치를 한 번의 upsert로 저장

        실패 시 예외를 그대로 전파 (재시도는 호출자 책임 아님 - 업스트림 재발행)

        Returns:
            저장한 포인트 수
        """
        if not points:
            return 0

        await self.client.upsert(
            collection_name=self.collection_name,
            points=[
                PointStruct(id=p.id, vector=p.vector, payload=p.payload)
                for p in points
            ],
            wait=True,
        )
        return len(points)

    async def query(self, vector: list[float], limit: int) -> list[Any]:
        """벡터 유사도 검색 → ScoredPoint 목록 (score 내림차순)"""
        response = await self.client.query_points(
            collection_name=self.collection_name,
            query=vector,
            limit=limit,
            with_payload=True,
        )
        return list(response.points)

    async def find_by_paper_id(self, paper_id: str) -> Optional[Any]:
        """payload의 논문 id로 포인트 1건 조회"""
        points, _ = await self.client.scroll(
            collection_name=self.collection_name,
            scroll_filter=Filter(
                must=[
                    FieldCondition(
                        key="id",
                        match=MatchValue(value=paper_id),
                    )
                ]
            ),
            limit=1,
            with_payload=True,
            with_vectors=False,
        )
        return points[0] if points else None

    async def scroll(self, limit: int) -> list[Any]:
        """앞에서부터 limit개 포인트 조회"""
        points, _ = await self.client.scroll(
            collection_name=self.collection_name,
            limit=limit,
            with_payload=True,
            with_vectors=False,
        )
        return list(points)
