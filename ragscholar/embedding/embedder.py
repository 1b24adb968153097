"""
Embedder - 텍스트 → 벡터 변환 모델 추상화
==========================================

지원 백엔드:
  gemini : Google Gemini Embedding API (기본값, GEMINI_API_KEY 필요)
  openai : OpenAI Embeddings API (OPENAI_API_KEY 필요)
  local  : sentence-transformers (오프라인 가능)

환경변수:
  EMBED_BACKEND      : "gemini" | "openai" | "local" (기본: gemini)
  EMBED_MODEL_NAME   : 모델명
                       gemini → "models/text-embedding-004" (768차원)
                       openai → "text-embedding-3-small" (dimensions=768 요청)
                       local  → "all-mpnet-base-v2" (768차원)
  EMBED_TIMEOUT      : 원격 호출 타임아웃 (초)

컬렉션 차원(768)과 맞는 모델을 기본값으로 사용합니다.
"""

import logging
from abc import ABC, abstractmethod
from typing import Optional

from ragscholar.common.config import EmbeddingConfig, get_config

logger = logging.getLogger(__name__)

DEFAULT_DIMENSION = 768


class BaseEmbedder(ABC):
    """임베딩 모델 추상 인터페이스 (동기 호출, executor에서 실행됨)"""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """
        단일 텍스트를 벡터로 변환

        Args:
            text: 임베딩할 텍스트 (비어 있지 않음)

        Returns:
            float 벡터, 길이 self.dimension
        """

    @property
    @abstractmethod
    def dimension(self) -> int:
        """임베딩 벡터 차원 수"""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """사용 중인 모델명"""


class GeminiEmbedder(BaseEmbedder):
    """Google Gemini Embedding API 기반 임베딩"""

    DEFAULT_MODEL = "models/text-embedding-004"

    KNOWN_DIMENSIONS = {
        "models/embedding-001": 768,
        "models/text-embedding-004": 768,
    }

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        request_timeout: float = 30.0,
    ):
        """
        Args:
            model_name: Gemini 임베딩 모델명
            api_key: API 키 (없으면 GEMINI_API_KEY 환경변수 사용)
            request_timeout: 요청 타임아웃 (초)
        """
        try:
            import google.generativeai as genai
        except ImportError:
            raise ImportError(
                "google-generativeai 패키지가 필요합니다.\n"
                "설치: pip install google-generativeai"
            )

        config = get_config().embedding
        self._model_name = model_name or config.model_name or self.DEFAULT_MODEL
        _api_key = api_key or config.gemini_api_key

        if not _api_key:
            raise ValueError(
                "GEMINI_API_KEY 환경변수 또는 api_key 파라미터가 필요합니다."
            )

        genai.configure(api_key=_api_key)
        self._genai = genai
        self._request_timeout = request_timeout
        self._dimension = self.KNOWN_DIMENSIONS.get(self._model_name, DEFAULT_DIMENSION)

        logger.info(
            f"GeminiEmbedder ready: "
            f"model={self._model_name}, dim={self._dimension}"
        )

    def embed(self, text: str) -> list[float]:
        result = self._genai.embed_content(
            model=self._model_name,
            content=text,
            task_type="retrieval_document",
            request_options={"timeout": self._request_timeout},
        )
        return list(result.get("embedding") or [])

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name


class OpenAIEmbedder(BaseEmbedder):
    """
    OpenAI Embeddings API (선택 설치: pip install ragscholar[openai])

    text-embedding-3-* 모델은 dimensions로 컬렉션 차원을 직접 요청합니다.
    """

    DEFAULT_MODEL = "text-embedding-3-small"

    def __init__(
        self,
        model_name: Optional[str] = None,
        api_key: Optional[str] = None,
        dimension: int = DEFAULT_DIMENSION,
        request_timeout: float = 30.0,
    ):
        try:
            from openai import OpenAI
        except ImportError:
            raise ImportError("OpenAI backend requires: pip install 'ragscholar[openai]'")

        config = get_config().embedding
        self._model_name = model_name or config.model_name or self.DEFAULT_MODEL
        key = api_key or config.openai_api_key
        if not key:
            raise ValueError("OPENAI_API_KEY is not set")

        self._client = OpenAI(api_key=key, timeout=request_timeout)
        self._dimension = dimension
        logger.info(f"OpenAIEmbedder ready: model={self._model_name}, dim={dimension}")

    def embed(self, text: str) -> list[float]:
        response = self._client.embeddings.create(
            model=self._model_name,
            input=text,
            dimensions=self._dimension,
            encoding_format="float",
        )
        return list(response.data[0].embedding) if response.data else []

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name


class SentenceTransformerEmbedder(BaseEmbedder):
    """로컬 모델 (선택 설치: pip install ragscholar[local]), 첫 실행 시 모델 다운로드"""

    DEFAULT_MODEL = "all-mpnet-base-v2"

    def __init__(self, model_name: Optional[str] = None, device: Optional[str] = None):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError:
            raise ImportError("local backend requires: pip install 'ragscholar[local]'")

        self._model_name = model_name or get_config().embedding.model_name or self.DEFAULT_MODEL
        self._model = SentenceTransformer(self._model_name, device=device)
        self._dimension = self._model.get_sentence_embedding_dimension() or DEFAULT_DIMENSION
        logger.info(f"SentenceTransformerEmbedder ready: model={self._model_name}, dim={self._dimension}")

    def embed(self, text: str) -> list[float]:
        # cosine 거리 컬렉션이므로 정규화 벡터 사용
        vector = self._model.encode(text, normalize_embeddings=True, show_progress_bar=False)
        return vector.tolist()

    @property
    def dimension(self) -> int:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model_name


def create_embedder(config: Optional[EmbeddingConfig] = None) -> BaseEmbedder:
    """
    EMBED_BACKEND 설정에 따라 적절한 Embedder 인스턴스 생성

    EMBED_BACKEND=gemini  → GeminiEmbedder (기본값)
    EMBED_BACKEND=openai  → OpenAIEmbedder
    EMBED_BACKEND=local   → SentenceTransformerEmbedder
    """
    config = config or get_config().embedding
    backend = config.backend

    if backend == "openai":
        logger.info("Creating OpenAI embedder")
        return OpenAIEmbedder(
            model_name=config.model_name,
            api_key=config.openai_api_key,
            request_timeout=config.request_timeout,
        )
    if backend == "local":
        logger.info("Creating local SentenceTransformer embedder")
        return SentenceTransformerEmbedder(model_name=config.model_name)

    if backend != "gemini":
        logger.warning(
            f"Unknown EMBED_BACKEND='{backend}', falling back to 'gemini'"
        )
    logger.info("Creating Gemini embedder")
    return GeminiEmbedder(
        model_name=config.model_name,
        api_key=config.gemini_api_key,
        request_timeout=config.request_timeout,
    )
