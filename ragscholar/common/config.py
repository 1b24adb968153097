"""
RAGScholar Pipeline Configuration
=================================

환경변수로 설정 가능한 Kafka / Qdrant / 임베딩 / 파이프라인 설정들
"""

import os
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class KafkaConfig:
    """Kafka 연결 설정"""

    # Connection
    bootstrap_servers: str = field(
        default_factory=lambda: os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    )

    # Security (optional)
    security_protocol: str = field(
        default_factory=lambda: os.getenv("KAFKA_SECURITY_PROTOCOL", "PLAINTEXT")
    )
    sasl_mechanism: Optional[str] = field(
        default_factory=lambda: os.getenv("KAFKA_SASL_MECHANISM")
    )
    sasl_username: Optional[str] = field(
        default_factory=lambda: os.getenv("KAFKA_SASL_USERNAME")
    )
    sasl_password: Optional[str] = field(
        default_factory=lambda: os.getenv("KAFKA_SASL_PASSWORD")
    )


@dataclass
class TopicConfig:
    """Kafka 토픽 이름 설정"""

    paper_batches: str = field(
        default_factory=lambda: os.getenv("KAFKA_PAPER_TOPIC", "paper-fetcher")
    )


@dataclass
class ProducerConfig:
    """Kafka Producer 설정 (ingestor)"""

    linger_ms: int = field(
        default_factory=lambda: int(os.getenv("KAFKA_PRODUCER_LINGER_MS", "50"))
    )
    compression_type: Optional[str] = field(
        default_factory=lambda: os.getenv("KAFKA_PRODUCER_COMPRESSION", "gzip") or None
    )
    acks: str = field(
        default_factory=lambda: os.getenv("KAFKA_PRODUCER_ACKS", "all")
    )
    request_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("KAFKA_PRODUCER_TIMEOUT_MS", "30000"))
    )


@dataclass
class ConsumerConfig:
    """Kafka Consumer 설정"""

    group_id: str = field(
        default_factory=lambda: os.getenv("KAFKA_CONSUMER_GROUP", "ragscholar-enrichment")
    )
    auto_offset_reset: str = field(
        default_factory=lambda: os.getenv("KAFKA_CONSUMER_OFFSET_RESET", "earliest")
    )

    # 임베딩이 오래 걸릴 수 있어 넉넉하게
    session_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("KAFKA_CONSUMER_SESSION_TIMEOUT", "60000"))
    )
    heartbeat_interval_ms: int = field(
        default_factory=lambda: int(os.getenv("KAFKA_CONSUMER_HEARTBEAT", "20000"))
    )
    max_poll_interval_ms: int = field(
        default_factory=lambda: int(os.getenv("KAFKA_CONSUMER_MAX_POLL_INTERVAL", "600000"))
    )


@dataclass
class QdrantConfig:
    """Qdrant 벡터 저장소 설정"""

    url: str = field(
        default_factory=lambda: os.getenv("QDRANT_URL", "http://localhost:6333")
    )
    api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("QDRANT_API_KEY")
    )
    collection_name: str = field(
        default_factory=lambda: os.getenv("QDRANT_COLLECTION", "papers")
    )
    vector_size: int = field(
        default_factory=lambda: int(os.getenv("QDRANT_VECTOR_SIZE", "768"))
    )
    timeout: float = field(
        default_factory=lambda: float(os.getenv("QDRANT_TIMEOUT", "30.0"))
    )


@dataclass
class EmbeddingConfig:
    """임베딩 백엔드 설정"""

    # "gemini" | "openai" | "local"
    backend: str = field(
        default_factory=lambda: os.getenv("EMBED_BACKEND", "gemini").lower()
    )
    model_name: Optional[str] = field(
        default_factory=lambda: os.getenv("EMBED_MODEL_NAME")
    )
    gemini_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY")
    )
    openai_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY")
    )

    # 원격 호출 1건당 최대 대기 시간 (초)
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("EMBED_TIMEOUT", "30.0"))
    )


@dataclass
class ExplainerConfig:
    """LLM 설명 생성 설정 (Gemini GenerativeModel)"""

    model_name: str = field(
        default_factory=lambda: os.getenv("EXPLAIN_MODEL", "gemini-2.5-flash")
    )
    gemini_api_key: Optional[str] = field(
        default_factory=lambda: os.getenv("GEMINI_API_KEY")
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("EXPLAIN_TIMEOUT", "60.0"))
    )
    # 검색 결과를 프롬프트에 넣을 때 최대 문자 수
    max_context_chars: int = field(
        default_factory=lambda: int(os.getenv("EXPLAIN_MAX_CONTEXT_CHARS", "4000"))
    )


@dataclass
class PipelineConfig:
    """워커 풀 / 레이트 리미터 설정"""

    worker_count: int = field(
        default_factory=lambda: int(os.getenv("PIPELINE_WORKERS", "10"))
    )
    buffer_size: int = field(
        default_factory=lambda: int(os.getenv("PIPELINE_BUFFER_SIZE", "10"))
    )
    requests_per_minute: float = field(
        default_factory=lambda: float(os.getenv("EMBED_REQUESTS_PER_MINUTE", "60"))
    )

    # None이면 drain 무기한 대기
    drain_timeout: Optional[float] = field(
        default_factory=lambda: (
            float(os.environ["PIPELINE_DRAIN_TIMEOUT"])
            if os.getenv("PIPELINE_DRAIN_TIMEOUT") else None
        )
    )


@dataclass
class ArxivConfig:
    """arXiv 수집기 설정"""

    api_url: str = field(
        default_factory=lambda: os.getenv("ARXIV_API_URL", "http://export.arxiv.org/api/query")
    )
    max_results: int = field(
        default_factory=lambda: int(os.getenv("ARXIV_MAX_RESULTS", "10"))
    )
    max_start: int = field(
        default_factory=lambda: int(os.getenv("ARXIV_MAX_START", "200"))
    )
    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("ARXIV_TIMEOUT", "30.0"))
    )


@dataclass
class MetricsConfig:
    """Prometheus exporter 설정"""

    # None이면 exporter 비활성화
    port: Optional[int] = field(
        default_factory=lambda: (
            int(os.environ["METRICS_PORT"]) if os.getenv("METRICS_PORT") else None
        )
    )


@dataclass
class RAGScholarConfig:
    """전체 파이프라인 통합 설정"""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    topics: TopicConfig = field(default_factory=TopicConfig)
    consumer: ConsumerConfig = field(default_factory=ConsumerConfig)
    producer: ProducerConfig = field(default_factory=ProducerConfig)
    qdrant: QdrantConfig = field(default_factory=QdrantConfig)
    embedding: EmbeddingConfig = field(default_factory=EmbeddingConfig)
    explainer: ExplainerConfig = field(default_factory=ExplainerConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)
    arxiv: ArxivConfig = field(default_factory=ArxivConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)


# Singleton instance
_config: Optional[RAGScholarConfig] = None


def get_config() -> RAGScholarConfig:
    """설정 인스턴스 반환"""
    global _config
    if _config is None:
        _config = RAGScholarConfig()
    return _config


def reset_config() -> None:
    """환경변수 변경 후 설정을 다시 읽도록 초기화 (테스트용)"""
    global _config
    _config = None
