"""
Common Module - Shared utilities across all layers
===================================================

Cross-layer shared code:
- config: Pipeline configuration (Kafka, Qdrant, embedding, worker pool)
- models: Paper record / point / search result models
- errors: Pipeline error types
"""

from .config import get_config, reset_config, RAGScholarConfig
from .errors import PipelineError, MalformedBatchError, EmbeddingError, ProvisioningError
from .models import (
    Author,
    Link,
    CandidateRecord,
    StoredPoint,
    SearchResult,
    parse_batch,
    serialize_batch,
)

__all__ = [
    "get_config",
    "reset_config",
    "RAGScholarConfig",
    "PipelineError",
    "MalformedBatchError",
    "EmbeddingError",
    "ProvisioningError",
    "Author",
    "Link",
    "CandidateRecord",
    "StoredPoint",
    "SearchResult",
    "parse_batch",
    "serialize_batch",
]
