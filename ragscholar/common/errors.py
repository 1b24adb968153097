"""Pipeline error types."""


class PipelineError(RuntimeError):
    """파이프라인 공통 예외"""


class MalformedBatchError(PipelineError):
    """큐 메시지를 배치로 해석할 수 없음 (잘못된 JSON, 배열이 아닌 payload 등)"""


class EmbeddingError(PipelineError):
    """임베딩 생성 실패 (전송 오류, 타임아웃, 빈 결과)"""


class ProvisioningError(PipelineError):
    """컬렉션 확인/생성 실패 - 시작 단계에서 치명적"""


class ExplanationError(PipelineError):
    """LLM 설명 생성 실패 (빈 입력, 호출 오류, 빈 응답)"""
