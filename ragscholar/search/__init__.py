"""
Search Module - 저장된 논문 조회 (유사도 검색 / id 조회 / 샘플) + LLM 설명
"""

from .explainer import PaperExplainer
from .paper_search import PaperSearcher

__all__ = ["PaperExplainer", "PaperSearcher"]
