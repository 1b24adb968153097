"""
Paper Explainer - Gemini로 논문 설명 / 질의응답
===============================================

- explain(): 논문 본문 일부를 기본(또는 사용자 지정) 시스템 프롬프트로 설명
- answer() : 질문으로 논문을 검색하고, 검색 결과를 format_context()로 묶어 근거로 답변

사용 예시:
    explainer = PaperExplainer(searcher=searcher)
    text = await explainer.explain("We propose ...", paper_title="Attention Is All You Need")
    reply = await explainer.answer("how are diffusion models used for audio?")
"""

import asyncio
import logging
from typing import Any, Callable, Optional

from ragscholar.common.config import ExplainerConfig, get_config
from ragscholar.common.errors import ExplanationError
from .paper_search import PaperSearcher

logger = logging.getLogger(__name__)

DEFAULT_SYSTEM_PROMPT = """You are a helpful academic assistant. Your task is to explain the given text from a research paper.
Provide a clear, concise explanation that:
1. Summarizes the key points or concepts in the text
2. Explains any technical terms or jargon
3. Places the text in the broader context of the research field
4. Highlights the significance or implications of the content

Keep your explanation focused, accurate, and helpful for someone trying to understand this research."""

ANSWER_SYSTEM_PROMPT = """You are a helpful academic assistant. Answer the question using only the research papers provided.
Refer to papers by their [number]. If the papers do not answer the question, say so."""


class PaperExplainer:
    """Gemini GenerativeModel 기반 설명 생성기"""

    def __init__(
        self,
        config: Optional[ExplainerConfig] = None,
        searcher: Optional[PaperSearcher] = None,
        model_factory: Optional[Callable[[str], Any]] = None,
    ):
        """
        Args:
            config: 모델/타임아웃 설정 (None이면 환경변수)
            searcher: answer()에서 사용할 검색기
            model_factory: 시스템 프롬프트 → generate_content_async()를 가진 모델
        """
        self.config = config or get_config().explainer
        self.searcher = searcher
        self._model_factory = model_factory or self._gemini_model
        self._genai = None

    def _gemini_model(self, system_prompt: str) -> Any:
        if self._genai is None:
            if not self.config.gemini_api_key:
                raise ExplanationError("Gemini API key not set. Set GEMINI_API_KEY.")

            import google.generativeai as genai
            genai.configure(api_key=self.config.gemini_api_key)
            self._genai = genai
            logger.info(f"Explainer configured: model={self.config.model_name}")

        return self._genai.GenerativeModel(
            self.config.model_name,
            system_instruction=system_prompt,
        )

    async def explain(
        self,
        text: str,
        paper_title: str = "",
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        논문 텍스트 설명

        system_prompt가 없으면 기본 프롬프트로 설명을 요청하고,
        있으면 그 프롬프트를 시스템 지시로 사용 (요청 문구는 붙이지 않음).

        Raises:
            ExplanationError: 빈 입력, 호출 실패, 타임아웃, 빈 응답
        """
        if not text or not text.strip():
            raise ExplanationError("cannot explain empty text")

        prompt = f"The following text is from a research paper titled '{paper_title}':\n\n{text}"
        if not system_prompt:
            system_prompt = DEFAULT_SYSTEM_PROMPT
            prompt += "\n\nPlease explain this text."

        return await self._generate(system_prompt, prompt)

    async def answer(
        self,
        question: str,
        top_k: int = 5,
        system_prompt: Optional[str] = None,
    ) -> str:
        """
        질문 → 논문 검색 → 검색 결과를 근거로 답변

        검색 결과가 없으면 모델을 호출하지 않고 format_context()의 안내 문구를 반환.
        """
        if self.searcher is None:
            raise RuntimeError("answer() requires a PaperSearcher")
        if not question or not question.strip():
            raise ExplanationError("cannot answer empty question")

        results = await self.searcher.search(question, top_k=top_k)
        if not results:
            logger.info(f"No papers found for question: '{question}'")
            return self.searcher.format_context(results)

        context = self.searcher.format_context(
            results,
            max_total_chars=self.config.max_context_chars,
        )
        prompt = f"Research papers:\n\n{context}\n\nQuestion: {question}"

        return await self._generate(system_prompt or ANSWER_SYSTEM_PROMPT, prompt)

    async def _generate(self, system_prompt: str, prompt: str) -> str:
        model = self._model_factory(system_prompt)

        try:
            response = await asyncio.wait_for(
                model.generate_content_async(prompt),
                timeout=self.config.request_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ExplanationError(
                f"explanation request timed out after {self.config.request_timeout}s"
            ) from e
        except Exception as e:
            logger.error(f"Error generating explanation: {e}")
            raise ExplanationError(f"{type(e).__name__}: {e}") from e

        # 후보가 없으면 response.text가 ValueError
        try:
            text = response.text
        except ValueError as e:
            raise ExplanationError("received empty response from Gemini") from e

        if not text or not text.strip():
            raise ExplanationError("received empty response from Gemini")

        logger.debug(f"Generated explanation with {len(text)} chars")
        return text.strip()
