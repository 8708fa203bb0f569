"""Code transformers: the boundary to whatever proposes migrated code.

``CodeTransformer`` is the interface the orchestrator depends on. The
shipped implementation, ``LLMCodeTransformer``, asks a LlamaIndex LLM
(``Settings.llm`` unless one is injected) and parses the reply into a
``TransformationResponse``. Transformers never raise: any failure is
reported as ``success=False`` with an error message.
"""

import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

import backoff
import httpx

from ..constants import DEFAULT_SOURCE_API_NAME, DEFAULT_TARGET_API_NAME
from .models import TransformationRequest, TransformationResponse
from .prompts import build_migration_prompt

logger = logging.getLogger(__name__)

RETRYABLE_EXCEPTIONS = (TimeoutError, ConnectionError, httpx.TransportError)

_CONFIDENCE_RE = re.compile(r"^\s*confidence\s*[:=]\s*([01](?:\.\d+)?)\s*$", re.IGNORECASE | re.MULTILINE)
_EXPLANATION_RE = re.compile(r"^\s*explanation\s*:\s*(.*)\Z", re.IGNORECASE | re.MULTILINE | re.DOTALL)
_FENCE_RE = re.compile(r"```[\w+#-]*\n(.*?)```", re.DOTALL)


class CodeTransformer(ABC):
    """Proposes a migrated version of a code snippet."""

    @abstractmethod
    async def transform(self, request: TransformationRequest) -> TransformationResponse:
        ...


def parse_completion(text: str) -> Tuple[Optional[str], Optional[float], Optional[str]]:
    """Split an LLM reply into ``(code, confidence, explanation)``.

    The code is the first fenced block when present, otherwise the reply
    up to its Confidence or Explanation trailer. Confidence is only
    reported when the reply states one.
    """
    if not text or not text.strip():
        return None, None, None

    fence = _FENCE_RE.search(text)
    if fence:
        code = fence.group(1).rstrip()
    else:
        code = text
        trailers = [m.start() for m in (_CONFIDENCE_RE.search(text), _EXPLANATION_RE.search(text)) if m]
        if trailers:
            code = text[:min(trailers)]
        code = code.strip()

    confidence = None
    m = _CONFIDENCE_RE.search(text)
    if m:
        confidence = min(max(float(m.group(1)), 0.0), 1.0)

    explanation = None
    m = _EXPLANATION_RE.search(text)
    if m:
        explanation = m.group(1).strip() or None

    return code or None, confidence, explanation


class LLMCodeTransformer(CodeTransformer):
    """Transformer backed by a LlamaIndex LLM.

    Args:
        llm: Any object with an async ``acomplete(prompt)``. Defaults to
            ``llama_index.core.Settings.llm`` at call time.
        source_name: Display name of the legacy API used in prompts.
        target_name: Display name of the destination API used in prompts.
        target_domain: Host migrated code should call, stated in the prompt rules.
        max_tries: Attempts per request on transient errors.
    """

    def __init__(
        self,
        llm: Any = None,
        source_name: str = DEFAULT_SOURCE_API_NAME,
        target_name: str = DEFAULT_TARGET_API_NAME,
        target_domain: Optional[str] = None,
        max_tries: int = 3,
    ):
        self._llm = llm
        self.source_name = source_name
        self.target_name = target_name
        self.target_domain = target_domain
        self.max_tries = max_tries

    def _resolve_llm(self) -> Any:
        if self._llm is not None:
            return self._llm
        from llama_index.core import Settings

        return Settings.llm

    async def transform(self, request: TransformationRequest) -> TransformationResponse:
        prompt = build_migration_prompt(
            request, self.source_name, self.target_name, self.target_domain,
        )
        t0 = time.time()

        try:
            llm = self._resolve_llm()
            text = await self._complete(llm, prompt, request)
        except Exception as e:
            logger.error(
                f"Code transformation failed for {request.file_path}:{request.line_number}: {e}",
                exc_info=True,
            )
            return TransformationResponse(success=False, error=str(e) or type(e).__name__)

        code, confidence, explanation = parse_completion(text)
        logger.info(
            f"Transformer replied in {(time.time() - t0) * 1000:.0f}ms "
            f"({len(text or '')} chars, confidence={confidence})"
        )
        if not code:
            return TransformationResponse(success=False, error="Empty response from LLM")
        return TransformationResponse(
            success=True, code=code, confidence=confidence, explanation=explanation,
        )

    async def _complete(self, llm: Any, prompt: str, request: TransformationRequest) -> str:
        @backoff.on_exception(
            backoff.expo,
            RETRYABLE_EXCEPTIONS,
            max_tries=self.max_tries,
            max_time=60,
            on_backoff=self._on_retry,
        )
        async def _do_call():
            return await llm.acomplete(
                prompt,
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )

        response = await _do_call()
        return getattr(response, "text", None) or str(response or "")

    def _on_retry(self, details: dict):
        logger.warning(
            f"Transformer retry {details['tries']}/{self.max_tries} "
            f"after {details['wait']:.1f}s: {type(details.get('exception')).__name__}"
        )
