"""
Text generation client (Groq).

One narrow call: prompt in, text out. Failures of any kind surface as
GenerationServiceError; the provider's error text is logged, never returned
to API callers. No retries are attempted here.
"""

import logging
import threading
from typing import Optional, Protocol

import groq

from intellect.core.config import settings
from intellect.core.errors import GenerationServiceError

logger = logging.getLogger("intellect")


class TextGenerator(Protocol):
    def generate(self, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        ...


class GroqTextGenerator:
    def __init__(self, api_key: Optional[str] = None, model: Optional[str] = None):
        self.api_key = api_key if api_key is not None else settings.GROQ_API_KEY
        self.model = model or settings.GROQ_MODEL
        self._client = None
        self._lock = threading.Lock()

    def _get_client(self) -> "groq.Groq":
        if self._client is None:
            with self._lock:
                if self._client is None:
                    self._client = groq.Groq(api_key=self.api_key)
        return self._client

    def generate(self, prompt: str, *, temperature: float, max_output_tokens: int) -> str:
        logger.info(f"[generate] calling Groq model={self.model} prompt_chars={len(prompt)}")
        try:
            completion = self._get_client().chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
                max_tokens=max_output_tokens,
            )
        except Exception as e:
            logger.error(f"[generate] Groq request failed: {e}")
            raise GenerationServiceError() from e

        choices = getattr(completion, "choices", None) or []
        content = choices[0].message.content if choices else None
        if not content:
            logger.error("[generate] Groq returned an empty completion")
            raise GenerationServiceError()
        return content.strip()
