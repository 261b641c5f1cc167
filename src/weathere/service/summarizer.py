"""Text-generation collaborator used for hourly accuracy summaries.

A summarizer is anything with ``label`` and
``summarize(system_context, prompt, max_output_tokens) -> str`` that raises
:class:`~weathere.errors.GenerationFailure` instead of returning nothing.
A single attempt is made per call; retries are not this layer's job.
"""

from typing import Any, Optional, Protocol

from openai import OpenAI, OpenAIError

from weathere.config.config import OPENAI_MODEL, SUMMARY_TIMEOUT_SECONDS
from weathere.errors import GenerationFailure
from weathere.utils.logging import get_logger

logger = get_logger(__name__)


class Summarizer(Protocol):
    label: str

    def summarize(self, system_context: str, prompt: str, max_output_tokens: int) -> str:
        ...


class OpenAISummarizer:
    """Chat-completions backed summarizer with a hard request timeout."""

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_MODEL,
        timeout_seconds: float = SUMMARY_TIMEOUT_SECONDS,
        client: Optional[Any] = None,
    ) -> None:
        if not api_key and client is None:
            raise ValueError("OpenAI API key required for the summarizer")
        self.label = model
        self.timeout_seconds = timeout_seconds
        self._api_key = api_key
        self._client = client

    @property
    def client(self):
        """Lazy-create the OpenAI client."""
        if self._client is None:
            self._client = OpenAI(
                api_key=self._api_key,
                timeout=self.timeout_seconds,
                max_retries=0,
            )
        return self._client

    def summarize(self, system_context: str, prompt: str, max_output_tokens: int) -> str:
        try:
            response = self.client.chat.completions.create(
                model=self.label,
                messages=[
                    {"role": "system", "content": system_context},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=max_output_tokens,
            )
        except OpenAIError as e:
            raise GenerationFailure(f"OpenAI request failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        text = choices[0].message.content if choices else None
        text = (text or "").strip()
        if not text:
            raise GenerationFailure("OpenAI returned an empty summary")
        return text


def build_summarizer(
    api_key: Optional[str],
    model: str = OPENAI_MODEL,
    timeout_seconds: float = SUMMARY_TIMEOUT_SECONDS,
) -> Optional[OpenAISummarizer]:
    """Return a summarizer when an API key is configured, else ``None``."""
    if not api_key:
        logger.info("No OpenAI API key configured; summaries will use the fallback template")
        return None
    return OpenAISummarizer(api_key=api_key, model=model, timeout_seconds=timeout_seconds)
