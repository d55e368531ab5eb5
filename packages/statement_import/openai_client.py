"""OpenAI Responses API backend for transaction classification.

No side effects at import time: the client is created lazily per call and
environment variables are read only by :func:`classifier_from_env` and the
backend constructor.
"""

from __future__ import annotations

import os
import random
import time
from typing import TYPE_CHECKING, Any

from openai import OpenAI

from .logging_setup import get_logger

if TYPE_CHECKING:
    from .categorize import LlmClassifier

# ---- Tunables (private) ------------------------------------------------------

_MAX_ATTEMPTS: int = 3
_BACKOFF_SCHEDULE_SEC: tuple[float, ...] = (0.5, 2.0)
_JITTER_PCT: float = 0.20

_DEFAULT_MODEL: str = "gpt-5"
_MODEL_ENV = "STATEMENT_IMPORT_MODEL"

_logger = get_logger("statement_import.openai_client")


def _create_client() -> OpenAI:
    return OpenAI()


def _is_retryable(exc: BaseException) -> bool:
    """Return True only for HTTP 429 and 5xx errors."""

    sc = getattr(exc, "status_code", None)
    return isinstance(sc, int) and (sc == 429 or 500 <= sc < 600)


def _sleep_backoff(attempt_no: int) -> None:
    if attempt_no - 1 < len(_BACKOFF_SCHEDULE_SEC):
        base = _BACKOFF_SCHEDULE_SEC[attempt_no - 1]
    else:
        base = _BACKOFF_SCHEDULE_SEC[-1]
    jitter = base * _JITTER_PCT
    time.sleep(max(0.0, base + random.uniform(-jitter, jitter)))


def extract_response_text(resp: Any) -> str:
    """Return the text of a Responses SDK result.

    Prefers ``resp.output_text``; falls back to ``resp.output[0].content[0].text``
    (a string, or an object with a ``value`` string). Raises ``ValueError``
    when no text can be located.
    """

    text: str | None = getattr(resp, "output_text", None)
    if not text:
        try:
            first = resp.output[0] if getattr(resp, "output", None) else None
            content = getattr(first, "content", None)
            if content:
                txt_obj = getattr(content[0], "text", None)
                if isinstance(txt_obj, str):
                    text = txt_obj
                else:
                    maybe_val = getattr(txt_obj, "value", None)
                    if isinstance(maybe_val, str):
                        text = maybe_val
        except (AttributeError, IndexError, TypeError):
            text = None
    if not text or not isinstance(text, str):
        raise ValueError("Unexpected Responses API shape; unable to locate text output")
    return text


class OpenAIResponsesBackend:
    """``ClassificationBackend`` over ``OpenAI().responses.create``.

    Retries HTTP 429/5xx up to three attempts with jittered backoff; every
    other error (auth, validation, response shape) fails immediately.
    """

    def __init__(self, *, model: str | None = None) -> None:
        self.model = model or os.getenv(_MODEL_ENV) or _DEFAULT_MODEL

    def complete(self, instructions: str, user_input: str) -> str:
        client = _create_client()
        attempt = 1
        while True:
            t0 = time.perf_counter()
            try:
                resp = client.responses.create(
                    model=self.model,
                    instructions=instructions,
                    input=user_input,
                )
                text = extract_response_text(resp)
                _logger.debug(
                    "openai:call_done model=%s latency_ms=%.2f chars=%d",
                    self.model,
                    (time.perf_counter() - t0) * 1000.0,
                    len(text),
                )
                return text
            except Exception as e:
                dt_ms = (time.perf_counter() - t0) * 1000.0
                if attempt >= _MAX_ATTEMPTS or not _is_retryable(e):
                    _logger.error(
                        "openai:call_failed_terminal model=%s attempt=%d latency_ms=%.2f error=%s",
                        self.model,
                        attempt,
                        dt_ms,
                        e.__class__.__name__,
                    )
                    raise
                _logger.warning(
                    "openai:call_retry model=%s attempt=%d latency_ms=%.2f error=%s",
                    self.model,
                    attempt,
                    dt_ms,
                    e.__class__.__name__,
                )
                _sleep_backoff(attempt)
                attempt += 1


def classifier_from_env() -> LlmClassifier | None:
    """Return an OpenAI-backed classifier when ``OPENAI_API_KEY`` is set, else ``None``."""

    if not os.getenv("OPENAI_API_KEY"):
        _logger.info("openai:disabled reason=no_api_key")
        return None
    from .categorize import LlmClassifier

    return LlmClassifier(OpenAIResponsesBackend())


__all__ = ["OpenAIResponsesBackend", "classifier_from_env", "extract_response_text"]
