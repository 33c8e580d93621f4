"""
Gemini Reasoning Client
Bounded-retry wrapper around google-genai used by the query planner.

Rate-limit responses (HTTP 429 / RESOURCE_EXHAUSTED) are retried with linear
backoff and then surface as ReasoningServiceBusyError. Every other failure
(network, timeout, 4xx/5xx) surfaces immediately as ReasoningServiceError.
"""
import time
from dataclasses import dataclass

from google import genai
from google.genai import types
from google.genai import errors as genai_errors

from config import settings
from utils import get_logger, CancellationToken

logger = get_logger(__name__)


class ReasoningServiceError(Exception):
    """The reasoning service call failed"""

    def __init__(self, message: str, tokens_used: int = 0, latency_ms: int = 0):
        super().__init__(message)
        self.tokens_used = tokens_used
        self.latency_ms = latency_ms


class ReasoningServiceBusyError(ReasoningServiceError):
    """The reasoning service kept rate-limiting us after all retry attempts"""
    pass


@dataclass
class ReasoningResponse:
    text: str
    tokens_used: int
    latency_ms: int = 0


def estimate_tokens(*texts: str) -> int:
    """Rough token estimate (~4 characters per token)"""
    return sum(len(t or "") for t in texts) // 4


def is_rate_limited(error: Exception) -> bool:
    code = getattr(error, "code", None)
    status = str(getattr(error, "status", "") or "")
    return code == 429 or "RESOURCE_EXHAUSTED" in status or "RESOURCE_EXHAUSTED" in str(error)


class GeminiReasoningClient:
    """
    Sends one prompt to Gemini and returns the text plus token usage.

    Key responsibilities:
    - Low-temperature, bounded-output JSON sampling
    - Linear backoff on rate limits, interruptible by cancellation
    - Token accounting on every path
    """

    def __init__(
        self,
        client: genai.Client | None = None,
        model_name: str | None = None,
        max_attempts: int | None = None,
        retry_delay: float | None = None,
    ):
        self.client = client or genai.Client(
            api_key=settings.GEMINI_API_KEY,
            http_options=types.HttpOptions(timeout=settings.PLANNER_TIMEOUT_SECONDS * 1000),
        )
        self.model_name = model_name or settings.MODEL_NAME
        self.max_attempts = max(1, max_attempts or settings.PLANNER_MAX_ATTEMPTS)
        self.retry_delay = settings.PLANNER_RETRY_DELAY_SECONDS if retry_delay is None else retry_delay

    def _config(self, system_instruction: str) -> types.GenerateContentConfig:
        return types.GenerateContentConfig(
            system_instruction=system_instruction,
            temperature=settings.PLANNER_TEMPERATURE,
            top_k=settings.PLANNER_TOP_K,
            top_p=settings.PLANNER_TOP_P,
            max_output_tokens=settings.PLANNER_MAX_OUTPUT_TOKENS,
            response_mime_type="application/json",
        )

    def generate(
        self,
        prompt: str,
        system_instruction: str,
        cancel: CancellationToken | None = None,
    ) -> ReasoningResponse:
        """
        Generate a completion for `prompt`.

        Raises:
            ReasoningServiceBusyError: still rate-limited after max_attempts
            ReasoningServiceError: any other service failure
            OperationCancelledError: the token fired before or during backoff
        """
        cancel = cancel or CancellationToken()
        started = time.monotonic()
        prompt_tokens = estimate_tokens(system_instruction, prompt)

        for attempt in range(1, self.max_attempts + 1):
            cancel.raise_if_cancelled()
            try:
                response = self.client.models.generate_content(
                    model=self.model_name,
                    contents=[types.Content(role="user", parts=[types.Part(text=prompt)])],
                    config=self._config(system_instruction),
                )
            except genai_errors.APIError as e:
                if not is_rate_limited(e):
                    logger.error(f"Gemini API error (code={e.code}): {e}")
                    raise ReasoningServiceError(
                        f"Reasoning service error: {e}",
                        tokens_used=prompt_tokens,
                        latency_ms=_elapsed_ms(started),
                    ) from e
                if attempt >= self.max_attempts:
                    logger.error(f"Gemini still rate limited after {attempt} attempts")
                    raise ReasoningServiceBusyError(
                        "Reasoning service is busy, please try again shortly",
                        tokens_used=prompt_tokens,
                        latency_ms=_elapsed_ms(started),
                    ) from e
                delay = self.retry_delay * attempt
                logger.warning(f"Gemini rate limited (attempt {attempt}/{self.max_attempts}), retrying in {delay:.1f}s")
                cancel.wait(delay)
                continue
            except Exception as e:
                logger.exception(f"Gemini request failed: {e}")
                raise ReasoningServiceError(
                    f"Reasoning service unavailable: {e}",
                    tokens_used=prompt_tokens,
                    latency_ms=_elapsed_ms(started),
                ) from e

            text = response.text or ""
            usage = getattr(response, "usage_metadata", None)
            tokens_used = getattr(usage, "total_token_count", None) or estimate_tokens(system_instruction, prompt, text)
            return ReasoningResponse(text=text, tokens_used=tokens_used, latency_ms=_elapsed_ms(started))

        # max_attempts >= 1 so the loop always returns or raises
        raise ReasoningServiceBusyError("Reasoning service is busy", tokens_used=prompt_tokens)


def _elapsed_ms(started: float) -> int:
    return int((time.monotonic() - started) * 1000)


# Singleton instance
_client: GeminiReasoningClient | None = None


def get_reasoning_client() -> GeminiReasoningClient:
    """Get or create reasoning client singleton"""
    global _client
    if _client is None:
        _client = GeminiReasoningClient()
    return _client
