"""HTTP client for the Gemini vision models.

Uses httpx with configurable timeouts. Candidate models are tried in
order until one answers; tenacity retries a single candidate on
transient failures (429/503, connection errors) when more than one
attempt is configured.
"""

import base64
import logging
import time
from dataclasses import dataclass

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from form_brain.config import settings

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 503}


class InferenceError(Exception):
    """No candidate model produced a response."""


class ModelUnavailable(Exception):
    """A candidate model is temporarily unavailable (retryable: 429/503 or a connection error)."""


class ModelError(Exception):
    """A candidate model rejected the request (non-retryable for that model)."""


@dataclass(frozen=True)
class InferenceResult:
    text: str
    model: str
    inference_time_ms: int = 0


class GeminiClient:
    """Vision-language inference over the Gemini REST API with model fallback."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        models: list[str] | None = None,
        timeout: int | None = None,
        connect_timeout: int | None = None,
        retry_attempts: int | None = None,
        retry_delay: float | None = None,
        retry_backoff: float | None = None,
    ):
        self._api_key = api_key if api_key is not None else settings.GEMINI_API_KEY
        self._base_url = (base_url or settings.GEMINI_BASE_URL).rstrip("/")
        self.models = list(models) if models is not None else list(settings.GEMINI_MODELS)
        self._retry_attempts = retry_attempts if retry_attempts is not None else settings.GEMINI_RETRY_ATTEMPTS
        self._retry_delay = retry_delay if retry_delay is not None else settings.GEMINI_RETRY_DELAY
        self._retry_backoff = retry_backoff if retry_backoff is not None else settings.GEMINI_RETRY_BACKOFF

        read_timeout = timeout if timeout is not None else settings.GEMINI_TIMEOUT_SECONDS
        conn_timeout = connect_timeout if connect_timeout is not None else settings.GEMINI_CONNECT_TIMEOUT

        self._client = httpx.Client(
            base_url=self._base_url,
            headers={"x-goog-api-key": self._api_key},
            timeout=httpx.Timeout(
                connect=float(conn_timeout),
                read=float(read_timeout),
                write=30.0,
                pool=30.0,
            ),
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    def close(self):
        self._client.close()

    def infer(
        self,
        image: bytes,
        mime_type: str,
        instruction: str,
        model_candidates: list[str] | None = None,
    ) -> InferenceResult:
        """Send image + instruction to the first candidate model that answers.

        Raises InferenceError when no API key is configured or every
        candidate failed.
        """
        if not self.configured:
            raise InferenceError("Gemini API key not configured")

        candidates = list(model_candidates) if model_candidates is not None else self.models
        if not candidates:
            raise InferenceError("No candidate models configured")

        failures: list[str] = []
        for model in candidates:
            start = time.monotonic()
            try:
                text = self.generate(image, mime_type, instruction, model)
            except (ModelUnavailable, ModelError) as e:
                logger.warning("Model %s failed: %s", model, e)
                failures.append(f"{model}: {e}")
                continue

            elapsed_ms = int((time.monotonic() - start) * 1000)
            logger.info("Model %s answered in %dms", model, elapsed_ms)
            return InferenceResult(text=text, model=model, inference_time_ms=elapsed_ms)

        raise InferenceError(f"All candidate models failed. Last error: {failures[-1]}")

    def generate(self, image: bytes, mime_type: str, instruction: str, model: str) -> str:
        """Call a single model, retrying transient failures per settings.

        Returns the first text part of the first candidate, or "" when the
        response carries none.
        """
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": instruction},
                        {
                            "inline_data": {
                                "mime_type": mime_type,
                                "data": base64.b64encode(image).decode(),
                            }
                        },
                    ]
                }
            ]
        }

        @retry(
            retry=retry_if_exception_type(ModelUnavailable),
            stop=stop_after_attempt(max(self._retry_attempts, 1)),
            wait=wait_exponential(
                multiplier=self._retry_delay,
                exp_base=self._retry_backoff,
                max=60,
            ),
            reraise=True,
            before_sleep=lambda state: logger.warning(
                "Model %s unavailable, retrying in %.1fs (attempt %d/%d)",
                model,
                state.next_action.sleep,  # type: ignore[union-attr]
                state.attempt_number,
                self._retry_attempts,
            ),
        )
        def _do_generate() -> str:
            return self._send_generate(model, payload)

        return _do_generate()

    def _send_generate(self, model: str, payload: dict) -> str:
        """Send a single generateContent request."""
        try:
            resp = self._client.post(f"/models/{model}:generateContent", json=payload)
        except (httpx.ConnectError, httpx.ConnectTimeout) as e:
            raise ModelUnavailable(f"Cannot connect to Gemini: {e}") from e
        except httpx.ReadTimeout as e:
            raise ModelUnavailable(f"Gemini read timeout: {e}") from e
        except httpx.HTTPError as e:
            raise ModelError(f"Gemini HTTP error: {e}") from e

        if resp.status_code in _RETRYABLE_STATUS:
            raise ModelUnavailable(f"HTTP {resp.status_code}: {_error_detail(resp)}")

        if resp.status_code != 200:
            raise ModelError(f"HTTP {resp.status_code}: {_error_detail(resp)}")

        try:
            data = resp.json()
        except ValueError as e:
            raise ModelError(f"Undecodable response body: {e}") from e

        try:
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        except (KeyError, IndexError, TypeError):
            logger.warning("Model %s returned no text part", model)
            return ""

    def list_models(self) -> list[str]:
        """Names of the models visible to this API key (empty on failure)."""
        try:
            resp = self._client.get("/models", timeout=10.0)
            if resp.status_code != 200:
                logger.warning("Listing Gemini models failed: %s", _error_detail(resp))
                return []
            return [m.get("name", "") for m in resp.json().get("models", [])]
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Listing Gemini models failed: %s", e)
            return []

    def health(self) -> dict:
        """Check Gemini reachability. Returns health dict, never raises."""
        if not self.configured:
            return {"status": "unconfigured"}
        try:
            resp = self._client.get("/models", timeout=10.0)
        except httpx.HTTPError as e:
            logger.warning("Gemini health check failed: %s", e)
            return {"status": "unreachable", "error": str(e)}
        if resp.status_code != 200:
            return {"status": "error", "error": _error_detail(resp)}
        return {"status": "healthy", "models": self.models}


def _error_detail(resp: httpx.Response) -> str:
    try:
        return resp.json().get("error", {}).get("message", f"HTTP {resp.status_code}")
    except (ValueError, AttributeError):
        return resp.text[:200] or f"HTTP {resp.status_code}"
