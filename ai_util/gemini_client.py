from __future__ import annotations

import json
import logging
import os
import socket
import typing as t
import urllib.error
import urllib.parse
import urllib.request

from ai_util.errors import ConfigurationError, EmptyModelResponse, UpstreamError, UpstreamTimeout

JsonDict = dict[str, t.Any]

DEFAULT_MODEL = "gemini-pro"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com/v1"
DEFAULT_TIMEOUT_S = 15.0

logger = logging.getLogger(__name__)


class GeminiClient:
    """Single-shot text client for the Gemini ``generateContent`` endpoint.

    Each call makes exactly one HTTP request. There is no retry: a timeout
    raises ``UpstreamTimeout`` and a non-2xx reply raises ``UpstreamError``
    carrying the upstream status.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout_s: float | None = None,
    ) -> None:
        self.api_key = api_key or os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
        self.model = model or os.environ.get("GEMINI_MODEL") or DEFAULT_MODEL
        self.base_url = (base_url or os.environ.get("GEMINI_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")
        self.timeout_s = float(timeout_s if timeout_s is not None else DEFAULT_TIMEOUT_S)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def _build_request(self, prompt: str) -> urllib.request.Request:
        if not self.api_key:
            raise ConfigurationError("Gemini API key is not configured")
        payload: JsonDict = {
            "contents": [
                {
                    "parts": [{"text": prompt}],
                }
            ]
        }
        url = (
            f"{self.base_url}/models/{urllib.parse.quote(self.model)}:generateContent"
            f"?key={urllib.parse.quote(self.api_key)}"
        )
        return urllib.request.Request(
            url,
            data=json.dumps(payload, ensure_ascii=False).encode("utf-8"),
            headers={"Content-Type": "application/json"},
            method="POST",
        )

    def _error_message(self, body: str | None) -> str:
        if not body:
            return UpstreamError.public_message
        try:
            parsed = json.loads(body)
        except json.JSONDecodeError:
            return UpstreamError.public_message
        err = parsed.get("error") if isinstance(parsed, dict) else None
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        if isinstance(err, str) and err:
            return err
        return UpstreamError.public_message

    def extract_text(self, data: JsonDict) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            raise EmptyModelResponse()
        content = candidates[0].get("content") or {}
        parts = content.get("parts") or []
        text_parts = [p.get("text") for p in parts if isinstance(p, dict) and p.get("text")]
        text = "\n".join(t.cast(list[str], text_parts)).strip()
        if not text:
            logger.warning(
                "Gemini returned no text. Finish reason: %s", candidates[0].get("finishReason")
            )
            raise EmptyModelResponse()
        return text

    def generate_text(self, prompt: str) -> str:
        req = self._build_request(prompt)
        logger.info("Calling Gemini model %s (timeout %.1fs)", self.model, self.timeout_s)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_s) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as e:
            body = None
            try:
                body = e.read().decode("utf-8")
            except Exception:
                body = None
            logger.error("Gemini HTTPError %s: %s", e.code, body)
            raise UpstreamError(self._error_message(body), status_code=e.code) from e
        except urllib.error.URLError as e:
            if isinstance(e.reason, (socket.timeout, TimeoutError)):
                raise UpstreamTimeout() from e
            raise UpstreamError(f"Could not reach Gemini API: {e.reason}") from e
        except (socket.timeout, TimeoutError) as e:
            raise UpstreamTimeout() from e

        try:
            data = t.cast(JsonDict, json.loads(raw))
        except json.JSONDecodeError as e:
            logger.error("Gemini returned invalid JSON: %s", raw[:1000])
            raise EmptyModelResponse() from e
        return self.extract_text(data)
