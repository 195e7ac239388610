from __future__ import annotations

import json
from typing import Any

import httpx

from .config import LLMSettings
from .utils import get_logger, truncate

logger = get_logger("triage_llm")


class LLMError(RuntimeError):
    """Base class for language-model call failures."""


class LLMTransportError(LLMError):
    """The request could not be completed (connection, timeout, HTTP status)."""


class LLMReplyError(LLMError):
    """The model answered, but not with the requested JSON object."""


class LLMClient:
    """Async client for an Ollama-compatible ``/api/chat`` endpoint.

    Every call is attempted exactly once: there is no retry, backoff or
    circuit breaker here. Structured output is requested by passing a JSON
    schema in the ``format`` field.

    Construct one per pipeline run (see ``build_llm_client``) and close it
    with ``aclose()`` or ``async with``.
    """

    def __init__(
        self,
        *,
        base_url: str,
        model: str,
        api_key: str = "",
        timeout_seconds: float = 120.0,
        num_predict: int = 512,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.num_predict = num_predict
        self._api_key = api_key
        self._client: httpx.AsyncClient | None = None
        self._closed = False

    def _get_client(self) -> httpx.AsyncClient:
        """Return (or create) the underlying async HTTP client.

        A closed client stays closed: later calls fail with
        ``LLMTransportError`` instead of opening a new connection pool.
        """
        if self._closed:
            raise LLMTransportError("LLM client is closed")
        if self._client is None or self._client.is_closed:
            headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else None
            self._client = httpx.AsyncClient(timeout=self.timeout_seconds, headers=headers)
        return self._client

    async def aclose(self) -> None:
        self._closed = True
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "LLMClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def chat(
        self,
        *,
        messages: list[dict[str, str]],
        schema: dict[str, Any] | None = None,
        temperature: float = 0.0,
    ) -> str:
        """Send one chat request and return the raw content string."""
        payload: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "stream": False,
            "options": {
                "temperature": temperature,
                "num_predict": self.num_predict,
            },
        }
        if schema is not None:
            payload["format"] = schema
        try:
            client = self._get_client()
            response = await client.post(f"{self.base_url}/api/chat", json=payload)
            response.raise_for_status()
            data = response.json()
        except Exception as exc:
            logger.warning("LLM chat request failed: %s", exc)
            raise LLMTransportError(f"LLM request failed: {exc}") from exc

        message = data.get("message") if isinstance(data, dict) else None
        if not isinstance(message, dict):
            raise LLMReplyError("LLM reply has no message object")
        return str(message.get("content", "")).strip()

    async def generate_json(
        self,
        *,
        messages: list[dict[str, str]],
        schema: dict[str, Any],
        temperature: float = 0.0,
    ) -> dict[str, Any]:
        """Ask for a structured reply and return it as a dict.

        Raises ``LLMTransportError`` when the call fails and ``LLMReplyError``
        when the content is not a JSON object.
        """
        content = await self.chat(messages=messages, schema=schema, temperature=temperature)
        return parse_json_object(content)

    async def health(self) -> bool:
        try:
            client = self._get_client()
            response = await client.get(f"{self.base_url}/api/tags")
            return response.status_code == 200
        except Exception as exc:
            logger.info("LLM health probe failed: %s", exc)
            return False


def parse_json_object(content: str) -> dict[str, Any]:
    """Parse a model reply into a dict, tolerating a fenced code block."""
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
        text = text.strip()
    if not text:
        raise LLMReplyError("LLM reply is empty")
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise LLMReplyError(f"LLM reply is not valid JSON: {truncate(text)}") from exc
    if not isinstance(parsed, dict):
        raise LLMReplyError(f"LLM reply is not a JSON object: {type(parsed).__name__}")
    return parsed


def build_llm_client(settings: LLMSettings | None = None) -> LLMClient:
    """Create a fresh client from the current environment.

    Settings are re-read on every call so rotated credentials or a new
    endpoint take effect for the next run.
    """
    cfg = settings or LLMSettings()
    return LLMClient(
        base_url=cfg.base_url,
        model=cfg.model,
        api_key=cfg.api_key,
        timeout_seconds=cfg.timeout_seconds,
        num_predict=cfg.num_predict,
    )
