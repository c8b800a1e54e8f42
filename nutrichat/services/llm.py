import logging
import os
from typing import Any, Optional

import httpx

logger = logging.getLogger("uvicorn.error")

GEMINI_API_KEY = os.getenv("GEMINI_API_KEY", "")
GEMINI_API_BASE_URL = os.getenv("GEMINI_API_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
GEMINI_CHAT_MODEL = os.getenv("GEMINI_CHAT_MODEL", "gemini-2.5-flash-lite")
GEMINI_REPORT_MODEL = os.getenv("GEMINI_REPORT_MODEL", "gemini-2.5-flash-lite")
LLM_TIMEOUT_SECONDS = float(os.getenv("LLM_TIMEOUT_SECONDS", "60"))
LLM_CONNECT_TIMEOUT_SECONDS = float(os.getenv("LLM_CONNECT_TIMEOUT_SECONDS", "10"))
LLM_WRITE_TIMEOUT_SECONDS = float(os.getenv("LLM_WRITE_TIMEOUT_SECONDS", "30"))
LLM_POOL_TIMEOUT_SECONDS = float(os.getenv("LLM_POOL_TIMEOUT_SECONDS", "60"))

_shared_http_client: Optional[httpx.AsyncClient] = None


def _http_timeout() -> httpx.Timeout:
    return httpx.Timeout(
        connect=LLM_CONNECT_TIMEOUT_SECONDS,
        read=LLM_TIMEOUT_SECONDS,
        write=LLM_WRITE_TIMEOUT_SECONDS,
        pool=LLM_POOL_TIMEOUT_SECONDS,
    )


class LLMRequestError(RuntimeError):
    def __init__(self, provider: str, model: str, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.provider = provider
        self.model = model
        self.status_code = status_code


def _content_body(prompt: str) -> dict[str, Any]:
    return {"contents": [{"role": "user", "parts": [{"text": prompt}]}]}


class GeminiClient:
    provider = "gemini"

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = GEMINI_API_BASE_URL,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._http = http_client or httpx.AsyncClient(timeout=_http_timeout())

    def _build_request(self, model: str, method: str, body: dict[str, Any]) -> httpx.Request:
        if not self.api_key:
            raise LLMRequestError(provider=self.provider, model=model, message="GEMINI_API_KEY is not configured.")
        return self._http.build_request(
            "POST",
            f"{self.base_url}/models/{model}:{method}",
            headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
            json=body,
        )

    async def _send(self, request: httpx.Request, model: str, *, stream: bool) -> httpx.Response:
        try:
            response = await self._http.send(request, stream=stream)
        except httpx.TimeoutException as exc:
            raise LLMRequestError(
                provider=self.provider,
                model=model,
                message="Gemini request timed out while waiting for response.",
            ) from exc
        except httpx.HTTPError as exc:
            raise LLMRequestError(
                provider=self.provider,
                model=model,
                message=f"Gemini request failed: {str(exc)[:220]}",
            ) from exc
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            detail = ""
            try:
                if stream:
                    await response.aread()
                detail = (response.text or "").strip()[:220]
            except httpx.HTTPError:
                detail = ""
            finally:
                await response.aclose()
            raise LLMRequestError(
                provider=self.provider,
                model=model,
                status_code=status,
                message=f"Gemini request failed (status={status}): {detail or 'no response body'}",
            ) from exc
        return response

    async def generate_content(
        self,
        prompt: str,
        *,
        model: str = GEMINI_REPORT_MODEL,
        tools: Optional[list[dict[str, Any]]] = None,
        tool_config: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        body = _content_body(prompt)
        if tools:
            body["tools"] = tools
        if tool_config:
            body["toolConfig"] = tool_config
        request = self._build_request(model, "generateContent", body)
        logger.info("gemini_generate_content model=%s prompt_chars=%s", model, len(prompt))
        response = await self._send(request, model, stream=False)
        try:
            data = response.json()
        except ValueError as exc:
            raise LLMRequestError(
                provider=self.provider, model=model, message="Gemini returned a non-JSON response body."
            ) from exc
        if not isinstance(data, dict):
            raise LLMRequestError(provider=self.provider, model=model, message="Gemini returned an unexpected payload.")
        return data

    async def open_content_stream(self, prompt: str, *, model: str = GEMINI_CHAT_MODEL) -> httpx.Response:
        """Start a streamed generation; the caller owns and must close the response."""
        request = self._build_request(model, "streamGenerateContent", _content_body(prompt))
        logger.info("gemini_stream_content model=%s prompt_chars=%s", model, len(prompt))
        return await self._send(request, model, stream=True)


def _get_shared_http_client() -> httpx.AsyncClient:
    global _shared_http_client
    if _shared_http_client is None or _shared_http_client.is_closed:
        _shared_http_client = httpx.AsyncClient(timeout=_http_timeout())
    return _shared_http_client


async def close_shared_http_client() -> None:
    global _shared_http_client
    if _shared_http_client is not None:
        await _shared_http_client.aclose()
        _shared_http_client = None


def get_gemini_client() -> GeminiClient:
    return GeminiClient(GEMINI_API_KEY, http_client=_get_shared_http_client())
