"""Transport for Gemini-compatible generation backends.

Official Google endpoints are reached through the google-genai SDK; any other
endpoint (third-party relays and proxies) is called over raw HTTP because
those often answer with non-standard bodies.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, AsyncGenerator, AsyncIterator, Optional

import httpx
from google import genai

from .config import OFFICIAL_ENDPOINT, Settings
from .errors import UpstreamError

logger = logging.getLogger(__name__)


def is_official_endpoint(endpoint: str | None) -> bool:
    """Only an explicit Google API host counts as the official backend."""

    if not endpoint:
        return True
    return "googleapis.com" in endpoint


@dataclass(frozen=True)
class ModelInfo:
    id: str
    name: str
    description: Optional[str] = None


class GeminiClient:
    """Client responsible for calling generation endpoints."""

    _client_lock: asyncio.Lock = asyncio.Lock()
    _client_pool: dict[tuple[str, float], httpx.AsyncClient] = {}

    def __init__(
        self,
        settings: Settings,
        *,
        http_client: httpx.AsyncClient | None = None,
        sdk_client: Any = None,
    ):
        self._settings = settings
        self._http_client = http_client
        self._sdk_client = sdk_client
        self._sdk_clients: dict[str, Any] = {}

    def base_url(self, endpoint: str | None = None) -> str:
        """Return the endpoint base URL without a trailing slash."""

        return (endpoint or self._settings.endpoint_url or OFFICIAL_ENDPOINT).rstrip("/")

    async def _get_http_client(self, base_url: str) -> httpx.AsyncClient:
        if self._http_client is not None:
            return self._http_client

        key = (base_url, float(self._settings.request_timeout))
        client = self.__class__._client_pool.get(key)
        if client is not None:
            return client

        async with self.__class__._client_lock:
            client = self.__class__._client_pool.get(key)
            if client is None:
                timeout = httpx.Timeout(self._settings.request_timeout, connect=10.0)
                limits = httpx.Limits(
                    max_connections=50,
                    max_keepalive_connections=20,
                )
                client = httpx.AsyncClient(timeout=timeout, limits=limits)
                self.__class__._client_pool[key] = client
        return client

    def _get_sdk_client(self, base_url: str) -> Any:
        if self._sdk_client is not None:
            return self._sdk_client
        client = self._sdk_clients.get(base_url)
        if client is None:
            client = genai.Client(
                api_key=self._settings.gemini_api_key.get_secret_value(),
                http_options={
                    "base_url": base_url,
                    "api_version": self._settings.api_version,
                    "timeout": int(self._settings.request_timeout * 1000),
                },
            )
            self._sdk_clients[base_url] = client
        return client

    @property
    def _params(self) -> dict[str, str]:
        return {"key": self._settings.gemini_api_key.get_secret_value()}

    def _model_url(self, base_url: str, model: str, method: str) -> str:
        return f"{base_url}/{self._settings.api_version}/models/{model}:{method}"

    async def generate_raw(
        self, payload: dict[str, Any], *, model: str, endpoint: str | None = None
    ) -> str:
        """POST a non-streaming request and return the body text unparsed."""

        base_url = self.base_url(endpoint)
        client = await self._get_http_client(base_url)
        response = await client.post(
            self._model_url(base_url, model, "generateContent"),
            params=self._params,
            headers={"Content-Type": "application/json"},
            json=payload,
        )
        if response.status_code >= 400:
            raise self._upstream_error(response.status_code, response.content)

        text = response.text
        logger.debug("Raw response from %s: %.500s", base_url, text)
        return text

    async def stream_raw(
        self, payload: dict[str, Any], *, model: str, endpoint: str | None = None
    ) -> AsyncGenerator[str, None]:
        """Stream response lines from ``streamGenerateContent?alt=sse``."""

        base_url = self.base_url(endpoint)
        client = await self._get_http_client(base_url)
        params = dict(self._params)
        params["alt"] = "sse"
        async with client.stream(
            "POST",
            self._model_url(base_url, model, "streamGenerateContent"),
            params=params,
            headers={
                "Content-Type": "application/json",
                "Accept": "text/event-stream",
            },
            json=payload,
        ) as response:
            if response.status_code >= 400:
                body = await response.aread()
                raise self._upstream_error(response.status_code, body)

            logger.debug("Reading response stream from %s", base_url)
            async for line in response.aiter_lines():
                yield line

    async def sdk_generate(
        self,
        contents: list[dict[str, Any]],
        config: dict[str, Any],
        *,
        model: str,
        endpoint: str | None = None,
    ) -> Any:
        client = self._get_sdk_client(self.base_url(endpoint))
        return await client.aio.models.generate_content(
            model=model, contents=contents, config=config
        )

    async def sdk_stream(
        self,
        contents: list[dict[str, Any]],
        config: dict[str, Any],
        *,
        model: str,
        endpoint: str | None = None,
    ) -> AsyncIterator[Any]:
        client = self._get_sdk_client(self.base_url(endpoint))
        return await client.aio.models.generate_content_stream(
            model=model, contents=contents, config=config
        )

    async def list_models(self, endpoint: str | None = None) -> list[ModelInfo]:
        """List models, trying the Gemini format first and OpenAI second."""

        base_url = self.base_url(endpoint)
        try:
            models = await self._list_gemini_models(base_url)
            if models:
                return models
        except (UpstreamError, httpx.HTTPError, ValueError) as exc:
            logger.info("Gemini model listing failed (%s); trying OpenAI format", exc)

        try:
            models = await self._list_openai_models(base_url)
            if models:
                return models
        except (UpstreamError, httpx.HTTPError, ValueError) as exc:
            logger.info("OpenAI model listing failed: %s", exc)

        raise UpstreamError(
            None, "Unable to list models; check the API key and endpoint URL."
        )

    async def _list_gemini_models(self, base_url: str) -> list[ModelInfo]:
        client = await self._get_http_client(base_url)
        response = await client.get(
            f"{base_url}/{self._settings.api_version}/models", params=self._params
        )
        if response.status_code >= 400:
            raise self._upstream_error(response.status_code, response.content)

        payload = response.json()
        models = payload.get("models") if isinstance(payload, dict) else None
        if not isinstance(models, list):
            raise ValueError("Invalid Gemini model listing")

        results: list[ModelInfo] = []
        for model in models:
            if not isinstance(model, dict) or not isinstance(model.get("name"), str):
                continue
            if "generateContent" not in (model.get("supportedGenerationMethods") or []):
                continue
            model_id = model["name"].removeprefix("models/")
            results.append(
                ModelInfo(
                    id=model_id,
                    name=model.get("displayName") or model_id,
                    description=model.get("description"),
                )
            )
        return results

    async def _list_openai_models(self, base_url: str) -> list[ModelInfo]:
        client = await self._get_http_client(base_url)
        api_key = self._settings.gemini_api_key.get_secret_value()
        response = await client.get(
            f"{base_url}/v1/models",
            headers={"Authorization": f"Bearer {api_key}"},
        )
        if response.status_code >= 400:
            raise self._upstream_error(response.status_code, response.content)

        payload = response.json()
        data = payload.get("data") if isinstance(payload, dict) else None
        if not isinstance(data, list):
            raise ValueError("Invalid OpenAI model listing")

        return [
            ModelInfo(
                id=model["id"],
                name=model["id"],
                description=f"by {model['owned_by']}" if model.get("owned_by") else None,
            )
            for model in data
            if isinstance(model, dict) and isinstance(model.get("id"), str)
        ]

    async def aclose(self) -> None:
        await self.__class__.aclose_shared()

    @classmethod
    async def aclose_shared(cls) -> None:
        async with cls._client_lock:
            clients = list(cls._client_pool.values())
            cls._client_pool.clear()
        for client in clients:
            try:
                await client.aclose()
            except Exception:  # pragma: no cover - best effort cleanup
                pass

    @classmethod
    def _upstream_error(cls, status_code: int, raw: bytes) -> UpstreamError:
        detail = cls._extract_error_detail(raw)
        status = detail.get("status") if isinstance(detail, dict) else None
        return UpstreamError(
            status_code, detail, status=status if isinstance(status, str) else None
        )

    @staticmethod
    def _extract_error_detail(raw: bytes) -> Any:
        if not raw:
            return "The backend returned an empty error response."
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError:
            text = raw.decode("utf-8", errors="ignore")
        try:
            payload = json.loads(text)
        except json.JSONDecodeError:
            return text
        if isinstance(payload, dict):
            return payload.get("error") or payload
        if isinstance(payload, list) and payload and isinstance(payload[0], dict):
            # Gemini sometimes wraps errors in a one-element array
            return payload[0].get("error") or payload[0]
        return payload


__all__ = ["GeminiClient", "ModelInfo", "UpstreamError", "is_official_endpoint"]
