"""Local language-model capability: protocols and an Ollama-backed implementation."""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from . import constants
from .errors import ModelSessionError, ModelUnavailableError

logger = logging.getLogger(__name__)

# Availability states reported by a LanguageModel
AVAILABLE = "available"
DOWNLOADABLE = "downloadable"
UNAVAILABLE = "unavailable"


class ModelSession(Protocol):
    async def clone(self) -> ModelSession: ...

    async def prompt(self, text: str) -> str: ...

    def destroy(self) -> None: ...


class LanguageModel(Protocol):
    async def availability(self) -> str | None: ...

    async def create(self, system_prompt: str) -> ModelSession: ...


class OllamaSession:
    """A chat history against a local Ollama model.

    Clones copy the history so prompts on a clone never reach the parent.
    """

    def __init__(self, model: OllamaLanguageModel, messages: list[dict[str, str]]) -> None:
        self._model = model
        self.messages = messages
        self.destroyed = False

    async def clone(self) -> OllamaSession:
        if self.destroyed:
            raise ModelSessionError("Session has been destroyed")
        return OllamaSession(self._model, [dict(m) for m in self.messages])

    async def prompt(self, text: str) -> str:
        if self.destroyed:
            raise ModelSessionError("Session has been destroyed")
        self.messages.append({"role": "user", "content": text})
        content = await self._model.chat(self.messages)
        self.messages.append({"role": "assistant", "content": content})
        return content

    def destroy(self) -> None:
        self.destroyed = True
        self.messages = []


class OllamaLanguageModel:
    """LanguageModel backed by an Ollama server on the local machine."""

    def __init__(
        self,
        base_url: str | None = None,
        model_name: str | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = (base_url or constants.OLLAMA_URL).rstrip("/")
        self.model_name = model_name or constants.OLLAMA_MODEL
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=constants.OLLAMA_HTTP_TIMEOUT)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def _has_model(self, names: list[str]) -> bool:
        wanted = self.model_name if ":" in self.model_name else f"{self.model_name}:latest"
        return self.model_name in names or wanted in names

    async def _installed_models(self) -> list[str]:
        resp = await self._client.get(f"{self.base_url}/api/tags")
        resp.raise_for_status()
        return [m.get("name", "") for m in resp.json().get("models", [])]

    async def availability(self) -> str | None:
        try:
            names = await self._installed_models()
        except (httpx.HTTPError, ValueError) as exc:
            logger.debug("Ollama not reachable at %s: %s", self.base_url, exc)
            return UNAVAILABLE
        return AVAILABLE if self._has_model(names) else DOWNLOADABLE

    async def create(self, system_prompt: str) -> OllamaSession:
        try:
            if not self._has_model(await self._installed_models()):
                logger.info("Pulling model %s", self.model_name)
                resp = await self._client.post(
                    f"{self.base_url}/api/pull",
                    json={"model": self.model_name, "stream": False},
                )
                resp.raise_for_status()
        except (httpx.HTTPError, ValueError) as exc:
            raise ModelUnavailableError(f"Cannot prepare model {self.model_name}: {exc}") from exc
        return OllamaSession(self, [{"role": "system", "content": system_prompt}])

    async def chat(self, messages: list[dict[str, str]]) -> str:
        payload = {"model": self.model_name, "messages": messages, "stream": False}
        try:
            resp = await self._client.post(f"{self.base_url}/api/chat", json=payload)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise ModelSessionError(f"Ollama chat failed: {exc}") from exc
        return (data.get("message") or {}).get("content", "")
