"""Tests for the Ollama-backed language model."""

import json

import httpx
import pytest

from sender_trust.errors import ModelSessionError, ModelUnavailableError
from sender_trust.llm import AVAILABLE, DOWNLOADABLE, UNAVAILABLE, OllamaLanguageModel


class FakeOllama:
    """Minimal Ollama HTTP API served through httpx.MockTransport."""

    def __init__(self, models=None, pull_status=200, chat_status=200, reply="{}"):
        self.models = list(models or [])
        self.pull_status = pull_status
        self.chat_status = chat_status
        self.reply = reply
        self.requests: list[tuple[str, dict | None]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        self.requests.append((request.url.path, body))
        if request.url.path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": n} for n in self.models]})
        if request.url.path == "/api/pull":
            if self.pull_status == 200:
                self.models.append(body["model"])
            return httpx.Response(self.pull_status, json={"status": "success"})
        if request.url.path == "/api/chat":
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": "boom"})
            return httpx.Response(200, json={"message": {"role": "assistant", "content": self.reply}})
        return httpx.Response(404)


def make_model(server: FakeOllama, model_name: str = "llama3.2") -> OllamaLanguageModel:
    client = httpx.AsyncClient(transport=httpx.MockTransport(server))
    return OllamaLanguageModel(base_url="http://ollama.test/", model_name=model_name, client=client)


@pytest.mark.asyncio
async def test_availability_with_latest_tag():
    model = make_model(FakeOllama(models=["llama3.2:latest"]))
    assert await model.availability() == AVAILABLE


@pytest.mark.asyncio
async def test_availability_with_explicit_tag():
    model = make_model(FakeOllama(models=["qwen2.5:7b"]), model_name="qwen2.5:7b")
    assert await model.availability() == AVAILABLE


@pytest.mark.asyncio
async def test_availability_downloadable():
    model = make_model(FakeOllama(models=["mistral:latest"]))
    assert await model.availability() == DOWNLOADABLE


@pytest.mark.asyncio
async def test_availability_unreachable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    model = OllamaLanguageModel(base_url="http://ollama.test", client=client)
    assert await model.availability() == UNAVAILABLE


@pytest.mark.asyncio
async def test_create_pulls_missing_model():
    server = FakeOllama()
    model = make_model(server)

    session = await model.create("rubric")

    assert ("/api/pull", {"model": "llama3.2", "stream": False}) in server.requests
    assert session.messages == [{"role": "system", "content": "rubric"}]


@pytest.mark.asyncio
async def test_create_skips_pull_when_installed():
    server = FakeOllama(models=["llama3.2:latest"])
    await make_model(server).create("rubric")
    assert [path for path, _ in server.requests] == ["/api/tags"]


@pytest.mark.asyncio
async def test_create_fails_when_pull_fails():
    model = make_model(FakeOllama(pull_status=500))
    with pytest.raises(ModelUnavailableError):
        await model.create("rubric")


@pytest.mark.asyncio
async def test_clone_prompt_does_not_touch_parent():
    server = FakeOllama(models=["llama3.2:latest"], reply='{"verdict":"Ok"}')
    session = await make_model(server).create("rubric")

    clone = await session.clone()
    reply = await clone.prompt("Subject: hi")

    assert reply == '{"verdict":"Ok"}'
    assert session.messages == [{"role": "system", "content": "rubric"}]
    assert [m["role"] for m in clone.messages] == ["system", "user", "assistant"]
    _path, body = server.requests[-1]
    assert body["messages"][-1] == {"role": "user", "content": "Subject: hi"}
    assert body["stream"] is False


@pytest.mark.asyncio
async def test_destroyed_session_rejects_use():
    session = await make_model(FakeOllama(models=["llama3.2:latest"])).create("rubric")
    session.destroy()

    with pytest.raises(ModelSessionError):
        await session.clone()
    with pytest.raises(ModelSessionError):
        await session.prompt("hi")


@pytest.mark.asyncio
async def test_chat_http_error():
    session = await make_model(FakeOllama(models=["llama3.2:latest"], chat_status=500)).create("r")
    with pytest.raises(ModelSessionError):
        await session.prompt("hi")
