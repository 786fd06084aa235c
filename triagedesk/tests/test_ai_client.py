import json

import httpx
import pytest

from triagedesk.common.exceptions import ExternalServiceError, TextServiceUnavailableError
from triagedesk.integrations.ai_client import TextGenerationClient


def _client(handler, provider="openai"):
    return TextGenerationClient(provider=provider, transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_openai_chat_completion():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"content": '{"tone": "neutral"}'}}]})

    text = await _client(handler).generate("classify this", temperature=0.2, max_tokens=64)

    assert text == '{"tone": "neutral"}'
    assert seen["path"].endswith("/chat/completions")
    assert seen["auth"].startswith("Bearer ")
    assert seen["body"]["max_tokens"] == 64
    assert seen["body"]["messages"][-1] == {"role": "user", "content": "classify this"}


@pytest.mark.asyncio
async def test_ollama_generate():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": "hello", "done": True})

    text = await _client(handler, provider="ollama").generate("p", temperature=0.4, max_tokens=128)

    assert text == "hello"
    assert seen["path"] == "/api/generate"
    assert seen["body"]["stream"] is False
    assert seen["body"]["options"] == {"temperature": 0.4, "num_predict": 128}


@pytest.mark.asyncio
async def test_server_error_means_unavailable():
    client = _client(lambda request: httpx.Response(503, text="overloaded"))

    with pytest.raises(TextServiceUnavailableError):
        await client.generate("p", 0.2, 10)


@pytest.mark.asyncio
async def test_client_error_is_external_service_error():
    client = _client(lambda request: httpx.Response(400, json={"error": "bad request"}))

    with pytest.raises(ExternalServiceError) as exc_info:
        await client.generate("p", 0.2, 10)
    assert not isinstance(exc_info.value, TextServiceUnavailableError)


@pytest.mark.asyncio
@pytest.mark.parametrize("code", [401, 403, 408, 429])
async def test_rejected_or_throttled_means_unavailable(code):
    client = _client(lambda request: httpx.Response(code, json={"error": "nope"}))

    with pytest.raises(TextServiceUnavailableError) as exc_info:
        await client.generate("p", 0.2, 10)
    assert exc_info.value.status_code == 503
    assert f"HTTP {code}" in exc_info.value.detail


@pytest.mark.asyncio
async def test_connection_error_means_unavailable():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TextServiceUnavailableError):
        await _client(handler, provider="ollama").generate("p", 0.2, 10)


@pytest.mark.asyncio
async def test_read_timeout_is_a_timeout():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(TimeoutError):
        await _client(handler).generate("p", 0.2, 10)


@pytest.mark.asyncio
async def test_non_json_envelope_is_empty_text():
    client = _client(lambda request: httpx.Response(200, text="<html>oops</html>"))

    assert await client.generate("p", 0.2, 10) == ""


@pytest.mark.asyncio
async def test_mock_key_short_circuits():
    client = TextGenerationClient(provider="openai")

    assert client.mock is True
    assert await client.generate("anything", 0.2, 10) == ""
    assert await client.health_check() is True


@pytest.mark.asyncio
async def test_ollama_health_requires_model():
    def with_model(request):
        return httpx.Response(200, json={"models": [{"name": "llama3.1:8b"}]})

    def without_model(request):
        return httpx.Response(200, json={"models": [{"name": "mistral:7b"}]})

    assert await _client(with_model, "ollama").health_check() is True
    assert await _client(without_model, "ollama").health_check() is False
