import asyncio
import json
from types import SimpleNamespace

import httpx
import pytest

from services.completion_client import (
    CompletionConfig,
    GeminiCompletionService,
    classify_api_error,
    parse_json_response,
)
from services.errors import AuthError, PipelineError, TransportError


class FakeModels:
    def __init__(self, behaviour):
        self.behaviour = behaviour
        self.calls = []

    async def generate_content(self, model, contents, config):
        self.calls.append((model, contents, config))
        return await self.behaviour()


def _service_with(behaviour, timeout_seconds=5.0):
    service = GeminiCompletionService(api_key="test-key", model="test-model", timeout_seconds=timeout_seconds)
    models = FakeModels(behaviour)
    service._client = SimpleNamespace(aio=SimpleNamespace(models=models))
    return service, models


class TestParseJsonResponse:
    def test_plain_json(self):
        assert parse_json_response('{"a": 1}') == {"a": 1}

    def test_code_fence(self):
        text = '```json\n{"jobRequirements": [], "allKeywords": []}\n```'
        assert parse_json_response(text) == {"jobRequirements": [], "allKeywords": []}

    def test_bare_fence(self):
        assert parse_json_response('```\n{"a": 2}\n```') == {"a": 2}

    def test_not_json(self):
        with pytest.raises(json.JSONDecodeError):
            parse_json_response("Sorry, I cannot help with that.")

    def test_not_an_object(self):
        with pytest.raises(ValueError):
            parse_json_response("[1, 2, 3]")


class TestClassifyApiError:
    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504, 408])
    def test_retryable(self, status):
        err = classify_api_error(status, "boom")
        assert isinstance(err, TransportError)
        assert err.retryable is True

    def test_rate_limit_code(self):
        assert classify_api_error(429, "slow down").code == "RATE_LIMITED"

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth(self, status):
        err = classify_api_error(status, "bad key")
        assert isinstance(err, AuthError)
        assert err.retryable is False

    def test_other_client_error(self):
        err = classify_api_error(400, "bad request")
        assert type(err) is PipelineError
        assert err.retryable is False


@pytest.mark.asyncio
async def test_missing_api_key():
    service = GeminiCompletionService(api_key="")
    assert not service.is_configured
    with pytest.raises(AuthError) as exc:
        await service.complete("prompt", CompletionConfig())
    assert exc.value.code == "MISSING_API_KEY"


@pytest.mark.asyncio
async def test_complete_returns_text():
    async def ok():
        return SimpleNamespace(text='{"ok": true}')

    service, models = _service_with(ok)
    text = await service.complete("prompt", CompletionConfig(temperature=0.0, max_output_tokens=100))
    assert text == '{"ok": true}'
    model, contents, config = models.calls[0]
    assert model == "test-model"
    assert contents == "prompt"
    assert config.temperature == 0.0
    assert config.max_output_tokens == 100
    assert config.response_mime_type == "application/json"


@pytest.mark.asyncio
async def test_timeout_is_transport_error():
    async def slow():
        await asyncio.sleep(1)

    service, _ = _service_with(slow, timeout_seconds=0.01)
    with pytest.raises(TransportError) as exc:
        await service.complete("prompt", CompletionConfig())
    assert exc.value.code == "TIMEOUT"
    assert exc.value.retryable is True


@pytest.mark.asyncio
async def test_connection_error_is_transport_error():
    async def unreachable():
        raise httpx.ConnectError("connection refused")

    service, _ = _service_with(unreachable)
    with pytest.raises(TransportError) as exc:
        await service.complete("prompt", CompletionConfig())
    assert exc.value.code == "CONNECTION_ERROR"


@pytest.mark.asyncio
async def test_empty_response_is_transport_error():
    async def empty():
        return SimpleNamespace(text="  ")

    service, _ = _service_with(empty)
    with pytest.raises(TransportError) as exc:
        await service.complete("prompt", CompletionConfig())
    assert exc.value.code == "EMPTY_RESPONSE"
