"""Tests for the OpenAI client.

Tests cover:
- Thread, message and run calls send the expected requests
- Run status and message parsing
- Chat completions and vision requests
- Retry on 5xx/429/timeouts, no retry on 4xx, immediate auth failure
- Circuit breaker rejection
- Non-JSON success bodies become OpenAIError
- Unconfigured client

Uses httpx.MockTransport instead of network calls.
"""

import json
from collections.abc import Callable

import httpx
import pytest

from app.core.circuit_breaker import CircuitState
from app.integrations.openai_assistant import (
    OpenAIAuthError,
    OpenAICircuitOpenError,
    OpenAIClient,
    OpenAIError,
    OpenAIRateLimitError,
    OpenAITimeoutError,
)

Handler = Callable[[httpx.Request], httpx.Response]


def _client(handler: Handler, **kwargs) -> OpenAIClient:
    options = {
        "api_key": "sk-test",
        "base_url": "https://api.test/v1",
        "model": "gpt-test",
        "vision_model": "gpt-vision-test",
        "max_retries": 3,
        "retry_delay": 0.001,
    }
    options.update(kwargs)
    return OpenAIClient(transport=httpx.MockTransport(handler), **options)


def _chat_response(text: str) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "choices": [{"message": {"role": "assistant", "content": text}}],
            "usage": {"prompt_tokens": 12, "completion_tokens": 34},
        },
    )


class TestAssistantSession:
    async def test_create_thread_sends_beta_header(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"id": "thread_1"})

        client = _client(handler)
        thread_id = await client.create_thread()

        assert thread_id == "thread_1"
        assert seen[0].url.path == "/v1/threads"
        assert seen[0].headers["OpenAI-Beta"] == "assistants=v2"
        assert seen[0].headers["Authorization"] == "Bearer sk-test"
        await client.close()

    async def test_add_message_with_images_uses_content_parts(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "msg_1"})

        client = _client(handler)
        message_id = await client.add_message(
            "thread_1", "Schreibe einen Artikel", ["https://cdn.test/a.jpg"]
        )

        assert message_id == "msg_1"
        content = bodies[0]["content"]
        assert content[0] == {"type": "text", "text": "Schreibe einen Artikel"}
        assert content[1]["image_url"]["url"] == "https://cdn.test/a.jpg"

    async def test_add_message_without_images_sends_plain_text(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"id": "msg_2"})

        client = _client(handler)
        await client.add_message("thread_1", "Nur Text")

        assert bodies[0] == {"role": "user", "content": "Nur Text"}

    async def test_run_status_parsing(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            if request.method == "POST":
                assert json.loads(request.content) == {"assistant_id": "asst_1"}
                return httpx.Response(200, json={"id": "run_1", "status": "queued"})
            return httpx.Response(
                200,
                json={
                    "id": "run_1",
                    "status": "failed",
                    "last_error": {"code": "server_error", "message": "Model overloaded"},
                },
            )

        client = _client(handler)
        run = await client.create_run("thread_1", "asst_1")
        polled = await client.get_run("thread_1", run.id)

        assert run.status == "queued"
        assert not run.is_completed and not run.is_failed
        assert polled.is_failed
        assert polled.last_error == "Model overloaded"

    async def test_list_messages_flattens_text_parts(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["order"] == "desc"
            return httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "role": "assistant",
                            "content": [
                                {"type": "text", "text": {"value": "Teil 1"}},
                                {"type": "image_file", "image_file": {"file_id": "f"}},
                                {"type": "text", "text": {"value": "Teil 2"}},
                            ],
                        },
                        {"role": "user", "content": [{"type": "text", "text": {"value": "Frage"}}]},
                    ]
                },
            )

        client = _client(handler)
        messages = await client.list_messages("thread_1")

        assert [m.role for m in messages] == ["assistant", "user"]
        assert messages[0].text == "Teil 1\nTeil 2"

    async def test_get_assistant_instructions(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/v1/assistants/asst_1"
            return httpx.Response(200, json={"id": "asst_1", "instructions": "Be warm."})

        client = _client(handler)

        assert await client.get_assistant_instructions("asst_1") == "Be warm."


class TestCompletions:
    async def test_complete_success(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return _chat_response("Hallo Wien")

        client = _client(handler)
        result = await client.complete("Prompt", system_prompt="System", temperature=0.7)

        assert result.success
        assert result.text == "Hallo Wien"
        assert result.prompt_tokens == 12
        assert bodies[0]["model"] == "gpt-test"
        assert bodies[0]["messages"][0] == {"role": "system", "content": "System"}
        assert bodies[0]["temperature"] == 0.7

    async def test_empty_completion_is_failure(self) -> None:
        client = _client(lambda request: _chat_response("   "))

        result = await client.complete("Prompt")

        assert not result.success
        assert result.error == "Empty completion"

    async def test_analyze_images_uses_vision_model(self) -> None:
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return _chat_response("SESSION TYPE: newborn")

        client = _client(handler)
        result = await client.analyze_images(["data:image/jpeg;base64,AAAA"], "Describe")

        assert result.success
        body = bodies[0]
        assert body["model"] == "gpt-vision-test"
        assert body["temperature"] == 0.2
        parts = body["messages"][0]["content"]
        assert parts[1]["image_url"] == {"url": "data:image/jpeg;base64,AAAA", "detail": "low"}

    async def test_completion_error_returns_failed_result(self) -> None:
        client = _client(
            lambda request: httpx.Response(400, json={"error": {"message": "Bad model"}})
        )

        result = await client.complete("Prompt")

        assert not result.success
        assert result.status_code == 400
        assert "Bad model" in (result.error or "")


class TestRetriesAndErrors:
    async def test_retries_server_errors_then_succeeds(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] < 3:
                return httpx.Response(503, json={"error": {"message": "busy"}})
            return httpx.Response(200, json={"id": "thread_9"})

        client = _client(handler)

        assert await client.create_thread() == "thread_9"
        assert calls["count"] == 3

    async def test_server_errors_exhaust_retries(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(500, text="oops")

        client = _client(handler, max_retries=2)

        with pytest.raises(OpenAIError) as exc_info:
            await client.create_thread()

        assert exc_info.value.status_code == 500
        assert calls["count"] == 2

    async def test_client_error_not_retried(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(404, json={"error": {"message": "No thread"}})

        client = _client(handler)

        with pytest.raises(OpenAIError, match="No thread"):
            await client.get_run("thread_x", "run_x")
        assert calls["count"] == 1

    async def test_auth_error_raised_immediately(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(401, json={"error": {"message": "bad key"}})

        client = _client(handler)

        with pytest.raises(OpenAIAuthError):
            await client.create_thread()
        assert calls["count"] == 1

    async def test_rate_limit_after_retries(self) -> None:
        client = _client(
            lambda request: httpx.Response(429, headers={"retry-after": "0"}), max_retries=2
        )

        with pytest.raises(OpenAIRateLimitError):
            await client.create_thread()

    async def test_timeout_after_retries(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        client = _client(handler, max_retries=2)

        with pytest.raises(OpenAITimeoutError):
            await client.create_thread()

    async def test_open_circuit_blocks_requests(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(200, json={"id": "thread_1"})

        client = _client(handler)
        for _ in range(client.circuit_breaker._config.failure_threshold):
            await client.circuit_breaker.record_failure()
        assert client.circuit_breaker.state == CircuitState.OPEN

        with pytest.raises(OpenAICircuitOpenError):
            await client.create_thread()
        assert calls["count"] == 0

    async def test_unconfigured_client_raises(self) -> None:
        client = _client(lambda request: httpx.Response(200, json={}), api_key=None)
        client._available = False

        assert client.available is False
        with pytest.raises(OpenAIError, match="not configured"):
            await client.create_thread()


class TestInvalidResponseBodies:
    async def test_non_json_success_body_raises_openai_error(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            return httpx.Response(200, text="<html>Bad Gateway</html>")

        client = _client(handler, max_retries=2)

        with pytest.raises(OpenAIError, match="Invalid JSON response") as exc_info:
            await client.get_run("thread_1", "run_1")

        assert exc_info.value.status_code == 200
        assert calls["count"] == 2

    async def test_non_object_body_is_invalid(self) -> None:
        client = _client(lambda request: httpx.Response(200, json=["not", "an", "object"]))

        with pytest.raises(OpenAIError, match="Invalid JSON response"):
            await client.create_thread()

    async def test_non_json_body_recovers_on_retry(self) -> None:
        calls = {"count": 0}

        def handler(request: httpx.Request) -> httpx.Response:
            calls["count"] += 1
            if calls["count"] == 1:
                return httpx.Response(200, text="upstream proxy page")
            return httpx.Response(200, json={"id": "thread_2"})

        client = _client(handler)

        assert await client.create_thread() == "thread_2"

    async def test_non_json_completion_returns_failed_result(self) -> None:
        client = _client(lambda request: httpx.Response(200, text="<html></html>"), max_retries=1)

        result = await client.complete("Prompt")

        assert not result.success
        assert "Invalid JSON response" in (result.error or "")
