"""Unit tests for the two-phase tool turn."""

import json
import pytest
import httpx
from unittest.mock import AsyncMock, MagicMock

from toolrelay.adapters.http_tool_client import HttpToolClient
from toolrelay.infra.error_handler import ConfigurationError, ModelCallError, ResolutionError
from toolrelay.models.chat import ChatSettings, TurnState
from toolrelay.models.tool import ToolSource
from toolrelay.services.tool_orchestrator import run_tool_turn


async def _text_stream(*chunks):
    for chunk in chunks:
        yield chunk


def _assistant_with_calls(*calls):
    return {
        "role": "assistant",
        "content": None,
        "tool_calls": [
            {
                "id": call_id,
                "type": "function",
                "function": {"name": name, "arguments": arguments},
            }
            for call_id, name, arguments in calls
        ],
    }


def _model_client(first_message, stream_chunks=("Done",)):
    """Model client whose first call returns `first_message` and second call streams text."""
    client = MagicMock()
    client.check_credentials = MagicMock()

    async def complete(model, messages, tools=None, stream=False):
        if stream:
            return _text_stream(*stream_chunks)
        return first_message

    client.complete = AsyncMock(side_effect=complete)
    return client


def _http_client(handler):
    return HttpToolClient(client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))


async def _collect(stream):
    return "".join([chunk async for chunk in stream])


class TestRunToolTurn:
    """Test orchestration states and history construction."""

    @pytest.fixture
    def settings(self):
        return ChatSettings(model="gpt-4o-mini")

    @pytest.fixture
    def weather_source(self, weather_schema):
        return ToolSource(name="weather", schema=json.dumps(weather_schema), custom_headers='{"X-Api-Key": "k"}')

    @pytest.mark.asyncio
    async def test_no_tool_calls_returns_content(self, settings, weather_source):
        model_client = _model_client({"role": "assistant", "content": "Hello there"})
        messages = [{"role": "user", "content": "Hi"}]

        result = await run_tool_turn(settings, messages, [weather_source], model_client=model_client)

        assert result.state == TurnState.NO_TOOLS
        assert result.content == "Hello there"
        assert result.stream is None
        assert model_client.complete.await_count == 1
        # Caller's history is untouched
        assert messages == [{"role": "user", "content": "Hi"}]

    @pytest.mark.asyncio
    async def test_first_call_offers_registry_tools(self, settings, weather_source):
        model_client = _model_client({"role": "assistant", "content": "Hi"})

        await run_tool_turn(settings, [{"role": "user", "content": "Hi"}], [weather_source], model_client=model_client)

        tools = model_client.complete.call_args.kwargs["tools"]
        assert [tool["function"]["name"] for tool in tools] == ["getWeather"]

    @pytest.mark.asyncio
    async def test_rome_weather_end_to_end(self, settings, weather_source):
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"tempC": 21})

        model_client = _model_client(
            _assistant_with_calls(("call_1", "getWeather", '{"parameters": {"city": "Rome"}}')),
            stream_chunks=("It is ", "21°C in Rome."),
        )

        result = await run_tool_turn(
            settings,
            [{"role": "user", "content": "Weather in Rome?"}],
            [weather_source],
            model_client=model_client,
            http_client=_http_client(handler),
        )

        assert result.state == TurnState.RESPONDING
        assert result.tool_calls_executed == 1
        assert str(requests[0].url) == "https://api.weather.test/v1/weather/Rome"
        assert requests[0].method == "GET"
        assert requests[0].headers["X-Api-Key"] == "k"

        tool_message = result.messages[-1]
        assert tool_message == {
            "tool_call_id": "call_1",
            "role": "tool",
            "name": "getWeather",
            "content": json.dumps({"tempC": 21}),
        }
        assert result.messages[1]["tool_calls"][0]["id"] == "call_1"
        assert await _collect(result.stream) == "It is 21°C in Rome."

        second_call = model_client.complete.call_args_list[1]
        assert second_call.kwargs["stream"] is True
        assert second_call.args[1][-1] == tool_message

    @pytest.mark.asyncio
    async def test_tool_results_follow_emission_order(self, settings, weather_source):
        def handler(request: httpx.Request) -> httpx.Response:
            city = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"city": city})

        model_client = _model_client(_assistant_with_calls(
            ("call_a", "getWeather", '{"parameters": {"city": "A"}}'),
            ("call_b", "getWeather", '{"parameters": {"city": "B"}}'),
        ))

        result = await run_tool_turn(
            settings, [], [weather_source], model_client=model_client, http_client=_http_client(handler)
        )

        tool_messages = [m for m in result.messages if m["role"] == "tool"]
        assert [m["tool_call_id"] for m in tool_messages] == ["call_a", "call_b"]
        assert [json.loads(m["content"]) for m in tool_messages] == [{"city": "A"}, {"city": "B"}]

    @pytest.mark.asyncio
    async def test_external_error_does_not_abort_turn(self, settings, weather_source):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503)

        model_client = _model_client(_assistant_with_calls(
            ("call_1", "getWeather", '{"parameters": {"city": "Rome"}}'),
        ))

        result = await run_tool_turn(
            settings, [], [weather_source], model_client=model_client, http_client=_http_client(handler)
        )

        assert result.state == TurnState.RESPONDING
        assert json.loads(result.messages[-1]["content"]) == {"error": "Service Unavailable"}
        assert model_client.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_unencodable_custom_header_does_not_abort_turn(self, settings, weather_schema):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"tempC": 21})

        source = ToolSource(name="weather", schema=json.dumps(weather_schema), custom_headers='{"X-City": "Zürich"}')
        model_client = _model_client(_assistant_with_calls(
            ("call_1", "getWeather", '{"parameters": {"city": "Zürich"}}'),
        ))

        result = await run_tool_turn(
            settings, [], [source], model_client=model_client, http_client=_http_client(handler)
        )

        assert result.state == TurnState.RESPONDING
        assert "cannot be encoded" in json.loads(result.messages[-1]["content"])["error"]
        assert model_client.complete.await_count == 2

    @pytest.mark.asyncio
    async def test_invalid_arguments_degrade_to_error_result(self, settings, weather_source):
        model_client = _model_client(_assistant_with_calls(("call_1", "getWeather", "{not json")))

        result = await run_tool_turn(settings, [], [weather_source], model_client=model_client)

        assert "error" in json.loads(result.messages[-1]["content"])
        assert result.state == TurnState.RESPONDING

    @pytest.mark.asyncio
    async def test_unknown_function_aborts_turn(self, settings, weather_source):
        model_client = _model_client(_assistant_with_calls(("call_1", "getForecast", "{}")))

        with pytest.raises(ResolutionError, match="Function getForecast not found in any schema"):
            await run_tool_turn(settings, [], [weather_source], model_client=model_client)

        assert model_client.complete.await_count == 1

    @pytest.mark.asyncio
    async def test_missing_path_parameter_aborts_turn(self, settings, weather_source):
        model_client = _model_client(_assistant_with_calls(("call_1", "getWeather", '{"parameters": {}}')))

        with pytest.raises(ResolutionError, match="Parameter city not found for function getWeather"):
            await run_tool_turn(settings, [], [weather_source], model_client=model_client)

    @pytest.mark.asyncio
    async def test_document_without_servers_offers_no_tools(self, settings, weather_schema):
        weather_schema.pop("servers")
        model_client = _model_client({"role": "assistant", "content": "No tools available"})

        result = await run_tool_turn(
            settings,
            [{"role": "user", "content": "Weather?"}],
            [ToolSource(name="weather", schema=json.dumps(weather_schema))],
            model_client=model_client,
        )

        assert model_client.complete.call_args.kwargs["tools"] is None
        assert [f.tool_name for f in result.conversion_failures] == ["weather"]
        assert result.state == TurnState.NO_TOOLS

    @pytest.mark.asyncio
    async def test_missing_credentials_raise_before_model_call(self, settings):
        model_client = _model_client({"role": "assistant", "content": "Hi"})
        model_client.check_credentials.side_effect = ConfigurationError("OpenAI API Key not found")

        with pytest.raises(ConfigurationError):
            await run_tool_turn(settings, [], [], model_client=model_client)

        model_client.complete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_model_failure_propagates(self, settings):
        model_client = _model_client({})
        model_client.complete = AsyncMock(side_effect=ModelCallError("Rate limit exceeded", status_code=429))

        with pytest.raises(ModelCallError) as exc_info:
            await run_tool_turn(settings, [], [], model_client=model_client)

        assert exc_info.value.status_code == 429
