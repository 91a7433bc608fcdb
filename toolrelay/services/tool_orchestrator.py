"""
Two-phase tool turn: let the model select tools, run them, stream the answer.

The first model call sees the functions of every selected tool source and
decides whether to call any. When it does, the calls are planned and
executed one after the other, each result is appended to the history as a
tool message, and a second streamed model call produces the final answer.
"""

import json
import logging
import time
from typing import Any, Dict, List, Optional, Sequence

from toolrelay.adapters.http_tool_client import HttpToolClient
from toolrelay.adapters.vendor_adapter_openai import OpenAIChatClient, build_openai_tools
from toolrelay.infra.metrics import llm_calls_total, llm_call_duration
from toolrelay.models.chat import ChatSettings, ToolCall, ToolTurnResult, TurnState
from toolrelay.models.tool import ToolSource
from toolrelay.services.request_planner import plan_request
from toolrelay.services.tool_execution_engine import RequestExecutor
from toolrelay.services.tool_registry import ToolRegistry

logger = logging.getLogger(__name__)


def decode_arguments(tool_call: ToolCall) -> Optional[Dict[str, Any]]:
    """
    Decode a tool call's arguments JSON.

    Returns None when the arguments are not a JSON object. Empty arguments
    decode to an empty object.
    """
    if not tool_call.arguments_json:
        return {}
    try:
        arguments = json.loads(tool_call.arguments_json)
    except ValueError:
        return None
    return arguments if isinstance(arguments, dict) else None


def build_tool_message(tool_call: ToolCall, data: Any) -> Dict[str, Any]:
    return {
        "tool_call_id": tool_call.id,
        "role": "tool",
        "name": tool_call.function_name,
        "content": json.dumps(data),
    }


async def _call_model(
    model_client: OpenAIChatClient,
    model: str,
    phase: str,
    messages: List[Dict[str, Any]],
    tools: Optional[List[Dict[str, Any]]] = None,
    stream: bool = False,
):
    start_time = time.time()
    try:
        result = await model_client.complete(model, messages, tools=tools, stream=stream)
    except Exception:
        llm_calls_total.labels(model=model, phase=phase, status="failure").inc()
        raise
    finally:
        llm_call_duration.labels(model=model, phase=phase).observe(time.time() - start_time)
    llm_calls_total.labels(model=model, phase=phase, status="success").inc()
    return result


async def run_tool_turn(
    settings: ChatSettings,
    messages: Sequence[Dict[str, Any]],
    tool_sources: Sequence[ToolSource],
    model_client: Optional[OpenAIChatClient] = None,
    http_client: Optional[HttpToolClient] = None,
) -> ToolTurnResult:
    """
    Run one tool turn.

    Args:
        settings: Chat settings selecting the model
        messages: Conversation so far, in OpenAI chat format. Not mutated.
        tool_sources: Selected tools (OpenAPI documents with custom headers)
        model_client: Model-call capability (defaults to OpenAIChatClient)
        http_client: HTTP-call capability used for external API calls

    Returns:
        ToolTurnResult with `content` when the model called no tools, or a
        `stream` of answer text chunks after executing the tool calls

    Raises:
        ConfigurationError: If the model credentials are missing
        ResolutionError: If a function call cannot be mapped to a route
        ModelCallError: If either model call fails
    """
    model_client = model_client or OpenAIChatClient()
    model_client.check_credentials()

    history: List[Dict[str, Any]] = list(messages)
    registry = ToolRegistry.build(tool_sources)
    tools = build_openai_tools(registry.all_functions())

    logger.info(
        f"Starting tool turn with {len(tools)} functions",
        extra={
            "model": settings.model,
            "state": TurnState.SELECTING.value,
            "tool_sources": len(tool_sources),
            "conversion_failures": len(registry.conversion_failures),
        },
    )

    assistant_message = await _call_model(
        model_client, settings.model, "selection", history, tools=tools or None
    )
    history.append(assistant_message)

    tool_calls = [ToolCall.from_message(tc) for tc in assistant_message.get("tool_calls") or []]
    if not tool_calls:
        logger.info("Model called no tools", extra={"state": TurnState.NO_TOOLS.value})
        return ToolTurnResult(
            state=TurnState.NO_TOOLS,
            messages=history,
            content=assistant_message.get("content") or "",
            conversion_failures=registry.conversion_failures,
        )

    logger.info(
        f"Executing {len(tool_calls)} tool calls",
        extra={"state": TurnState.EXECUTING.value, "functions": [tc.function_name for tc in tool_calls]},
    )

    executor = RequestExecutor(http_client)
    for tool_call in tool_calls:
        arguments = decode_arguments(tool_call)
        if arguments is None:
            logger.warning(f"Arguments for {tool_call.function_name} are not a JSON object")
            data: Any = {"error": f"Arguments for function {tool_call.function_name} are not a valid JSON object"}
        else:
            call = plan_request(tool_call.function_name, arguments, registry)
            data = await executor.execute(call)
        history.append(build_tool_message(tool_call, data))

    logger.info("Streaming final answer", extra={"state": TurnState.RESPONDING.value, "model": settings.model})
    stream = await _call_model(model_client, settings.model, "response", history, stream=True)

    return ToolTurnResult(
        state=TurnState.RESPONDING,
        messages=history,
        stream=stream,
        conversion_failures=registry.conversion_failures,
        tool_calls_executed=len(tool_calls),
    )
