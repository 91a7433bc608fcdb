"""Tool-calling chat API router."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse, StreamingResponse

from toolrelay.adapters.http_tool_client import HttpToolClient
from toolrelay.adapters.vendor_adapter_openai import OpenAIChatClient
from toolrelay.api.models import ErrorResponse, ToolTurnRequest
from toolrelay.infra.error_handler import ToolRelayError, error_payload
from toolrelay.models.chat import TurnState
from toolrelay.services.tool_orchestrator import run_tool_turn

logger = logging.getLogger(__name__)

router = APIRouter()

CONVERSION_FAILURES_HEADER = "X-Tool-Conversion-Failures"


def get_model_client() -> OpenAIChatClient:
    return OpenAIChatClient()


def get_http_client() -> HttpToolClient:
    return HttpToolClient()


@router.post(
    "/api/chat/tools",
    tags=["Tools"],
    responses={500: {"model": ErrorResponse}},
)
async def handle_tool_turn(
    request: ToolTurnRequest,
    model_client: OpenAIChatClient = Depends(get_model_client),
    http_client: HttpToolClient = Depends(get_http_client),
):
    """
    Run one tool-calling chat turn.

    The selected tools' OpenAPI documents are offered to the model as
    functions. If the model calls none of them its answer is returned as
    plain text. Otherwise the calls are executed against the external APIs
    and the final answer is streamed as text chunks.

    **Example Request:**
    ```json
    {
        "chatSettings": {"model": "gpt-4o-mini"},
        "messages": [{"role": "user", "content": "Weather in Rome?"}],
        "selectedTools": [{"name": "weather", "schema": "{...}", "custom_headers": "{}"}]
    }
    ```

    Tools whose documents could not be converted are skipped; their count
    is reported in the `X-Tool-Conversion-Failures` response header.
    """
    try:
        result = await run_tool_turn(
            request.chat_settings,
            request.messages,
            request.selected_tools,
            model_client=model_client,
            http_client=http_client,
        )
    except ToolRelayError as e:
        logger.error(f"Tool turn failed: {e.message}", extra={"category": e.category.value, "status_code": e.status_code})
        payload = error_payload(e)
        return JSONResponse(status_code=payload["code"], content={"message": payload["message"]})
    except Exception as e:
        logger.error(f"Tool turn failed: {e}", exc_info=True)
        payload = error_payload(e)
        return JSONResponse(status_code=payload["code"], content={"message": payload["message"]})

    headers = {CONVERSION_FAILURES_HEADER: str(len(result.conversion_failures))}
    if result.state == TurnState.RESPONDING:
        return StreamingResponse(result.stream, media_type="text/plain", headers=headers)
    return PlainTextResponse(result.content or "", headers=headers)
