"""Tool execution engine that sends planned requests to external APIs."""

import json
import logging
import time
from typing import Any, Dict, Optional, Union

from toolrelay.adapters.http_tool_client import HttpToolClient
from toolrelay.infra.error_handler import ExternalCallError
from toolrelay.infra.metrics import tool_calls_total, tool_call_duration
from toolrelay.models.tool import ResolvedCall

logger = logging.getLogger(__name__)


def parse_custom_headers(custom_headers: Optional[Union[str, Dict[str, Any]]]) -> Dict[str, str]:
    """
    Parse a tool source's custom headers.

    Headers are stored as a JSON-encoded object. Anything that does not
    parse to an object is treated as "no custom headers" so a bad header
    configuration never aborts the tool call.
    """
    if not custom_headers:
        return {}

    if isinstance(custom_headers, dict):
        parsed: Any = custom_headers
    else:
        try:
            parsed = json.loads(custom_headers)
        except (TypeError, ValueError) as e:
            logger.warning(f"Ignoring custom headers that are not valid JSON: {e}")
            return {}

    if not isinstance(parsed, dict):
        logger.warning(f"Ignoring custom headers that are not a JSON object: {type(parsed).__name__}")
        return {}

    return {str(name): str(value) for name, value in parsed.items() if value is not None}


def build_headers(call: ResolvedCall) -> Dict[str, str]:
    """Default Content-Type in body mode, overridden by the source's custom headers."""
    headers: Dict[str, str] = {}
    if call.request_in_body:
        headers["Content-Type"] = "application/json"
    headers.update(parse_custom_headers(call.custom_headers))
    return headers


class RequestExecutor:
    """
    Executes ResolvedCalls and normalizes responses into tool result values.

    The returned value is always JSON-serializable, since it is inserted
    into the conversation as a tool message's content. External failures
    are returned as {"error": ...} instead of raised.
    """

    def __init__(self, http_client: Optional[HttpToolClient] = None):
        self.http_client = http_client or HttpToolClient()

    async def execute(self, call: ResolvedCall) -> Any:
        headers = build_headers(call)
        url = call.url
        start_time = time.time()

        logger.info(
            f"Making external API call ({call.method})",
            extra={"function_name": call.function_name, "method": call.method, "url": url},
        )

        try:
            response = await self.http_client.request(
                url,
                call.method,
                headers,
                body=call.body if call.request_in_body else None,
            )
            logger.info(
                "External API response",
                extra={"function_name": call.function_name, "status_code": response.status},
            )

            if not response.ok:
                raise ExternalCallError(response.status_text, status_code=response.status)

            if not response.content.strip():
                data: Any = {}
            else:
                try:
                    data = response.json()
                except ValueError as e:
                    raise ExternalCallError(f"Response from {call.function_name} is not valid JSON") from e
        except ExternalCallError as e:
            logger.warning(f"External API call for {call.function_name} failed: {e.message}")
            tool_calls_total.labels(tool_name=call.function_name, status="failure").inc()
            return e.to_tool_result()
        finally:
            tool_call_duration.labels(tool_name=call.function_name).observe(time.time() - start_time)

        tool_calls_total.labels(tool_name=call.function_name, status="success").inc()
        logger.debug("Data from external API", extra={"function_name": call.function_name, "data": data})
        return data
