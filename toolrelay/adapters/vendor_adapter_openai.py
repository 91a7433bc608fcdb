"""OpenAI vendor adapter for Chat Completions with function calling."""

import logging
from typing import Any, AsyncIterator, Dict, List, Optional

from openai import AsyncOpenAI

from toolrelay.infra.config import config
from toolrelay.infra.error_handler import check_api_key, wrap_llm_error
from toolrelay.models.tool import FunctionDefinition

logger = logging.getLogger(__name__)


def build_openai_tools(functions: List[FunctionDefinition]) -> List[Dict[str, Any]]:
    """
    Convert FunctionDefinition objects to OpenAI tool schema.

    Args:
        functions: Function definitions from the ToolRegistry

    Returns:
        List of OpenAI tool dicts in OpenAI format
    """
    openai_tools = []
    for function in functions:
        openai_tool = {
            "type": "function",
            "function": {
                "name": function.name,
                "description": function.description,
                "parameters": function.parameters or {"type": "object", "properties": {}},
            }
        }
        openai_tools.append(openai_tool)
    return openai_tools


def message_to_dict(message: Any) -> Dict[str, Any]:
    """
    Standardize an SDK assistant message into a history-ready dict.

    `tool_calls` is only present when the model emitted at least one call,
    since the API rejects an empty tool_calls list in history.
    """
    result: Dict[str, Any] = {
        "role": message.role or "assistant",
        "content": message.content,
    }
    if message.tool_calls:
        result["tool_calls"] = [
            {
                "id": tc.id,
                "type": tc.type,
                "function": {
                    "name": tc.function.name,
                    "arguments": tc.function.arguments,
                }
            }
            for tc in message.tool_calls
        ]
    return result


class OpenAIChatClient:
    """Model-call capability backed by the OpenAI Chat Completions API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        organization: Optional[str] = None,
        base_url: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._api_key = api_key or config.OPENAI_API_KEY
        self._organization = organization or config.OPENAI_ORGANIZATION_ID
        self._base_url = base_url or config.OPENAI_BASE_URL
        self._client = client

    def check_credentials(self) -> None:
        """Raise ConfigurationError when no API key is configured."""
        if self._client is None:
            check_api_key(self._api_key, "OpenAI")

    @property
    def client(self) -> AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            self.check_credentials()
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                organization=self._organization,
                base_url=self._base_url,
                timeout=config.LLM_CALL_TIMEOUT,
            )
        return self._client

    async def complete(
        self,
        model: str,
        messages: List[Dict[str, Any]],
        tools: Optional[List[Dict[str, Any]]] = None,
        stream: bool = False,
    ):
        """
        Call Chat Completions.

        Args:
            model: Model name
            messages: Conversation history in OpenAI format
            tools: OpenAI tool dicts; omitted from the request when empty
            stream: Stream the answer as text chunks

        Returns:
            The assistant message as a dict, or an async iterator of text
            chunks when `stream` is True

        Raises:
            ConfigurationError: If no API key is configured
            ModelCallError: If the API call fails
        """
        client = self.client

        request_params: Dict[str, Any] = {
            "model": model,
            "messages": messages,
        }
        if tools:
            request_params["tools"] = tools
        if stream:
            request_params["stream"] = True

        try:
            response = await client.chat.completions.create(**request_params)
        except Exception as e:
            raise wrap_llm_error(e, "openai") from e

        if stream:
            return self._iter_text(response)

        if not response.choices:
            raise wrap_llm_error(ValueError("response contained no choices"), "openai")
        return message_to_dict(response.choices[0].message)

    async def _iter_text(self, response: Any) -> AsyncIterator[str]:
        """Yield the text deltas of a streamed completion."""
        try:
            async for chunk in response:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta
                if delta is not None and delta.content:
                    yield delta.content
        except Exception as e:
            raise wrap_llm_error(e, "openai") from e
