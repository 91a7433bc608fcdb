"""Error types for tool turns and their mapping to caller-facing payloads."""

from typing import Any, Dict, Optional
from enum import Enum

import openai


DEFAULT_ERROR_MESSAGE = "An unexpected error occurred"


class ErrorCategory(str, Enum):
    """Categories of errors for better handling."""
    CONFIGURATION = "configuration"  # Missing credentials or settings
    SCHEMA_CONVERSION = "schema_conversion"  # Malformed OpenAPI document
    RESOLUTION = "resolution"  # Function name or path parameter cannot be resolved
    EXTERNAL_CALL = "external_call"  # External API returned an error or was unreachable
    MODEL_CALL = "model_call"  # The model provider failed


class ToolRelayError(Exception):
    """Base exception for all tool turn errors."""
    category: ErrorCategory = ErrorCategory.MODEL_CALL

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code or 500
        super().__init__(message)


class ConfigurationError(ToolRelayError):
    """Required configuration is missing. Fatal, raised before any model call."""
    category = ErrorCategory.CONFIGURATION


class SchemaConversionError(ToolRelayError):
    """An OpenAPI document could not be converted. Scoped to one tool source."""
    category = ErrorCategory.SCHEMA_CONVERSION


class ResolutionError(ToolRelayError):
    """A model-issued function call cannot be mapped back to a route. Fatal to the turn."""
    category = ErrorCategory.RESOLUTION


class ExternalCallError(ToolRelayError):
    """An external API call failed. Degrades into the tool result content."""
    category = ErrorCategory.EXTERNAL_CALL

    def to_tool_result(self) -> Dict[str, Any]:
        return {"error": self.message}


class ModelCallError(ToolRelayError):
    """The model-call capability failed. Fatal to the turn."""
    category = ErrorCategory.MODEL_CALL


def check_api_key(api_key: Optional[str], key_name: str) -> None:
    """Raise ConfigurationError when a provider credential is missing."""
    if not api_key:
        raise ConfigurationError(f"{key_name} API Key not found")


def wrap_llm_error(error: Exception, provider: str) -> ModelCallError:
    """
    Wrap LLM API errors into ModelCallError.

    Keeps the provider's own status code and error message when the SDK
    exposes them, so the caller sees e.g. a 401 for a revoked key.

    Args:
        error: Original exception
        provider: LLM provider name ('openai')

    Returns:
        ModelCallError carrying message and status code
    """
    if isinstance(error, ModelCallError):
        return error

    status_code = None
    message = None

    if isinstance(error, openai.APIStatusError):
        status_code = error.status_code
    if isinstance(error, openai.APIError):
        body = error.body
        if isinstance(body, dict):
            message = body.get("message")
        message = message or error.message
    if isinstance(error, openai.APITimeoutError):
        status_code = 504

    if not message:
        message = f"{provider} error: {error}"

    return ModelCallError(message, status_code=status_code)


def error_payload(error: Exception) -> Dict[str, Any]:
    """
    Render an exception as the caller-facing {message, code} payload.

    Only ToolRelayError messages are surfaced verbatim; anything else is
    reported with a generic message so internals do not leak.
    """
    if isinstance(error, ToolRelayError):
        return {"message": error.message, "code": error.status_code}
    return {"message": DEFAULT_ERROR_MESSAGE, "code": 500}
