"""API request/response models."""

from typing import List, Dict, Any
from pydantic import BaseModel, Field

from toolrelay.models.chat import ChatSettings
from toolrelay.models.tool import ToolSource


# ============================================================================
# Tool Turn Models
# ============================================================================

class ToolTurnRequest(BaseModel):
    """Request model for a tool-calling chat turn, as sent by the chat UI."""
    chat_settings: ChatSettings = Field(..., alias="chatSettings", description="Model selection")
    messages: List[Dict[str, Any]] = Field(..., description="Conversation so far, in OpenAI chat format")
    selected_tools: List[ToolSource] = Field(
        default_factory=list,
        alias="selectedTools",
        description="Tools the user selected for this turn",
    )

    model_config = {"populate_by_name": True}  # Allow both camelCase and snake_case


class ErrorResponse(BaseModel):
    """Error body returned when a tool turn fails."""
    message: str = Field(..., json_schema_extra={"example": "OpenAI API Key not found"})
