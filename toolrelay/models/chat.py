"""Chat settings, tool calls and tool turn results."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Dict, List, Optional

from pydantic import BaseModel, Field

from toolrelay.models.tool import ConversionFailure


class ChatSettings(BaseModel):
    """Conversation settings selecting the model used for both calls."""
    model: str = Field(..., description="Model name, e.g. 'gpt-4o-mini'")


@dataclass(frozen=True)
class ToolCall:
    """A function call emitted by the model."""
    id: str
    function_name: str
    arguments_json: str

    @classmethod
    def from_message(cls, tool_call: Dict[str, Any]) -> "ToolCall":
        function = tool_call.get("function") or {}
        return cls(
            id=tool_call.get("id") or "",
            function_name=function.get("name") or "",
            arguments_json=(function.get("arguments") or "").strip(),
        )


class TurnState(str, Enum):
    """Orchestration states of a single tool turn."""
    SELECTING = "selecting"
    NO_TOOLS = "no_tools"
    EXECUTING = "executing"
    RESPONDING = "responding"


@dataclass
class ToolTurnResult:
    """
    Outcome of a tool turn.

    Exactly one of `content` (NO_TOOLS) or `stream` (RESPONDING) is set.
    `messages` is the turn's own history including the assistant tool
    selection message and one tool message per executed call.
    """
    state: TurnState
    messages: List[Dict[str, Any]]
    content: Optional[str] = None
    stream: Optional[AsyncIterator[str]] = None
    conversion_failures: List[ConversionFailure] = field(default_factory=list)
    tool_calls_executed: int = 0
