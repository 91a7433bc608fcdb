from .tool import (
    ToolSource,
    FunctionDefinition,
    RouteMapEntry,
    SchemaInfo,
    ConvertedSchema,
    SchemaDetail,
    ConversionFailure,
    ResolvedCall,
)
from .chat import ChatSettings, ToolCall, TurnState, ToolTurnResult

__all__ = [
    "ToolSource",
    "FunctionDefinition",
    "RouteMapEntry",
    "SchemaInfo",
    "ConvertedSchema",
    "SchemaDetail",
    "ConversionFailure",
    "ResolvedCall",
    "ChatSettings",
    "ToolCall",
    "TurnState",
    "ToolTurnResult",
]
