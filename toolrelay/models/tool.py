"""Tool source, function definition and route models."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union
from urllib.parse import urlencode

from pydantic import BaseModel, Field


class ToolSource(BaseModel):
    """One user-selected tool: an OpenAPI document plus optional custom headers."""
    name: str = Field(default="", description="Display name of the tool")
    openapi_schema: str = Field(..., alias="schema", description="Raw OpenAPI document (JSON or YAML text)")
    custom_headers: Optional[Union[str, Dict[str, Any]]] = Field(
        default=None,
        description="Custom HTTP headers, usually a JSON-encoded object. Parsed lazily at call time.",
    )

    model_config = {"populate_by_name": True}  # Allow both 'schema' and 'openapi_schema'


class FunctionDefinition(BaseModel):
    """A callable unit exposed to the model, derived 1:1 from an OpenAPI operation."""
    name: str = Field(..., description="Operation identifier")
    description: str = Field(default="", description="Operation description or summary")
    parameters: Dict[str, Any] = Field(..., description="JSON Schema for the arguments object")


@dataclass(frozen=True)
class RouteMapEntry:
    """Path template (colon convention, e.g. /users/:id) mapped to an operation id."""
    path_template: str
    operation_id: str
    method: str
    request_in_body: bool


@dataclass(frozen=True)
class SchemaInfo:
    title: str
    description: str
    server: str


@dataclass
class ConvertedSchema:
    """Output of converting a single OpenAPI document."""
    info: SchemaInfo
    functions: List[FunctionDefinition] = field(default_factory=list)
    routes: List[RouteMapEntry] = field(default_factory=list)


@dataclass(frozen=True)
class SchemaDetail:
    """Per tool source bundle used to execute its operations."""
    title: str
    description: str
    base_url: str
    custom_headers: Optional[Union[str, Dict[str, Any]]]
    routes: Tuple[RouteMapEntry, ...]
    request_in_body: bool

    @property
    def route_map(self) -> Dict[str, str]:
        """Path template -> operation id."""
        return {route.path_template: route.operation_id for route in self.routes}


@dataclass(frozen=True)
class ConversionFailure:
    """A tool source that was dropped because its document could not be converted."""
    tool_name: str
    error: str


@dataclass
class ResolvedCall:
    """A concrete HTTP request planned from a model-issued function call."""
    function_name: str
    base_url: str
    path: str
    method: str
    request_in_body: bool
    custom_headers: Optional[Union[str, Dict[str, Any]]] = None
    body: Any = None
    query_params: List[Tuple[str, str]] = field(default_factory=list)

    @property
    def query_string(self) -> str:
        return urlencode(self.query_params)

    @property
    def url(self) -> str:
        query = self.query_string
        return self.base_url + self.path + ("?" + query if query else "")
