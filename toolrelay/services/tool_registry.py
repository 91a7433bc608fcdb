"""Per-turn registry of the functions exposed by the selected tool sources."""

import logging
from typing import Dict, Iterable, List, Optional, Tuple

from toolrelay.infra.error_handler import SchemaConversionError
from toolrelay.infra.metrics import schema_conversions_total
from toolrelay.models.tool import (
    ConversionFailure,
    FunctionDefinition,
    RouteMapEntry,
    SchemaDetail,
    ToolSource,
)
from toolrelay.services.schema_converter import convert_openapi_schema, parse_openapi_document

logger = logging.getLogger(__name__)


def convert_tool_source(source: ToolSource) -> Tuple[SchemaDetail, List[FunctionDefinition]]:
    """
    Convert a single tool source into its SchemaDetail and functions.

    Raises:
        SchemaConversionError: If the source's document cannot be converted
    """
    converted = convert_openapi_schema(parse_openapi_document(source.openapi_schema))
    detail = SchemaDetail(
        title=converted.info.title,
        description=converted.info.description,
        base_url=converted.info.server,
        custom_headers=source.custom_headers,
        routes=tuple(converted.routes),
        request_in_body=converted.routes[0].request_in_body if converted.routes else False,
    )
    return detail, converted.functions


class ToolRegistry:
    """
    Combined function list and name lookup for one tool turn.

    Built once per turn from immutable inputs and never shared between
    requests. When two sources define the same function name the last
    registered source wins; overridden names are recorded in `collisions`.

    Usage:
        registry = ToolRegistry.build(tool_sources)
        functions = registry.all_functions()
        detail = registry.find_schema_detail_for("getWeather")
    """

    def __init__(self):
        self._functions: Dict[str, FunctionDefinition] = {}
        self._routes: Dict[str, Tuple[RouteMapEntry, SchemaDetail]] = {}
        self.schema_details: List[SchemaDetail] = []
        self.conversion_failures: List[ConversionFailure] = []
        self.collisions: List[str] = []

    @classmethod
    def build(cls, tool_sources: Iterable[ToolSource]) -> "ToolRegistry":
        """
        Convert every tool source and aggregate the results.

        A source whose document fails to convert is dropped and recorded as
        a ConversionFailure; the remaining sources are still registered.
        """
        registry = cls()
        for source in tool_sources:
            logger.info(f"Parsing tool: {source.name}")
            try:
                detail, functions = convert_tool_source(source)
            except SchemaConversionError as e:
                registry._record_failure(source, e.message)
                continue
            except (ValueError, TypeError, KeyError) as e:
                registry._record_failure(source, f"Invalid OpenAPI document: {e}")
                continue

            registry.register(detail, functions)
            schema_conversions_total.labels(status="success").inc()
            logger.debug(
                "Parsed schema detail",
                extra={
                    "tool_name": source.name,
                    "title": detail.title,
                    "base_url": detail.base_url,
                    "route_map": detail.route_map,
                    "request_in_body": detail.request_in_body,
                },
            )
        return registry

    def _record_failure(self, source: ToolSource, error: str) -> None:
        logger.warning(f"Error converting schema for tool {source.name}: {error}")
        schema_conversions_total.labels(status="failure").inc()
        self.conversion_failures.append(ConversionFailure(tool_name=source.name, error=error))

    def register(self, detail: SchemaDetail, functions: List[FunctionDefinition]) -> None:
        """Add one converted source. Later registrations override earlier names."""
        routes_by_name = {route.operation_id: route for route in detail.routes}
        for function in functions:
            route = routes_by_name.get(function.name)
            if route is None:
                # Converter output always pairs functions with routes
                logger.warning(f"Function {function.name} has no route in '{detail.title}', skipping")
                continue

            if function.name in self._functions:
                logger.warning(
                    f"Function name collision: {function.name} from '{detail.title}' overrides an earlier tool"
                )
                self.collisions.append(function.name)
                del self._functions[function.name]

            self._functions[function.name] = function
            self._routes[function.name] = (route, detail)

        self.schema_details.append(detail)

    def find_schema_detail_for(self, function_name: str) -> Optional[SchemaDetail]:
        entry = self._routes.get(function_name)
        return entry[1] if entry else None

    def find_route_for(self, function_name: str) -> Optional[RouteMapEntry]:
        entry = self._routes.get(function_name)
        return entry[0] if entry else None

    def find_path_template_for(self, function_name: str) -> Optional[str]:
        route = self.find_route_for(function_name)
        return route.path_template if route else None

    def all_functions(self) -> List[FunctionDefinition]:
        return list(self._functions.values())

    def __len__(self) -> int:
        return len(self._functions)
