"""Resolve a model-issued function call into a concrete HTTP request."""

import json
import re
from typing import Any, Dict, List, Set, Tuple
from urllib.parse import quote

from toolrelay.infra.error_handler import ResolutionError
from toolrelay.models.tool import ResolvedCall
from toolrelay.services.tool_registry import ToolRegistry

_PATH_PARAM = re.compile(r":([^/]+)")
_PARAM_NAME = re.compile(r"[\w-]+")

# Characters encodeURIComponent leaves untouched besides alphanumerics and -_.~
_URI_COMPONENT_SAFE = "!*'()"


def encode_path_value(value: Any) -> str:
    if isinstance(value, bool):
        value = "true" if value else "false"
    return quote(str(value), safe=_URI_COMPONENT_SAFE)


def render_path(path_template: str, parameters: Dict[str, Any], function_name: str) -> Tuple[str, Set[str]]:
    """
    Substitute every :param placeholder with its URL-encoded value.

    Placeholder names may contain "-" and ".", e.g. /users/:user-id. A
    placeholder followed by literal text in the same segment, e.g.
    /files/:name.json, falls back to its leading word when the whole token
    is not an argument.

    Returns:
        Tuple of (resolved path, names of the consumed parameters)

    Raises:
        ResolutionError: If a placeholder has no value in `parameters`
    """
    consumed: Set[str] = set()

    def substitute(match: "re.Match[str]") -> str:
        name, suffix = match.group(1), ""
        if name not in parameters:
            leading = _PARAM_NAME.match(name)
            if leading and leading.group(0) in parameters:
                name, suffix = leading.group(0), name[leading.end():]
        value = parameters.get(name)
        if value is None or value == "":
            raise ResolutionError(f"Parameter {name} not found for function {function_name}")
        consumed.add(name)
        return encode_path_value(value) + suffix

    return _PATH_PARAM.sub(substitute, path_template), consumed


def _query_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def build_query_params(parameters: Dict[str, Any], exclude: Set[str]) -> List[Tuple[str, str]]:
    """Query pairs in argument insertion order; lists repeat the key, None is dropped."""
    pairs: List[Tuple[str, str]] = []
    for name, value in parameters.items():
        if name in exclude or value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((name, _query_value(item)) for item in value if item is not None)
        else:
            pairs.append((name, _query_value(value)))
    return pairs


def plan_request(function_name: str, arguments: Dict[str, Any], registry: ToolRegistry) -> ResolvedCall:
    """
    Plan the HTTP request for one function call.

    Args:
        function_name: Function name emitted by the model
        arguments: Decoded arguments object ({"parameters": {...}, "requestBody": {...}})
        registry: The turn's ToolRegistry

    Returns:
        ResolvedCall ready for the RequestExecutor

    Raises:
        ResolutionError: If the function has no owning schema or route, or a
            path parameter is missing
    """
    schema_detail = registry.find_schema_detail_for(function_name)
    if schema_detail is None:
        raise ResolutionError(f"Function {function_name} not found in any schema")

    route = registry.find_route_for(function_name)
    if route is None:
        raise ResolutionError(f"Path for function {function_name} not found")
    path_template = route.path_template

    parameters = arguments.get("parameters")
    if not isinstance(parameters, dict):
        parameters = {}

    path, consumed = render_path(path_template, parameters, function_name)

    call = ResolvedCall(
        function_name=function_name,
        base_url=schema_detail.base_url,
        path=path,
        method="POST" if schema_detail.request_in_body else "GET",
        request_in_body=schema_detail.request_in_body,
        custom_headers=schema_detail.custom_headers,
    )

    if schema_detail.request_in_body:
        request_body = arguments.get("requestBody")
        call.body = request_body if request_body is not None else arguments
    else:
        call.query_params = build_query_params(parameters, exclude=consumed)

    return call
