"""Convert OpenAPI documents into model-callable function definitions."""

import json
import logging
import re
from copy import deepcopy
from typing import Any, Dict, List, Optional, Union

import yaml

from toolrelay.infra.error_handler import SchemaConversionError
from toolrelay.models.tool import ConvertedSchema, FunctionDefinition, RouteMapEntry, SchemaInfo

logger = logging.getLogger(__name__)

HTTP_METHODS = ("get", "put", "post", "delete", "options", "head", "patch", "trace")
BODY_METHODS = {"post", "put", "patch"}
JSON_CONTENT_TYPES = ("application/json",)

# OpenAI function names: ^[a-zA-Z0-9_-]{1,64}$
MAX_FUNCTION_NAME_LENGTH = 64
_INVALID_NAME_CHARS = re.compile(r"[^a-zA-Z0-9_-]+")
_TEMPLATE_PARAM = re.compile(r"{([^{}/]+)}")


def parse_openapi_document(raw: Union[str, bytes, Dict[str, Any]]) -> Dict[str, Any]:
    """
    Parse raw OpenAPI text into a dict.

    JSON is tried first, then YAML.

    Raises:
        SchemaConversionError: If the text is empty or neither JSON nor YAML
            describing a mapping
    """
    if isinstance(raw, dict):
        return raw

    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8")

    if not raw or not raw.strip():
        raise SchemaConversionError("OpenAPI document is empty")

    try:
        document = json.loads(raw)
    except json.JSONDecodeError:
        try:
            document = yaml.safe_load(raw)
        except yaml.YAMLError as e:
            raise SchemaConversionError(f"OpenAPI document is neither valid JSON nor YAML: {e}") from e

    if not isinstance(document, dict):
        raise SchemaConversionError("OpenAPI document must be an object")
    return document


def to_path_template(path: str) -> str:
    """Rewrite OpenAPI placeholders to the colon convention: /users/{id} -> /users/:id."""
    return _TEMPLATE_PARAM.sub(r":\1", path)


def normalize_function_name(name: str) -> str:
    """Make a name acceptable as a model function name."""
    cleaned = _INVALID_NAME_CHARS.sub("_", name).strip("_")
    return cleaned[:MAX_FUNCTION_NAME_LENGTH]


def synthesize_operation_id(method: str, path: str) -> str:
    """Deterministic identifier for operations without operationId: GET /users/{id} -> get_users_id."""
    return normalize_function_name(f"{method.lower()}_{path.strip('/')}")


def resolve_local_refs(document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Return a copy of the document with local JSON-Pointer $ref entries expanded.

    Only refs starting with "#/" are resolved; sibling keys of a $ref node are
    merged onto the resolved target. External refs and cyclic refs are left
    as-is.
    """
    root = deepcopy(document)

    def resolve_pointer(parts: List[str]) -> Optional[Any]:
        current: Any = root
        for part in parts:
            part = part.replace("~1", "/").replace("~0", "~")
            if isinstance(current, dict) and part in current:
                current = current[part]
            else:
                return None
        return current

    def walk(node: Any, chain: frozenset) -> Any:
        if isinstance(node, list):
            return [walk(item, chain) for item in node]
        if not isinstance(node, dict):
            return node

        ref = node.get("$ref")
        if isinstance(ref, str) and ref.startswith("#/"):
            if ref in chain:
                return node
            target = resolve_pointer(ref[2:].split("/"))
            if target is None:
                logger.debug(f"Unresolvable $ref left in place: {ref}")
                return node
            replacement = deepcopy(target)
            if isinstance(replacement, dict):
                for key, value in node.items():
                    if key != "$ref":
                        replacement[key] = value
            return walk(replacement, chain | {ref})

        return {key: walk(value, chain) for key, value in node.items()}

    return walk(root, frozenset())


def extract_server_url(document: Dict[str, Any]) -> str:
    """
    Base URL from the first usable server declaration, with variable defaults applied.

    Raises:
        SchemaConversionError: If no server URL is declared
    """
    servers = document.get("servers") or []
    if isinstance(servers, dict):
        servers = [servers]

    if isinstance(servers, list):
        for server in servers:
            if isinstance(server, str) and server:
                return server.rstrip("/")
            if not isinstance(server, dict) or not server.get("url"):
                continue
            url = server["url"]
            variables = server.get("variables") or {}
            if isinstance(variables, dict):
                for key, meta in variables.items():
                    default = meta.get("default") if isinstance(meta, dict) else None
                    if default is not None:
                        url = url.replace(f"{{{key}}}", str(default))
            return url.rstrip("/")

    raise SchemaConversionError("OpenAPI document does not declare a server URL")


def _merge_parameters(path_level: Any, operation_level: Any) -> List[Dict[str, Any]]:
    """Operation-level parameters override path-level ones with the same (name, in)."""
    merged: Dict[tuple, Dict[str, Any]] = {}
    for params in (path_level, operation_level):
        if not isinstance(params, list):
            continue
        for param in params:
            if not isinstance(param, dict) or not param.get("name"):
                continue
            merged[(param["name"], param.get("in", "query"))] = param
    return list(merged.values())


def _request_body_schema(operation: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    request_body = operation.get("requestBody")
    if not isinstance(request_body, dict):
        return None
    content = request_body.get("content") or {}
    if not isinstance(content, dict):
        return None

    for content_type in JSON_CONTENT_TYPES:
        media = content.get(content_type)
        if isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return media["schema"]

    # Fall back to any JSON-ish media type, e.g. application/merge-patch+json
    for content_type, media in content.items():
        if "json" in content_type and isinstance(media, dict) and isinstance(media.get("schema"), dict):
            return media["schema"]
    return None


def _build_parameters_schema(
    path: str,
    parameters: List[Dict[str, Any]],
    body_schema: Optional[Dict[str, Any]],
    body_required: bool,
) -> Dict[str, Any]:
    """
    Flatten path/query parameters and the request body into one arguments object.

    The model emits {"parameters": {...}, "requestBody": {...}}; the planner
    later splits the two again.
    """
    param_properties: Dict[str, Any] = {}
    required: List[str] = []
    for param in parameters:
        location = param.get("in", "query")
        if location not in ("path", "query"):
            continue
        name = param["name"]
        schema = deepcopy(param["schema"]) if isinstance(param.get("schema"), dict) else {"type": "string"}
        if param.get("description") and "description" not in schema:
            schema["description"] = param["description"]
        param_properties[name] = schema
        if param.get("required") or location == "path":
            required.append(name)

    # Placeholders used in the path but never declared still have to be filled
    for name in _TEMPLATE_PARAM.findall(path):
        if name not in param_properties:
            param_properties[name] = {"type": "string"}
            required.append(name)

    properties: Dict[str, Any] = {}
    required_top: List[str] = []
    if param_properties:
        parameters_schema: Dict[str, Any] = {"type": "object", "properties": param_properties}
        if required:
            parameters_schema["required"] = required
            required_top.append("parameters")
        properties["parameters"] = parameters_schema

    if body_schema:
        properties["requestBody"] = body_schema
        if body_required:
            required_top.append("requestBody")

    schema: Dict[str, Any] = {"type": "object", "properties": properties}
    if required_top:
        schema["required"] = required_top
    return schema


def convert_openapi_schema(document: Dict[str, Any]) -> ConvertedSchema:
    """
    Convert one parsed OpenAPI document into functions, routes and server info.

    Every path + HTTP method pair becomes exactly one FunctionDefinition and
    one RouteMapEntry sharing the same operation id.

    Raises:
        SchemaConversionError: If the document has no server URL, a malformed
            `paths` section, or duplicate operation ids
    """
    if not isinstance(document, dict):
        raise SchemaConversionError("OpenAPI document must be an object")

    server = extract_server_url(document)

    paths = document.get("paths")
    if paths is None:
        paths = {}
    if not isinstance(paths, dict):
        raise SchemaConversionError("OpenAPI 'paths' must be an object")

    resolved = resolve_local_refs(document)
    resolved_paths = resolved.get("paths") or {}

    info = resolved.get("info") if isinstance(resolved.get("info"), dict) else {}
    converted = ConvertedSchema(
        info=SchemaInfo(
            title=info.get("title") or "",
            description=info.get("description") or "",
            server=server,
        )
    )

    seen_ids = set()
    for path, path_item in resolved_paths.items():
        if not isinstance(path_item, dict):
            raise SchemaConversionError(f"Path item for '{path}' must be an object")

        for method in HTTP_METHODS:
            operation = path_item.get(method)
            if operation is None:
                continue
            if not isinstance(operation, dict):
                raise SchemaConversionError(f"Operation {method.upper()} {path} must be an object")

            raw_id = operation.get("operationId")
            operation_id = normalize_function_name(raw_id) if raw_id else synthesize_operation_id(method, path)
            if not operation_id:
                operation_id = synthesize_operation_id(method, path)
            if operation_id in seen_ids:
                raise SchemaConversionError(f"Duplicate operationId '{operation_id}' in OpenAPI document")
            seen_ids.add(operation_id)

            parameters = _merge_parameters(path_item.get("parameters"), operation.get("parameters"))
            body_schema = _request_body_schema(operation)
            request_body = operation.get("requestBody")
            body_required = isinstance(request_body, dict) and bool(request_body.get("required"))

            converted.functions.append(
                FunctionDefinition(
                    name=operation_id,
                    description=operation.get("description") or operation.get("summary") or "",
                    parameters=_build_parameters_schema(path, parameters, body_schema, body_required),
                )
            )
            converted.routes.append(
                RouteMapEntry(
                    path_template=to_path_template(path),
                    operation_id=operation_id,
                    method=method.upper(),
                    request_in_body=method in BODY_METHODS or "requestBody" in operation,
                )
            )

    if not converted.routes:
        logger.warning(f"OpenAPI document '{converted.info.title}' defines no operations")

    return converted
