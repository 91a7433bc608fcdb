#!/usr/bin/env python3
"""Print the functions and routes a tool's OpenAPI document exposes to the model."""

import json
import sys
import os
from pathlib import Path

# Add parent directory to path to import toolrelay
sys.path.insert(0, str(Path(__file__).parent.parent))

from toolrelay.adapters.vendor_adapter_openai import build_openai_tools
from toolrelay.models.tool import ToolSource
from toolrelay.services.tool_registry import ToolRegistry


def convert_openapi_tool(schema_path: str, custom_headers: str = None) -> int:
    """Convert one OpenAPI document the way a tool turn would and print the result."""
    schema_file = Path(schema_path)
    source = ToolSource(
        name=schema_file.stem,
        openapi_schema=schema_file.read_text(),
        custom_headers=custom_headers,
    )

    registry = ToolRegistry.build([source])
    if registry.conversion_failures:
        for failure in registry.conversion_failures:
            print(f"❌ {failure.tool_name}: {failure.error}")
        return 1

    detail = registry.schema_details[0]
    print(f"✅ {detail.title} ({detail.base_url})")
    print(f"   Functions: {len(registry)}")
    print(f"   Request in body: {detail.request_in_body}")
    print(f"\n📋 Routes:")
    for route in detail.routes:
        print(f"   {route.method.upper():7} {route.path_template} -> {route.operation_id}")

    print(f"\n🔧 Tools:")
    print(json.dumps(build_openai_tools(registry.all_functions()), indent=2))
    return 0


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print("Usage: convert_openapi_tool.py <openapi-file> [custom-headers-json]")
        sys.exit(2)

    # Custom headers may also come from the environment
    headers = sys.argv[2] if len(sys.argv) > 2 else os.getenv("TOOL_CUSTOM_HEADERS")

    sys.exit(convert_openapi_tool(sys.argv[1], headers))
