"""Pytest configuration and fixtures."""

import pytest
import os
from dotenv import load_dotenv

# Load test environment variables
load_dotenv()

# Set test environment
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("OPENAI_API_KEY", "sk-test")


WEATHER_SCHEMA = {
    "openapi": "3.0.0",
    "info": {"title": "Weather API", "description": "Current weather by city", "version": "1.0.0"},
    "servers": [{"url": "https://api.weather.test/v1"}],
    "paths": {
        "/weather/{city}": {
            "get": {
                "operationId": "getWeather",
                "summary": "Get current weather for a city",
                "parameters": [
                    {"name": "city", "in": "path", "required": True, "schema": {"type": "string"}},
                    {"name": "units", "in": "query", "schema": {"type": "string"}},
                ],
            }
        }
    },
}


PETS_SCHEMA = {
    "openapi": "3.0.0",
    "info": {"title": "Pet Store", "version": "1.0.0"},
    "servers": [{"url": "https://pets.test"}],
    "paths": {
        "/pets": {
            "post": {
                "operationId": "createPet",
                "description": "Create a pet",
                "requestBody": {
                    "required": True,
                    "content": {
                        "application/json": {"schema": {"$ref": "#/components/schemas/Pet"}}
                    },
                },
            }
        }
    },
    "components": {
        "schemas": {
            "Pet": {
                "type": "object",
                "properties": {"name": {"type": "string"}, "age": {"type": "integer"}},
                "required": ["name"],
            }
        }
    },
}


@pytest.fixture
def weather_schema():
    """Weather OpenAPI document as a dict."""
    import copy
    return copy.deepcopy(WEATHER_SCHEMA)


@pytest.fixture
def pets_schema():
    """Pet store OpenAPI document with a JSON request body."""
    import copy
    return copy.deepcopy(PETS_SCHEMA)
