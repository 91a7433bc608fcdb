"""Unit tests for the per-turn tool registry."""

import json

from toolrelay.models.tool import ToolSource
from toolrelay.services.tool_registry import ToolRegistry, convert_tool_source


class TestConvertToolSource:
    """Test conversion of a single ToolSource."""

    def test_schema_detail(self, weather_schema):
        source = ToolSource(name="weather", schema=json.dumps(weather_schema), custom_headers='{"X-Key": "abc"}')

        detail, functions = convert_tool_source(source)

        assert detail.title == "Weather API"
        assert detail.base_url == "https://api.weather.test/v1"
        assert detail.custom_headers == '{"X-Key": "abc"}'
        assert detail.route_map == {"/weather/:city": "getWeather"}
        assert detail.request_in_body is False
        assert [f.name for f in functions] == ["getWeather"]

    def test_request_in_body_from_first_route(self, pets_schema):
        source = ToolSource(name="pets", schema=json.dumps(pets_schema))

        detail, _ = convert_tool_source(source)

        assert detail.request_in_body is True


class TestToolRegistry:
    """Test aggregation and lookup across tool sources."""

    def test_aggregates_functions(self, weather_schema, pets_schema):
        registry = ToolRegistry.build([
            ToolSource(name="weather", schema=json.dumps(weather_schema)),
            ToolSource(name="pets", schema=json.dumps(pets_schema)),
        ])

        assert [f.name for f in registry.all_functions()] == ["getWeather", "createPet"]
        assert len(registry) == 2
        assert registry.find_schema_detail_for("createPet").title == "Pet Store"
        assert registry.find_path_template_for("getWeather") == "/weather/:city"
        assert registry.find_route_for("createPet").method == "POST"

    def test_unknown_function(self, weather_schema):
        registry = ToolRegistry.build([ToolSource(name="weather", schema=json.dumps(weather_schema))])

        assert registry.find_schema_detail_for("missing") is None
        assert registry.find_path_template_for("missing") is None

    def test_conversion_failure_is_recorded(self, weather_schema):
        no_servers = dict(weather_schema)
        no_servers.pop("servers")

        registry = ToolRegistry.build([
            ToolSource(name="broken", schema=json.dumps(no_servers)),
            ToolSource(name="invalid", schema="not: [valid"),
        ])

        assert registry.all_functions() == []
        assert [f.tool_name for f in registry.conversion_failures] == ["broken", "invalid"]
        assert "server URL" in registry.conversion_failures[0].error

    def test_failure_does_not_drop_other_sources(self, weather_schema, pets_schema):
        no_servers = dict(pets_schema)
        no_servers.pop("servers")

        registry = ToolRegistry.build([
            ToolSource(name="pets", schema=json.dumps(no_servers)),
            ToolSource(name="weather", schema=json.dumps(weather_schema)),
        ])

        assert [f.name for f in registry.all_functions()] == ["getWeather"]
        assert len(registry.conversion_failures) == 1

    def test_last_registered_source_wins_on_collision(self, weather_schema):
        mirror = dict(weather_schema)
        mirror["info"] = {"title": "Weather Mirror"}
        mirror["servers"] = [{"url": "https://mirror.test"}]

        registry = ToolRegistry.build([
            ToolSource(name="weather", schema=json.dumps(weather_schema)),
            ToolSource(name="mirror", schema=json.dumps(mirror)),
        ])

        assert [f.name for f in registry.all_functions()] == ["getWeather"]
        assert registry.find_schema_detail_for("getWeather").base_url == "https://mirror.test"
        assert registry.collisions == ["getWeather"]
