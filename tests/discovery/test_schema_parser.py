"""Tests for SchemaParser and validate_schema."""

from __future__ import annotations

import json

import pytest

from mcpx.discovery.models import ToolParameter, ToolSchema
from mcpx.discovery.schema_parser import SchemaParser, validate_schema
from mcpx.errors import ErrorKind, SchemaError


class TestParseJson:
    def test_single_object(self) -> None:
        raw = json.dumps({"name": "fs_read", "description": "Read a file"})
        schemas = SchemaParser().parse_json(raw)

        assert len(schemas) == 1
        assert schemas[0].name == "fs_read"
        assert schemas[0].parameters == []

    def test_array_of_objects(self) -> None:
        raw = json.dumps([{"name": "a"}, {"name": "b"}])
        schemas = SchemaParser().parse_json(raw)

        assert [s.name for s in schemas] == ["a", "b"]

    def test_tools_wrapper(self) -> None:
        raw = json.dumps({"tools": [{"name": "a"}]})
        assert [s.name for s in SchemaParser().parse_json(raw)] == ["a"]

    def test_invalid_json_raises_schema_error(self) -> None:
        with pytest.raises(SchemaError) as exc_info:
            SchemaParser().parse_json("{not json", source="broken.json")

        assert exc_info.value.kind is ErrorKind.SCHEMA
        assert exc_info.value.source == "broken.json"
        assert "broken.json" in str(exc_info.value)

    def test_scalar_document_rejected(self) -> None:
        with pytest.raises(SchemaError, match="Expected an object or a list"):
            SchemaParser().parse_json("42")


class TestParseYaml:
    def test_yaml_list(self) -> None:
        raw = """
- name: git_status
  description: Show the working tree status
  parameters:
    repo: string
"""
        schemas = SchemaParser().parse_yaml(raw)

        assert schemas[0].name == "git_status"
        assert schemas[0].parameters[0].name == "repo"
        assert schemas[0].parameters[0].type == "string"

    def test_empty_yaml_yields_nothing(self) -> None:
        assert SchemaParser().parse_yaml("") == []

    def test_invalid_yaml(self) -> None:
        with pytest.raises(SchemaError, match="Invalid YAML"):
            SchemaParser().parse_yaml("a: [unclosed")


class TestParseObject:
    def test_missing_name(self) -> None:
        with pytest.raises(SchemaError, match="missing a 'name'"):
            SchemaParser().parse_object({"description": "nameless"})

    def test_non_object(self) -> None:
        with pytest.raises(SchemaError, match="must be an object"):
            SchemaParser().parse_object(["a"])

    def test_parameter_list(self) -> None:
        schema = SchemaParser().parse_object(
            {
                "name": "http_get",
                "params": [
                    {"name": "url", "type": "string", "description": "Target URL"},
                    {"name": "retries", "type": "integer", "required": False, "default": 3},
                ],
            }
        )

        assert [p.name for p in schema.parameters] == ["url", "retries"]
        assert schema.parameters[1].required is False
        assert schema.parameters[1].default == 3

    def test_parameter_map_with_objects(self) -> None:
        schema = SchemaParser().parse_object(
            {"name": "t", "parameters": {"tags": {"type": "array", "items": {"type": "string"}}}}
        )

        assert schema.parameters[0].type == "array<string>"

    def test_parameter_without_name(self) -> None:
        with pytest.raises(SchemaError, match="needs a 'name'"):
            SchemaParser().parse_object({"name": "t", "parameters": [{"type": "string"}]})

    def test_input_schema(self) -> None:
        schema = SchemaParser().parse_object(
            {
                "name": "read_file",
                "inputSchema": {
                    "type": "object",
                    "properties": {
                        "path": {"type": "string", "description": "File path"},
                        "encoding": {"type": ["string", "null"], "default": "utf-8"},
                    },
                    "required": ["path"],
                },
            }
        )

        path, encoding = schema.parameters
        assert path.required is True
        assert path.description == "File path"
        assert encoding.required is False
        assert encoding.type == "string"
        assert encoding.default == "utf-8"

    def test_returns_string_and_object(self) -> None:
        parser = SchemaParser()
        a = parser.parse_object({"name": "a", "returns": "string"})
        b = parser.parse_object({"name": "b", "return": {"type": "object", "description": "Parsed"}})

        assert a.returns is not None and a.returns.type == "string"
        assert b.returns is not None and b.returns.description == "Parsed"

    def test_examples(self) -> None:
        schema = SchemaParser().parse_object(
            {"name": "a", "examples": [{"input": {"x": 1}, "output": 2, "description": "doubles"}]}
        )

        assert schema.examples[0].input == {"x": 1}
        assert schema.examples[0].output == 2

    def test_duplicate_parameters_rejected(self) -> None:
        with pytest.raises(SchemaError, match="duplicate parameter 'x'"):
            SchemaParser().parse_object({"name": "a", "parameters": [{"name": "x"}, {"name": "x"}]})


class TestValidateSchema:
    def test_valid(self) -> None:
        schema = ToolSchema(name="ok", parameters=[ToolParameter(name="a", type="string")])
        assert validate_schema(schema) == []

    def test_blank_name(self) -> None:
        assert "name is required" in validate_schema(ToolSchema(name="  "))

    def test_ordered_parameters_puts_required_first(self) -> None:
        schema = ToolSchema(
            name="t",
            parameters=[
                ToolParameter(name="opt", required=False),
                ToolParameter(name="req"),
            ],
        )
        assert [p.name for p in schema.ordered_parameters()] == ["req", "opt"]
