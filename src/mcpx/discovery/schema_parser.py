"""SchemaParser — normalizes tool schema documents into :class:`ToolSchema`.

Tool files in the wild come in several shapes. The parser accepts:

- a single schema object, a list of them, or ``{"tools": [...]}``;
- ``parameters`` (or ``params``) as a list of parameter objects or as a
  ``{name: spec}`` map, where *spec* may be a bare type string;
- an MCP ``inputSchema`` (JSON Schema ``properties`` + ``required``);
- ``returns`` (or ``return``) as a type string or an object.
"""

from __future__ import annotations

import json
from typing import Any, cast

import yaml
from pydantic import ValidationError

from mcpx.discovery.models import ToolExample, ToolParameter, ToolReturn, ToolSchema
from mcpx.errors import SchemaError


class SchemaParser:
    """Stateless converter from raw documents to validated schemas."""

    def parse_json(self, raw: str, *, source: str = "") -> list[ToolSchema]:
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise SchemaError(f"Invalid JSON: {exc}", source) from exc
        return self.parse_document(data, source=source)

    def parse_yaml(self, raw: str, *, source: str = "") -> list[ToolSchema]:
        try:
            data = yaml.safe_load(raw)
        except yaml.YAMLError as exc:
            raise SchemaError(f"Invalid YAML: {exc}", source) from exc
        if data is None:
            return []
        return self.parse_document(data, source=source)

    def parse_document(self, data: Any, *, source: str = "") -> list[ToolSchema]:
        """Parse a decoded document holding zero or more schemas."""
        if isinstance(data, dict) and "tools" in data and "name" not in data:
            data = data["tools"]
        if isinstance(data, dict):
            return [self.parse_object(cast("dict[str, Any]", data), source=source)]
        if isinstance(data, list):
            return [self.parse_object(item, source=source) for item in data]
        raise SchemaError(f"Expected an object or a list, got {type(data).__name__}", source)

    def parse_object(self, obj: Any, *, source: str = "") -> ToolSchema:
        """Normalize one schema object and validate it."""
        if not isinstance(obj, dict):
            raise SchemaError(f"Tool schema must be an object, got {type(obj).__name__}", source)
        obj = cast("dict[str, Any]", obj)

        name = obj.get("name")
        if not isinstance(name, str) or not name.strip():
            raise SchemaError("Tool schema is missing a 'name'", source)

        if "inputSchema" in obj or "input_schema" in obj:
            params = self._params_from_json_schema(obj.get("inputSchema") or obj.get("input_schema") or {})
        else:
            params = self._normalize_params(obj.get("parameters", obj.get("params", [])), source)

        returns = self._normalize_returns(obj.get("returns", obj.get("return")))

        try:
            schema = ToolSchema(
                name=name.strip(),
                description=str(obj.get("description") or ""),
                parameters=params,
                returns=returns,
                examples=[ToolExample.model_validate(e) for e in obj.get("examples") or []],
            )
        except ValidationError as exc:
            raise SchemaError(f"Invalid tool {name!r}: {exc}", source) from exc

        problems = validate_schema(schema)
        if problems:
            raise SchemaError(f"Invalid tool {name!r}: " + "; ".join(problems), source)
        return schema

    # ------------------------------------------------------------------

    def _normalize_params(self, raw: Any, source: str) -> list[ToolParameter]:
        if raw is None:
            return []
        if isinstance(raw, dict):
            items: list[dict[str, Any]] = []
            for pname, spec in cast("dict[str, Any]", raw).items():
                if isinstance(spec, str):
                    items.append({"name": pname, "type": spec})
                elif isinstance(spec, dict):
                    items.append({"name": pname, **cast("dict[str, Any]", spec)})
                else:
                    raise SchemaError(f"Parameter {pname!r} must be a type or an object", source)
            raw = items
        if not isinstance(raw, list):
            raise SchemaError("'parameters' must be a list or an object", source)

        params: list[ToolParameter] = []
        for item in cast("list[Any]", raw):
            if not isinstance(item, dict) or not item.get("name"):
                raise SchemaError("Every parameter needs a 'name'", source)
            item = dict(cast("dict[str, Any]", item))
            item["type"] = _type_name(item)
            params.append(ToolParameter.model_validate(item))
        return params

    @staticmethod
    def _params_from_json_schema(schema: dict[str, Any]) -> list[ToolParameter]:
        properties = cast("dict[str, dict[str, Any]]", schema.get("properties") or {})
        required = set(schema.get("required") or [])
        return [
            ToolParameter(
                name=pname,
                type=_type_name(spec),
                description=str(spec.get("description") or ""),
                required=pname in required,
                default=spec.get("default"),
            )
            for pname, spec in properties.items()
        ]

    @staticmethod
    def _normalize_returns(raw: Any) -> ToolReturn | None:
        if raw is None:
            return None
        if isinstance(raw, str):
            return ToolReturn(type=raw)
        if isinstance(raw, dict):
            raw = cast("dict[str, Any]", raw)
            return ToolReturn(type=_type_name(raw), description=str(raw.get("description") or ""))
        return ToolReturn(type="any")


def validate_schema(schema: ToolSchema) -> list[str]:
    """Return human-readable problems with *schema*; empty when valid."""
    problems: list[str] = []
    if not schema.name.strip():
        problems.append("name is required")
    seen: set[str] = set()
    for param in schema.parameters:
        if not param.name.strip():
            problems.append("parameter name is required")
        if not param.type:
            problems.append(f"parameter {param.name!r} has no type")
        if param.name in seen:
            problems.append(f"duplicate parameter {param.name!r}")
        seen.add(param.name)
    return problems


def _type_name(spec: dict[str, Any]) -> str:
    """Flatten a JSON-Schema-ish type spec to ``string`` / ``array<number>`` form."""
    raw = spec.get("type", "any")
    if isinstance(raw, list):
        # ["string", "null"] style unions: keep the first concrete type
        concrete = [t for t in cast("list[Any]", raw) if t != "null"]
        raw = concrete[0] if concrete else "any"
    type_name = str(raw)
    items = spec.get("items")
    if type_name == "array" and isinstance(items, dict):
        return f"array<{_type_name(cast('dict[str, Any]', items))}>"
    return type_name
