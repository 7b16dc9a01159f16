"""Data models for tool discovery."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolParameter(BaseModel):
    """A single named parameter of a tool."""

    name: str
    type: str = Field(default="any", description="Schema type, e.g. 'string' or 'array<number>'.")
    description: str = ""
    required: bool = True
    default: Any = None


class ToolReturn(BaseModel):
    """What a tool returns."""

    type: str = "any"
    description: str = ""


class ToolExample(BaseModel):
    """A worked example of a tool call."""

    input: dict[str, Any] = Field(default_factory=dict)
    output: Any = None
    description: str = ""


class ToolSchema(BaseModel):
    """A typed tool description as stored on disk."""

    name: str
    description: str = ""
    parameters: list[ToolParameter] = Field(default_factory=list)
    returns: ToolReturn | None = None
    examples: list[ToolExample] = Field(default_factory=list)

    def ordered_parameters(self) -> list[ToolParameter]:
        """Parameters with required ones first, declared order otherwise kept."""
        required = [p for p in self.parameters if p.required]
        optional = [p for p in self.parameters if not p.required]
        return required + optional


class ToolIndexEntry(BaseModel):
    """A schema enriched with search metadata. Immutable once indexed."""

    model_config = ConfigDict(frozen=True)

    tool: ToolSchema
    keywords: frozenset[str] = Field(default_factory=frozenset)
    category: str = "general"
    source: str = Field(default="", description="File the schema was loaded from.")

    @property
    def name(self) -> str:
        return self.tool.name

    @property
    def description(self) -> str:
        return self.tool.description


class FieldMatch(BaseModel):
    """Why an entry matched: which field, what text, how strongly."""

    field: str
    value: str
    relevance: float = Field(ge=0.0, le=1.0)


class SearchResult(BaseModel):
    """A ranked match for a query."""

    entry: ToolIndexEntry
    score: float = Field(ge=0.0, le=1.0)
    matches: list[FieldMatch] = Field(default_factory=list)

    @property
    def name(self) -> str:
        return self.entry.name
