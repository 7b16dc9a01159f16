"""ToolIndex — loads tool schemas from a directory tree and enriches them.

Each entry gets a keyword set and a coarse category. The index is shared
read-only between requests once built; :meth:`ToolIndex.build` swaps the
whole entry list at once so readers never see a half-built index.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable
from pathlib import Path

from mcpx.discovery.models import ToolIndexEntry, ToolSchema
from mcpx.discovery.schema_parser import SchemaParser
from mcpx.errors import DuplicateToolError, SchemaError

logger = logging.getLogger(__name__)

SCHEMA_SUFFIXES = (".json", ".yaml", ".yml")

_WORD_SPLIT = re.compile(r"\W+")
_NAME_SPLIT = re.compile(r"[-_]")

# First matching rule wins.
_CATEGORY_RULES: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("git", ("git",)),
    ("filesystem", ("file",)),
    ("network", ("http",)),
    ("database", ("db", "database")),
    ("testing", ("test",)),
)


def extract_keywords(schema: ToolSchema) -> frozenset[str]:
    """Lowercased words longer than two characters from name and descriptions."""
    words: list[str] = []
    words.extend(_NAME_SPLIT.split(schema.name))
    words.extend(_WORD_SPLIT.split(schema.description))
    for param in schema.parameters:
        words.append(param.name)
        words.extend(_WORD_SPLIT.split(param.description))
    return frozenset(w.lower() for w in words if len(w) > 2)


def infer_category(schema: ToolSchema) -> str:
    haystack = f"{schema.name} {schema.description}".lower()
    for category, needles in _CATEGORY_RULES:
        if any(needle in haystack for needle in needles):
            return category
    return "general"


class ToolIndex:
    """In-memory index of tool schemas."""

    def __init__(self, parser: SchemaParser | None = None) -> None:
        self._parser = parser or SchemaParser()
        self._entries: tuple[ToolIndexEntry, ...] = ()
        self._by_name: dict[str, ToolIndexEntry] = {}

    @classmethod
    def from_schemas(cls, schemas: Iterable[ToolSchema], *, source: str = "<memory>") -> ToolIndex:
        index = cls()
        index._replace([(schema, source) for schema in schemas])
        return index

    def build(self, root: str | Path) -> int:
        """(Re)build the index from every schema file under *root*.

        Returns the number of indexed tools. Raises :class:`SchemaError`
        for unreadable files and :class:`DuplicateToolError` when two
        schemas share a name.
        """
        root = Path(root)
        if not root.is_dir():
            raise SchemaError(f"Tools directory not found: {root}", str(root))

        loaded: list[tuple[ToolSchema, str]] = []
        for path in sorted(p for p in root.rglob("*") if p.suffix in SCHEMA_SUFFIXES and p.is_file()):
            for schema in self._load_file(path):
                loaded.append((schema, str(path.relative_to(root))))

        self._replace(loaded)
        logger.info("Indexed %d tools from %s", len(self._entries), root)
        return len(self._entries)

    async def build_async(self, root: str | Path) -> int:
        """Run :meth:`build` off the event loop."""
        return await asyncio.to_thread(self.build, root)

    def size(self) -> int:
        return len(self._entries)

    def all(self) -> list[ToolIndexEntry]:
        return list(self._entries)

    def get(self, name: str) -> ToolIndexEntry | None:
        return self._by_name.get(name)

    def by_category(self, category: str) -> list[ToolIndexEntry]:
        return [e for e in self._entries if e.category == category]

    def categories(self) -> dict[str, list[ToolIndexEntry]]:
        """Entries grouped by category, in index order."""
        groups: dict[str, list[ToolIndexEntry]] = {}
        for entry in self._entries:
            groups.setdefault(entry.category, []).append(entry)
        return groups

    def stats(self) -> dict[str, object]:
        groups = self.categories()
        return {
            "total": len(self._entries),
            "categories": {cat: len(entries) for cat, entries in sorted(groups.items())},
        }

    # ------------------------------------------------------------------

    def _load_file(self, path: Path) -> list[ToolSchema]:
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SchemaError(f"Cannot read file: {exc}", str(path)) from exc
        if path.suffix == ".json":
            return self._parser.parse_json(raw, source=str(path))
        return self._parser.parse_yaml(raw, source=str(path))

    def _replace(self, loaded: list[tuple[ToolSchema, str]]) -> None:
        entries: list[ToolIndexEntry] = []
        by_name: dict[str, ToolIndexEntry] = {}
        for schema, source in loaded:
            existing = by_name.get(schema.name)
            if existing is not None:
                raise DuplicateToolError(schema.name, existing.source, source)
            entry = ToolIndexEntry(
                tool=schema,
                keywords=extract_keywords(schema),
                category=infer_category(schema),
                source=source,
            )
            entries.append(entry)
            by_name[schema.name] = entry
        self._entries = tuple(entries)
        self._by_name = by_name
