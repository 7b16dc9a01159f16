"""SemanticMatcher — ranks index entries against a natural-language intent.

Scoring per entry, clamped to ``[0, 1]``:

- ``+0.5`` if any query token occurs in the lowercased name;
- ``+0.3 x`` the fraction of query tokens matching a keyword (substring
  either way);
- ``+0.2 x`` the fraction of query tokens occurring in the description.
"""

from __future__ import annotations

import logging
import re

from mcpx.discovery.index import ToolIndex
from mcpx.discovery.models import FieldMatch, SearchResult, ToolIndexEntry
from mcpx.errors import DiscoveryError, ErrorKind

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.2
DEFAULT_LIMIT = 5

NAME_WEIGHT = 0.5
KEYWORD_WEIGHT = 0.3
DESCRIPTION_WEIGHT = 0.2

_TOKEN_SPLIT = re.compile(r"\W+")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def tokenize_query(query: str) -> list[str]:
    """Lowercase, split on non-word characters, drop tokens of length <= 2."""
    return [t for t in _TOKEN_SPLIT.split(query.lower()) if len(t) > 2]


def score_entry(entry: ToolIndexEntry, tokens: list[str]) -> float:
    if not tokens:
        return 0.0
    name = entry.name.lower()
    description = entry.description.lower()

    score = 0.0
    if any(t in name for t in tokens):
        score += NAME_WEIGHT

    keyword_hits = sum(1 for t in tokens if any(t in kw or kw in t for kw in entry.keywords))
    score += KEYWORD_WEIGHT * (keyword_hits / len(tokens))

    description_hits = sum(1 for t in tokens if t in description)
    score += DESCRIPTION_WEIGHT * (description_hits / len(tokens))

    return max(0.0, min(1.0, score))


def explain_match(entry: ToolIndexEntry, tokens: list[str]) -> list[FieldMatch]:
    """Per-field provenance for why *entry* matched *tokens*."""
    matches: list[FieldMatch] = []
    name = entry.name.lower()
    if any(t in name for t in tokens):
        matches.append(FieldMatch(field="name", value=entry.name, relevance=1.0))

    for keyword in sorted(entry.keywords):
        if any(t in keyword or keyword in t for t in tokens):
            matches.append(FieldMatch(field="keyword", value=keyword, relevance=0.8))

    for sentence in _SENTENCE_SPLIT.split(entry.description):
        sentence = sentence.strip()
        if not sentence:
            continue
        lowered = sentence.lower()
        hits = sum(1 for t in tokens if t in lowered)
        if hits:
            matches.append(FieldMatch(field="description", value=sentence, relevance=hits / len(tokens)))
    return matches


class SemanticMatcher:
    """Keyword-overlap ranking over a :class:`ToolIndex`."""

    def __init__(self, index: ToolIndex, *, threshold: float = DEFAULT_THRESHOLD) -> None:
        self._index = index
        self._threshold = threshold

    def search(self, query: str, *, limit: int = DEFAULT_LIMIT) -> list[SearchResult]:
        """Return up to *limit* entries scoring above the threshold, best first.

        Raises :class:`DiscoveryError` (``EmptyQuery``) when the query has
        no usable tokens. No hits is an empty list, not an error.
        """
        tokens = tokenize_query(query)
        if not tokens:
            raise DiscoveryError("Query has no searchable terms", kind=ErrorKind.EMPTY_QUERY)

        results: list[SearchResult] = []
        for entry in self._index.all():
            score = score_entry(entry, tokens)
            if score > self._threshold:
                results.append(
                    SearchResult(entry=entry, score=score, matches=explain_match(entry, tokens))
                )

        # sort() is stable, so ties keep index order
        results.sort(key=lambda r: r.score, reverse=True)
        logger.debug("Query %r matched %d tools", query, len(results))
        return results[: max(limit, 0)]
