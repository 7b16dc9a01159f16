"""PIITokenizer — swaps sensitive substrings for stable ``[TYPE_N]`` tokens.

Only SHA-256 digests of the raw values are kept, never the values
themselves. Within one tokenizer instance a value always maps to the same
token, and a type's counter advances only on first sight of a value.
"""

from __future__ import annotations

import hashlib
import re
from typing import Literal

from pydantic import BaseModel

PIIType = Literal["email", "phone", "credit_card", "ssn", "name"]

_EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")
_PHONE = re.compile(r"\b(?:\+\d{1,3}[-.]?)?\(?\d{3}\)?[-.\s]?\d{3}[-.\s]?\d{4}\b")
_CREDIT_CARD = re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b")
_SSN = re.compile(r"\b\d{3}-\d{2}-\d{4}\b")
_TITLED_NAME = re.compile(r"\b(Mr\.|Mrs\.|Ms\.|Dr\.)\s+([A-Z][a-z]+\s+[A-Z][a-z]+)\b")

# Order matters: earlier patterns claim their text first.
_VALUE_PATTERNS: tuple[tuple[PIIType, re.Pattern[str]], ...] = (
    ("email", _EMAIL),
    ("phone", _PHONE),
    ("credit_card", _CREDIT_CARD),
    ("ssn", _SSN),
)


class PIIToken(BaseModel):
    token: str
    type: PIIType
    hashed_value: str


class PIITokenizer:
    """Per-request tokenizer. Call :meth:`clear` to forget all mappings."""

    def __init__(self) -> None:
        self._tokens: dict[str, PIIToken] = {}
        self._counters: dict[str, int] = {}

    def tokenize(self, text: str) -> str:
        for pii_type, pattern in _VALUE_PATTERNS:
            text = pattern.sub(lambda m, t=pii_type: self._token_for(m.group(0), t), text)
        return _TITLED_NAME.sub(lambda m: f"{m.group(1)} {self._token_for(m.group(2), 'name')}", text)

    @staticmethod
    def contains_pii(text: str) -> bool:
        return any(p.search(text) for _, p in _VALUE_PATTERNS) or bool(_TITLED_NAME.search(text))

    def tokens(self) -> list[PIIToken]:
        return list(self._tokens.values())

    def counts_by_type(self) -> dict[str, int]:
        return dict(self._counters)

    def clear(self) -> None:
        self._tokens.clear()
        self._counters.clear()

    def _token_for(self, value: str, pii_type: PIIType) -> str:
        digest = hashlib.sha256(value.encode("utf-8")).hexdigest()
        existing = self._tokens.get(digest)
        if existing is not None:
            return existing.token
        count = self._counters.get(pii_type, 0) + 1
        self._counters[pii_type] = count
        token = PIIToken(token=f"[{pii_type.upper()}_{count}]", type=pii_type, hashed_value=digest)
        self._tokens[digest] = token
        return token.token
