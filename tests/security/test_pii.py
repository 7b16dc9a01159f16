"""Tests for PIITokenizer."""

from __future__ import annotations

import hashlib

from mcpx.security.pii import PIITokenizer


class TestTokenize:
    def test_replaces_each_type(self) -> None:
        tokenizer = PIITokenizer()
        text = "Contact jane@example.com or 555-123-4567. SSN 123-45-6789. Ask Dr. John Smith."

        out = tokenizer.tokenize(text)

        assert out == "Contact [EMAIL_1] or [PHONE_1]. SSN [SSN_1]. Ask Dr. [NAME_1]."
        assert tokenizer.counts_by_type() == {"email": 1, "phone": 1, "ssn": 1, "name": 1}

    def test_credit_card(self) -> None:
        tokenizer = PIITokenizer()
        assert tokenizer.tokenize("card 4111 1111 1111 1111 ok") == "card [CREDIT_CARD_1] ok"

    def test_same_value_same_token(self) -> None:
        tokenizer = PIITokenizer()

        first = tokenizer.tokenize("a@example.com and b@example.com")
        second = tokenizer.tokenize("again a@example.com")

        assert first == "[EMAIL_1] and [EMAIL_2]"
        assert second == "again [EMAIL_1]"
        assert tokenizer.counts_by_type() == {"email": 2}

    def test_only_hashes_are_kept(self) -> None:
        tokenizer = PIITokenizer()
        tokenizer.tokenize("mail jane@example.com")

        (token,) = tokenizer.tokens()
        assert token.type == "email"
        assert token.hashed_value == hashlib.sha256(b"jane@example.com").hexdigest()
        assert "jane" not in token.model_dump_json()

    def test_text_without_pii_unchanged(self) -> None:
        tokenizer = PIITokenizer()
        text = "processed 42 rows in 3.5s"

        assert tokenizer.tokenize(text) == text
        assert not PIITokenizer.contains_pii(text)
        assert tokenizer.tokens() == []

    def test_clear_restarts_numbering(self) -> None:
        tokenizer = PIITokenizer()
        tokenizer.tokenize("x@example.com")
        tokenizer.clear()

        assert tokenizer.tokenize("y@example.com") == "[EMAIL_1]"

    def test_instances_are_independent(self) -> None:
        a, b = PIITokenizer(), PIITokenizer()
        a.tokenize("x@example.com")

        assert b.tokenize("y@example.com") == "[EMAIL_1]"


class TestContainsPII:
    def test_detects(self) -> None:
        assert PIITokenizer.contains_pii("reach me at 555-123-4567")
        assert PIITokenizer.contains_pii("Mrs. Jane Doe")
