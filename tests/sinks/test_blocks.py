"""Tests for Notion block builders and text chunking."""

import pytest

from sinks import NOTION_TEXT_LIMIT, chunk_text
from sinks import blocks


class TestChunkText:

    def test_short_text_is_one_chunk(self):
        assert chunk_text("hello world") == ["hello world"]

    def test_empty_text(self):
        assert chunk_text("") == []

    def test_pieces_rejoin_exactly(self):
        text = ("The quarterly review covered hiring.\n\nBudget was approved. " * 200).strip()
        chunks = chunk_text(text)
        assert "".join(chunks) == text
        assert all(len(chunk) <= NOTION_TEXT_LIMIT for chunk in chunks)
        assert len(chunks) > 1

    def test_cuts_on_whitespace(self):
        chunks = chunk_text("alpha beta gamma delta", limit=12)
        assert chunks == ["alpha beta ", "gamma delta"]
        for chunk in chunks[:-1]:
            assert chunk[-1].isspace()

    def test_unbroken_token_is_hard_cut(self):
        assert chunk_text("x" * 25, limit=10) == ["x" * 10, "x" * 10, "x" * 5]

    def test_limit_must_be_positive(self):
        with pytest.raises(ValueError):
            chunk_text("text", limit=0)


class TestBlocks:

    def test_paragraph_shape(self):
        block = blocks.paragraph("Hello")
        assert block == {
            "object": "block",
            "type": "paragraph",
            "paragraph": {"rich_text": [{"type": "text", "text": {"content": "Hello"}}]},
        }

    def test_to_do_is_unchecked(self):
        assert blocks.to_do("Send budget")["to_do"]["checked"] is False

    def test_long_rich_text_is_split(self):
        items = blocks.rich_text("word " * 1000)
        assert len(items) == 3
        assert all(len(item["text"]["content"]) <= NOTION_TEXT_LIMIT for item in items)

    def test_paragraphs_drop_blank_chunks(self):
        result = blocks.paragraphs("one two   three", limit=4)
        texts = [b["paragraph"]["rich_text"][0]["text"]["content"] for b in result]
        assert texts == ["one", "two", "thre", "e"]
