"""Notion block builders and text chunking."""

from typing import Any, Dict, List


# Notion rejects rich_text content longer than this
NOTION_TEXT_LIMIT = 2000

# Notion accepts at most this many rich_text items per property or block
NOTION_RICH_TEXT_ITEMS = 100


def _cut_position(text: str, start: int, end: int) -> int:
    """Largest p in (start, end] that does not split a word.

    A position is a boundary when the character before or after it is
    whitespace, which covers word, sentence and paragraph breaks. Falls back
    to ``end`` when the window is one unbroken token.
    """
    for p in range(end, start, -1):
        if text[p - 1].isspace() or (p < len(text) and text[p].isspace()):
            return p
    return end


def chunk_text(text: str, limit: int = NOTION_TEXT_LIMIT) -> List[str]:
    """Split text into pieces of at most ``limit`` characters.

    Pieces are exact slices: ``"".join(chunk_text(t)) == t``. Cuts land on the
    whitespace boundary nearest the limit.
    """
    if limit <= 0:
        raise ValueError("limit must be positive")

    chunks = []
    start = 0
    length = len(text)
    while length - start > limit:
        cut = _cut_position(text, start, start + limit)
        chunks.append(text[start:cut])
        start = cut
    if start < length:
        chunks.append(text[start:])
    return chunks


def rich_text(text: str) -> List[Dict[str, Any]]:
    """Rich text array for ``text``, chunked to the per-item limit."""
    items = [
        {"type": "text", "text": {"content": chunk}}
        for chunk in chunk_text(text)
    ]
    return items[:NOTION_RICH_TEXT_ITEMS]


def _block(block_type: str, text: str, **extra: Any) -> Dict[str, Any]:
    body: Dict[str, Any] = {"rich_text": rich_text(text)}
    body.update(extra)
    return {"object": "block", "type": block_type, block_type: body}


def heading_2(text: str) -> Dict[str, Any]:
    return _block("heading_2", text)


def heading_3(text: str) -> Dict[str, Any]:
    return _block("heading_3", text)


def paragraph(text: str) -> Dict[str, Any]:
    return _block("paragraph", text)


def bulleted_item(text: str) -> Dict[str, Any]:
    return _block("bulleted_list_item", text)


def to_do(text: str, checked: bool = False) -> Dict[str, Any]:
    return _block("to_do", text, checked=checked)


def divider() -> Dict[str, Any]:
    return {"object": "block", "type": "divider", "divider": {}}


def paragraphs(text: str, limit: int = NOTION_TEXT_LIMIT) -> List[Dict[str, Any]]:
    """One paragraph block per chunk of ``text``, trimmed at the cut points."""
    blocks = []
    for chunk in chunk_text(text, limit):
        trimmed = chunk.strip()
        if trimmed:
            blocks.append(paragraph(trimmed))
    return blocks
