"""Insight generation: summary, key points, action items, topics, sentiment, title."""

import json
import os
import re
from typing import Any, Dict, List, Optional

from extraction import FileFamily
from models import LLM, LLMError
from models.base import INSIGHT_SYSTEM_PROMPT, build_insight_prompt, build_title_prompt
from noteflow import NoteFlow

from .budget import BudgetExceededError
from .file_metadata import InsightResult, SENTIMENTS


# Roughly four characters per token
CHARS_PER_TOKEN = 4

DEFAULT_MAX_INPUT_TOKENS = 4000
TITLE_INPUT_CHARS = 8000
TITLE_MAX_TOKENS = 50

TRUNCATION_MARKER = "\n\n[... content truncated ...]"

MIN_TITLE_WORDS = 2
MAX_TITLE_WORDS = 7

_SENTIMENT_SYNONYMS = {
    "positive": "positive", "pos": "positive", "good": "positive",
    "optimistic": "positive", "upbeat": "positive", "happy": "positive",
    "negative": "negative", "neg": "negative", "bad": "negative",
    "pessimistic": "negative", "critical": "negative", "unhappy": "negative",
    "neutral": "neutral", "neu": "neutral", "balanced": "neutral",
    "objective": "neutral", "informational": "neutral",
    "mixed": "mixed", "mix": "mixed", "both": "mixed", "ambivalent": "mixed",
    "bittersweet": "mixed",
}

_SENTIMENTS_SET = frozenset(SENTIMENTS)

_BULLET_RE = re.compile(r"^\s*(?:[•\-\*]|\d+[\.\)])\s+")


# ---------------------------------------------------------------------------
# Deterministic helpers
# ---------------------------------------------------------------------------

def normalize_sentiment(value: Any) -> str:
    """Map any model sentiment output onto positive/negative/neutral/mixed."""
    if not isinstance(value, str):
        return "neutral"
    cleaned = value.strip().lower().strip(".!\"'")
    if cleaned in _SENTIMENTS_SET:
        return cleaned
    if cleaned in _SENTIMENT_SYNONYMS:
        return _SENTIMENT_SYNONYMS[cleaned]
    # "Mostly positive", "positive/neutral" and similar
    words = re.findall(r"[a-z]+", cleaned)
    found = {_SENTIMENT_SYNONYMS[w] for w in words if w in _SENTIMENT_SYNONYMS}
    if len(found) == 1:
        return found.pop()
    if {"positive", "negative"} <= found or "mixed" in found:
        return "mixed"
    return "neutral"


def truncate_for_prompt(text: str, max_tokens: int) -> str:
    """Cut text to the token budget, marking the cut explicitly."""
    limit = max_tokens * CHARS_PER_TOKEN
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def title_from_filename(file_name: str, family: Optional[FileFamily] = None) -> str:
    """Derive a 2-7 word title from a filename."""
    stem = os.path.splitext(os.path.basename(file_name))[0]
    clean = re.sub(r"[_\-]+", " ", stem)
    words = clean.split()

    if len(words) > MAX_TITLE_WORDS:
        words = words[:MAX_TITLE_WORDS]
    if len(words) < MIN_TITLE_WORDS:
        prefix = "Audio Recording" if family == FileFamily.SPEECH else "Document"
        words = prefix.split() + words
    return " ".join(words)


def clean_title(raw: str) -> str:
    """Strip quotes, a 'Title:' prefix and trailing punctuation from model output."""
    title = raw.strip().splitlines()[0] if raw.strip() else ""
    title = re.sub(r"^\s*title\s*:\s*", "", title, flags=re.IGNORECASE)
    title = title.strip().strip("\"'*`").strip()
    return title.rstrip(".!?:;,").strip()


def is_valid_title(title: str) -> bool:
    return MIN_TITLE_WORDS <= len(title.split()) <= MAX_TITLE_WORDS


def _as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple)):
        return []
    return [str(item).strip() for item in value if str(item).strip()]


def _field(data: Dict[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in data:
            return data[key]
    return None


def parse_structured_response(response: str) -> Optional[Dict[str, Any]]:
    """Extract the outermost JSON object from a model response.

    Returns:
        Normalized dict with summary/key_points/action_items/topics/sentiment,
        or None if there is no parseable object
    """
    match = re.search(r"\{[\s\S]*\}", response)
    if not match:
        return None
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None

    summary = _field(data, "summary", "Summary")
    return {
        "summary": str(summary).strip() if summary else "",
        "key_points": _as_list(_field(data, "keyPoints", "key_points", "Key Points")),
        "action_items": _as_list(_field(data, "actionItems", "action_items", "Action Items")),
        "topics": _as_list(_field(data, "topics", "Topics")),
        "sentiment": normalize_sentiment(_field(data, "sentiment", "Sentiment")),
    }


def parse_heuristic_response(response: str) -> Dict[str, Any]:
    """Line-based fallback parser.

    Produces the same keys as parse_structured_response(). Lines are sorted by
    the nearest preceding section marker (summary / action / topic /
    sentiment); bullets outside those sections count as key points.
    """
    summary = None
    sentiment = None
    key_points: List[str] = []
    action_items: List[str] = []
    topics: List[str] = []
    section = None

    for raw_line in response.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        lower = line.lower()
        is_bullet = bool(_BULLET_RE.match(line))
        content = _BULLET_RE.sub("", line).strip()
        after_colon = line.split(":", 1)[1].strip() if ":" in line else ""

        if not is_bullet and "summary" in lower:
            section = "summary"
            if after_colon:
                summary = after_colon
            continue
        if not is_bullet and "sentiment" in lower:
            section = None
            sentiment = after_colon or sentiment
            continue
        if not is_bullet and ("action" in lower or "task" in lower):
            section = "action"
            if after_colon:
                action_items.append(after_colon)
            continue
        if not is_bullet and ("topic" in lower or "theme" in lower):
            section = "topic"
            if after_colon:
                topics.extend(t.strip() for t in after_colon.split(",") if t.strip())
            continue
        if not is_bullet and ("key point" in lower or "highlight" in lower):
            section = "key"
            continue

        if section == "summary" and not is_bullet:
            summary = f"{summary} {content}".strip() if summary else content
        elif section == "action":
            action_items.append(content)
        elif section == "topic":
            topics.append(content)
        elif is_bullet:
            key_points.append(content)

    return {
        "summary": summary or "",
        "key_points": key_points,
        "action_items": action_items,
        "topics": topics,
        "sentiment": normalize_sentiment(sentiment),
    }


def excerpt_summary(text: str, max_chars: int = 500) -> str:
    """First sentences of the text, used when no model output is available."""
    flat = " ".join(text.split())
    if len(flat) <= max_chars:
        return flat
    cut = flat[:max_chars]
    sentence_end = max(cut.rfind(". "), cut.rfind("! "), cut.rfind("? "))
    if sentence_end > max_chars // 2:
        return cut[:sentence_end + 1]
    return cut.rsplit(" ", 1)[0] + "..."


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------

class InsightGenerator:
    """Turns extracted text into an InsightResult with one analysis and one title call."""

    def __init__(self, llm: LLM, max_tokens: int = 1500, temperature: float = 0.3,
                 max_input_tokens: int = DEFAULT_MAX_INPUT_TOKENS) -> None:
        self.llm = llm
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_input_tokens = max_input_tokens

    def analyze(self, text: str, file_name: str, family: FileFamily) -> InsightResult:
        """Produce insights for ``text``.

        Model failures and malformed output fall back to heuristics; only an
        exhausted budget propagates, since that must stop the file.

        Raises:
            BudgetExceededError: If the daily call budget is exhausted
        """
        content_kind = "transcript" if family == FileFamily.SPEECH else "document"
        fields = self._analyze_fields(text, file_name, content_kind)
        title = self.generate_title(text, file_name, family)

        return InsightResult(
            title=title,
            summary=fields["summary"],
            key_points=fields["key_points"],
            action_items=fields["action_items"],
            topics=fields["topics"],
            sentiment=fields["sentiment"],
            used_fallback=fields.get("used_fallback", False),
        )

    def _analyze_fields(self, text: str, file_name: str, content_kind: str) -> Dict[str, Any]:
        prompt = build_insight_prompt(truncate_for_prompt(text, self.max_input_tokens), content_kind)

        try:
            response = self.llm.complete(
                prompt,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=INSIGHT_SYSTEM_PROMPT,
            )
        except BudgetExceededError:
            raise
        except LLMError as e:
            NoteFlow.print_right(f"[yellow]⚠ Analysis failed for {file_name}: {e}[/yellow]")
            return {
                "summary": excerpt_summary(text),
                "key_points": [],
                "action_items": [],
                "topics": [],
                "sentiment": "neutral",
                "used_fallback": True,
            }

        fields = parse_structured_response(response)
        if fields is not None:
            return fields

        NoteFlow.print_debug(f"Unstructured analysis output for {file_name}, using line parser")
        fields = parse_heuristic_response(response)
        fields["used_fallback"] = True
        return fields

    def generate_title(self, text: str, file_name: str, family: FileFamily) -> str:
        """Ask the model for a 2-7 word title; fall back to the filename.

        Raises:
            BudgetExceededError: If the daily call budget is exhausted
        """
        content_kind = "transcript" if family == FileFamily.SPEECH else "document"
        snippet = text[:TITLE_INPUT_CHARS]
        if not snippet.strip():
            return title_from_filename(file_name, family)

        try:
            raw = self.llm.complete(
                build_title_prompt(snippet, content_kind),
                max_tokens=TITLE_MAX_TOKENS,
                temperature=self.temperature,
            )
        except BudgetExceededError:
            raise
        except LLMError as e:
            NoteFlow.print_debug(f"Title generation failed for {file_name}: {e}")
            return title_from_filename(file_name, family)

        title = clean_title(raw)
        if is_valid_title(title):
            return title
        NoteFlow.print_debug(f"Rejected model title {raw!r} for {file_name}")
        return title_from_filename(file_name, family)
