"""Shared fakes for sources, models and Notion."""

import hashlib
import json
import os
import shutil
import tempfile
from typing import Any, Dict, List, Optional

import pytest

from extraction import ContentExtractor, FileFamily
from models import LLM, LLMError, Transcription
from models.base import VISION_EXTRACTION_PROMPT
from sinks import PageRef, Sink
from storage import RawFileEntry, SourceDriver, StorageError
from storage.base import make_temp_path
from workflows import (
    CallBudget,
    FilterPolicy,
    InsightGenerator,
    Pipeline,
    ProcessingGuard,
    SourceFolder,
)


MEETING_TRANSCRIPT = (
    "Thanks everyone for joining the quarterly planning call. We reviewed the hiring "
    "plan for the platform team, agreed to move the launch to March, and Dana will "
    "send the revised budget to finance by Friday."
)

ANALYSIS_JSON = json.dumps({
    "summary": "The team agreed to move the launch to March and revise the budget.",
    "keyPoints": ["Launch moves to March", "Hiring plan reviewed"],
    "actionItems": ["Dana sends revised budget by Friday"],
    "topics": ["planning", "hiring"],
    "sentiment": "positive",
})


# =============================================================================
# Sources
# =============================================================================

class FakeSource(SourceDriver):
    """In-memory source. Files are keyed by full path."""

    def __init__(self, backend: str = "dropbox", files: Optional[Dict[str, bytes]] = None,
                 links: bool = True) -> None:
        self.backend = backend
        self.files = dict(files or {})
        self.links = links
        self.list_calls = 0
        self.downloads: List[str] = []
        self.link_calls: List[str] = []
        self.temp_paths: List[str] = []
        self.fail_listing = False

    @property
    def display_name(self) -> str:
        return f"Fake {self.backend}"

    def _entry(self, path: str) -> RawFileEntry:
        data = self.files[path]
        return RawFileEntry(
            backend=self.backend,
            path=path,
            name=os.path.basename(path),
            size=len(data),
            id=f"id:{path}",
            revision=hashlib.sha256(data).hexdigest(),
        )

    def list_files(self, path: str = "", recursive: bool = False) -> List[RawFileEntry]:
        self.list_calls += 1
        if self.fail_listing:
            raise StorageError(f"Failed to list folder {path}")
        prefix = path.rstrip("/") + "/"
        return [self._entry(p) for p in sorted(self.files) if p.startswith(prefix)]

    def get_file(self, path: str) -> RawFileEntry:
        if path not in self.files:
            raise StorageError(f"File not found: {path}")
        return self._entry(path)

    def download_to_temp(self, entry: RawFileEntry, temp_dir: Optional[str] = None) -> str:
        self.downloads.append(entry.path)
        temp_path = make_temp_path(entry.name, temp_dir)
        with open(temp_path, "wb") as f:
            f.write(self.files[entry.path])
        self.temp_paths.append(temp_path)
        return temp_path

    def create_shareable_link(self, entry: RawFileEntry) -> Optional[str]:
        self.link_calls.append(entry.path)
        if not self.links:
            return None
        return f"https://share.example.com/s/{entry.id}"


# =============================================================================
# Models
# =============================================================================

class FakeLLM(LLM):
    """Scripted model. Analysis calls (with a system prompt) get ``analysis``,
    title calls get ``title``."""

    def __init__(self, analysis: str = ANALYSIS_JSON, title: str = "Quarterly Planning Call",
                 transcript: str = MEETING_TRANSCRIPT, vision_text: str = "",
                 fail_complete: bool = False, fail_transcribe: bool = False) -> None:
        self.analysis = analysis
        self.title = title
        self.transcript = transcript
        self.vision_text = vision_text
        self.fail_complete = fail_complete
        self.fail_transcribe = fail_transcribe
        self.calls: List[str] = []

    @property
    def name(self) -> str:
        return "fake"

    def complete(self, prompt: str, max_tokens: int = 1500,
                 temperature: float = 0.3, system: Optional[str] = None) -> str:
        self.calls.append("complete")
        if self.fail_complete:
            raise LLMError("model unavailable")
        return self.analysis if system else self.title

    def transcribe(self, audio_path: str) -> Transcription:
        self.calls.append("transcribe")
        if self.fail_transcribe:
            raise LLMError("transcription failed")
        return Transcription(text=self.transcript, duration=95.0, language="en", segments=[])

    def vision_extract(self, image_bytes: bytes, instruction: str = VISION_EXTRACTION_PROMPT,
                       mime_type: str = "image/png") -> str:
        self.calls.append("vision_extract")
        return self.vision_text


# =============================================================================
# Sinks
# =============================================================================

class FakeSink(Sink):
    """In-memory sink keyed by shareable link, or by name when there is none."""

    def __init__(self, available: bool = True) -> None:
        self.available = available
        self.pages: Dict[str, PageRef] = {}
        self.records: List[Any] = []
        self.lookups: List[tuple] = []
        self.writes = 0

    @property
    def display_name(self) -> str:
        return "Fake sink"

    @property
    def is_available(self) -> bool:
        return self.available

    def find_existing(self, link: Optional[str] = None,
                      display_name: Optional[str] = None) -> Optional[PageRef]:
        self.lookups.append((link, display_name))
        key = link or display_name
        return self.pages.get(key) if key else None

    def create_or_update(self, record, force_update: bool = False) -> PageRef:
        key = record.shareable_url or record.display_name
        existing = self.pages.get(key)
        if existing and not force_update:
            return existing
        self.writes += 1
        self.records.append(record)
        if existing:
            return PageRef(existing.page_id, existing.url, updated=True)
        ref = PageRef(f"page-{len(self.pages) + 1}",
                      f"https://notion.so/page-{len(self.pages) + 1}", created=True)
        self.pages[key] = ref
        return ref


class FakeNotionAPI:
    """Stand-in for sinks.NotionAPI with an in-memory database."""

    def __init__(self, properties: Optional[Dict[str, Dict[str, Any]]] = None) -> None:
        self.properties = properties if properties is not None else {
            "Name": {"type": "title"},
            "URL": {"type": "url"},
            "Main Entry": {"type": "rich_text"},
            "File Name": {"type": "rich_text"},
            "Sentiment": {"type": "select"},
            "Topics": {"type": "multi_select"},
        }
        self.pages: List[Dict[str, Any]] = []
        self.children: Dict[str, List[Dict[str, Any]]] = {}
        self.queries: List[Dict[str, Any]] = []
        self.write_calls: List[str] = []
        self.schema_calls = 0

    def retrieve_database(self, database_id: str) -> Dict[str, Any]:
        self.schema_calls += 1
        return {"id": database_id, "properties": self.properties}

    def _value(self, page: Dict[str, Any], name: str) -> Optional[str]:
        prop = page["properties"].get(name)
        if prop is None:
            return None
        if "url" in prop:
            return prop["url"]
        items = prop.get("rich_text") or prop.get("title") or []
        return "".join(item["text"]["content"] for item in items)

    def query_database(self, database_id: str,
                       query_filter: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        self.queries.append(query_filter or {})
        if not query_filter:
            return list(self.pages)
        name = query_filter["property"]
        condition = next(v for k, v in query_filter.items() if k != "property")
        results = []
        for page in self.pages:
            value = self._value(page, name)
            if value is None:
                continue
            if "contains" in condition and condition["contains"] in value:
                results.append(page)
            elif "equals" in condition and condition["equals"] == value:
                results.append(page)
        return results

    def _typed(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        # Notion echoes each property's type back in query results
        return {
            name: dict(value, type=self.properties.get(name, {}).get("type"))
            for name, value in properties.items()
        }

    def add_page(self, properties: Dict[str, Any]) -> Dict[str, Any]:
        page_id = f"page-{len(self.pages) + 1}"
        page = {"id": page_id, "url": f"https://notion.so/{page_id}",
                "properties": self._typed(properties)}
        self.pages.append(page)
        return page

    def create_page(self, database_id: str, properties: Dict[str, Any],
                    children: List[Dict[str, Any]]) -> Dict[str, Any]:
        self.write_calls.append("create_page")
        page = self.add_page(properties)
        self.children[page["id"]] = list(children)
        return page

    def update_page(self, page_id: str, properties: Dict[str, Any]) -> Dict[str, Any]:
        self.write_calls.append("update_page")
        page = next(p for p in self.pages if p["id"] == page_id)
        page["properties"].update(self._typed(properties))
        return page

    def delete_blocks(self, page_id: str) -> int:
        self.write_calls.append("delete_blocks")
        deleted = len(self.children.get(page_id, []))
        self.children[page_id] = []
        return deleted

    def append_children(self, block_id: str, children: List[Dict[str, Any]]) -> None:
        self.write_calls.append("append_children")
        self.children.setdefault(block_id, []).extend(children)


# =============================================================================
# Fixtures
# =============================================================================

@pytest.fixture
def temp_dir():
    """Create a temporary directory for testing."""
    dir_path = tempfile.mkdtemp(prefix="noteflow_test_")
    yield dir_path
    shutil.rmtree(dir_path, ignore_errors=True)


@pytest.fixture
def source():
    return FakeSource("dropbox", {
        "/Recordings/team-sync.m4a": b"audio bytes for the weekly sync",
        "/Recordings/notes.txt": b"not a recording",
    })


@pytest.fixture
def llm():
    return FakeLLM()


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def make_pipeline(temp_dir):
    """Build a Pipeline around fakes; keyword arguments override the defaults."""

    def _make(source, llm, sink, budget=None, guard=None, folder="/Recordings",
              families=frozenset({FileFamily.SPEECH, FileFamily.DOCUMENT}), **kwargs):
        return Pipeline(
            folders=[SourceFolder(source, folder, FilterPolicy(families))],
            extractor=ContentExtractor.from_llm(llm),
            insights=InsightGenerator(llm),
            sinks={FileFamily.SPEECH: sink, FileFamily.DOCUMENT: sink},
            budget=budget or CallBudget(100),
            guard=guard or ProcessingGuard(),
            temp_dir=temp_dir,
            **kwargs,
        )

    return _make
