"""Notion database sink."""

import os
from typing import Any, Dict, List, Optional, TYPE_CHECKING

from extraction import FileFamily

from . import blocks
from .base import PageRef, Sink, SinkError
from .notion_api import NotionAPI

if TYPE_CHECKING:
    from workflows.file_metadata import PublishRecord


# Notion rejects multi_select option names longer than this, and commas in them
MULTI_SELECT_NAME_LIMIT = 100

SUMMARY_PLACEHOLDER = "Summary not available"


def normalize_display_name(name: str) -> str:
    """Name used for name-based lookups: the filename stem, whitespace collapsed."""
    stem = os.path.splitext(os.path.basename(name))[0]
    return " ".join(stem.split())


def _plain_text(items: List[Dict[str, Any]]) -> str:
    return "".join(item.get("plain_text") or item.get("text", {}).get("content", "")
                   for item in items)


def format_size(size_bytes: int) -> str:
    if size_bytes >= 1024 * 1024:
        return f"{size_bytes / 1024 / 1024:.1f} MB"
    if size_bytes >= 1024:
        return f"{size_bytes / 1024:.1f} KB"
    return f"{size_bytes} bytes"


class NotionSink(Sink):
    """Publishes records as pages of one Notion database.

    The database schema is fetched on first use and cached, so optional
    properties (summary, URL, file name, sentiment, topics) are written only
    when the database actually has them.
    """

    def __init__(self, api: NotionAPI, database_id: str, family: FileFamily,
                 url_property: str = "URL", summary_property: str = "Main Entry",
                 file_name_property: str = "File Name") -> None:
        self.api = api
        self.database_id = database_id
        self.family = family
        self.url_property = url_property
        self.summary_property = summary_property
        self.file_name_property = file_name_property
        self._schema: Optional[Dict[str, Dict[str, Any]]] = None

    @property
    def display_name(self) -> str:
        return f"Notion {self.family.value} database"

    # =========================================================================
    # Schema
    # =========================================================================

    @property
    def schema(self) -> Dict[str, Dict[str, Any]]:
        if self._schema is None:
            database = self.api.retrieve_database(self.database_id)
            self._schema = database.get("properties", {})
        return self._schema

    def _property_type(self, name: str) -> Optional[str]:
        prop = self.schema.get(name)
        return prop.get("type") if prop else None

    @property
    def title_property(self) -> str:
        for name, prop in self.schema.items():
            if prop.get("type") == "title":
                return name
        raise SinkError(f"Database {self.database_id} has no title property")

    # =========================================================================
    # Lookup
    # =========================================================================

    def _page_link(self, page: Dict[str, Any]) -> Optional[str]:
        prop = page.get("properties", {}).get(self.url_property)
        if not prop:
            return None
        if prop.get("type") == "url":
            return prop.get("url")
        if prop.get("type") == "rich_text":
            return _plain_text(prop.get("rich_text", [])) or None
        return None

    def _ref(self, page: Dict[str, Any]) -> PageRef:
        return PageRef(page_id=page["id"], url=page.get("url"))

    def _find_by_link(self, link: str) -> Optional[PageRef]:
        prop_type = self._property_type(self.url_property)
        if prop_type not in ("url", "rich_text"):
            return None

        pages = self.api.query_database(self.database_id, {
            "property": self.url_property,
            prop_type: {"contains": link},
        })
        # contains can match longer links that share a prefix
        for page in pages:
            if self._page_link(page) == link:
                return self._ref(page)
        return None

    def _find_by_name(self, display_name: str) -> Optional[PageRef]:
        name = normalize_display_name(display_name)
        if not name:
            return None

        if self._property_type(self.file_name_property) == "rich_text":
            query_filter = {"property": self.file_name_property, "rich_text": {"equals": name}}
        else:
            query_filter = {"property": self.title_property, "title": {"equals": name}}

        pages = self.api.query_database(self.database_id, query_filter)
        return self._ref(pages[0]) if pages else None

    @property
    def can_match_link(self) -> bool:
        return self._property_type(self.url_property) in ("url", "rich_text")

    def find_existing(self, link: Optional[str] = None,
                      display_name: Optional[str] = None) -> Optional[PageRef]:
        """Look up a page by link, or by display name when the link cannot be used."""
        if link and self.can_match_link:
            return self._find_by_link(link)
        if display_name:
            return self._find_by_name(display_name)
        return None

    # =========================================================================
    # Page content
    # =========================================================================

    def page_title(self, record: "PublishRecord") -> str:
        """Page title. Without a file name property the title is the name lookup key."""
        if self._property_type(self.file_name_property) == "rich_text":
            return record.insight.title
        return normalize_display_name(record.display_name) or record.insight.title

    def build_properties(self, record: "PublishRecord") -> Dict[str, Any]:
        insight = record.insight
        properties: Dict[str, Any] = {
            self.title_property: {"title": blocks.rich_text(self.page_title(record))},
        }

        if self._property_type(self.summary_property) == "rich_text":
            properties[self.summary_property] = {
                "rich_text": blocks.rich_text(insight.summary or SUMMARY_PLACEHOLDER)
            }

        url_type = self._property_type(self.url_property)
        if record.shareable_url and url_type == "url":
            properties[self.url_property] = {"url": record.shareable_url}
        elif record.shareable_url and url_type == "rich_text":
            properties[self.url_property] = {"rich_text": blocks.rich_text(record.shareable_url)}

        if self._property_type(self.file_name_property) == "rich_text":
            properties[self.file_name_property] = {
                "rich_text": blocks.rich_text(normalize_display_name(record.display_name))
            }

        if self._property_type("Sentiment") == "select":
            properties["Sentiment"] = {"select": {"name": insight.sentiment}}

        if self._property_type("Topics") == "multi_select":
            properties["Topics"] = {"multi_select": [
                {"name": topic.replace(",", " ")[:MULTI_SELECT_NAME_LIMIT]}
                for topic in insight.topics if topic.strip()
            ]}

        return properties

    def _detail_lines(self, record: "PublishRecord") -> List[str]:
        metadata = record.extraction.metadata
        lines = [
            f"Source: {record.source_path}",
            f"Size: {format_size(record.size_bytes)}",
        ]
        if record.family == FileFamily.SPEECH:
            if metadata.get("duration_display"):
                lines.append(f"Duration: {metadata['duration_display']}")
            if metadata.get("language"):
                lines.append(f"Language: {metadata['language']}")
        else:
            if metadata.get("page_count"):
                lines.append(f"Pages: {metadata['page_count']}")
            if metadata.get("extraction_method"):
                lines.append(f"Extraction method: {metadata['extraction_method']}")
            if metadata.get("confidence") is not None:
                lines.append(f"OCR confidence: {metadata['confidence']}%")
        lines.append(f"Processed: {record.processed_at.strftime('%Y-%m-%d %H:%M')}")
        return lines

    def build_blocks(self, record: "PublishRecord") -> List[Dict[str, Any]]:
        insight = record.insight
        children: List[Dict[str, Any]] = [blocks.heading_2("Summary")]
        children.extend(blocks.paragraphs(insight.summary or SUMMARY_PLACEHOLDER))

        if insight.key_points:
            children.append(blocks.heading_2("Key Points"))
            children.extend(blocks.bulleted_item(point) for point in insight.key_points)

        if insight.action_items:
            children.append(blocks.heading_2("Action Items"))
            children.extend(blocks.to_do(item) for item in insight.action_items)

        if insight.topics:
            children.append(blocks.heading_2("Topics"))
            children.append(blocks.paragraph(", ".join(insight.topics)))

        children.append(blocks.heading_3("Details"))
        children.extend(blocks.bulleted_item(line) for line in self._detail_lines(record))

        children.append(blocks.divider())
        if record.family == FileFamily.SPEECH:
            children.append(blocks.heading_2("Full Transcript"))
        else:
            children.append(blocks.heading_2("Extracted Text"))
        children.extend(blocks.paragraphs(record.extraction.text))
        return children

    # =========================================================================
    # Publishing
    # =========================================================================

    def create_or_update(self, record: "PublishRecord", force_update: bool = False) -> PageRef:
        existing = self.find_existing(link=record.shareable_url, display_name=record.display_name)

        if existing and not force_update:
            return existing

        properties = self.build_properties(record)
        children = self.build_blocks(record)

        if existing:
            self.api.update_page(existing.page_id, properties)
            self.api.delete_blocks(existing.page_id)
            self.api.append_children(existing.page_id, children)
            return PageRef(page_id=existing.page_id, url=existing.url, updated=True)

        page = self.api.create_page(self.database_id, properties, children)
        return PageRef(page_id=page["id"], url=page.get("url"), created=True)
