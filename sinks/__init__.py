"""Publishing destinations for noteflow.

- NotionSink: one Notion database per content family
- UnavailableSink: placeholder when a destination is not configured

Usage:
    from sinks import create_sinks

    sinks = create_sinks(settings)
    ref = sinks[FileFamily.SPEECH].create_or_update(record)
"""

from typing import Dict, Optional, TYPE_CHECKING

from extraction import FileFamily

from .base import PageRef, Sink, SinkError, UnavailableSink
from .blocks import NOTION_TEXT_LIMIT, chunk_text
from .notion import NotionSink, normalize_display_name
from .notion_api import NotionAPI

if TYPE_CHECKING:
    from noteflow.settings import Settings


def create_sinks(settings: "Settings", api: Optional[NotionAPI] = None) -> Dict[FileFamily, Sink]:
    """Create the sink for each content family.

    A family whose database id (or the API key) is missing gets an
    UnavailableSink so the process can start degraded.
    """
    database_ids = {
        FileFamily.SPEECH: ("NOTION_DATABASE_ID", settings.notion_database_id),
        FileFamily.DOCUMENT: ("NOTION_PDF_DATABASE_ID", settings.notion_pdf_database_id),
    }

    if api is None and settings.notion_api_key:
        api = NotionAPI(settings.notion_api_key)

    sinks: Dict[FileFamily, Sink] = {}
    for family, (env_name, database_id) in database_ids.items():
        name = f"Notion {family.value} database"
        if api is None:
            sinks[family] = UnavailableSink(name, "NOTION_API_KEY is not set")
        elif not database_id:
            sinks[family] = UnavailableSink(name, f"{env_name} is not set")
        else:
            sinks[family] = NotionSink(api, database_id, family)
    return sinks


__all__ = [
    'NOTION_TEXT_LIMIT',
    'NotionAPI',
    'NotionSink',
    'PageRef',
    'Sink',
    'SinkError',
    'UnavailableSink',
    'chunk_text',
    'create_sinks',
    'normalize_display_name',
]
