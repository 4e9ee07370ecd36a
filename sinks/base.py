"""Base classes for sinks (publishing destinations).

A sink is the system of record: it answers "has this file been published?"
and writes the page for a PublishRecord.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from workflows.file_metadata import PublishRecord


class SinkError(Exception):
    """Base exception for sink operations."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass
class PageRef:
    """Reference to a page in the destination.

    Attributes:
        page_id: Destination page identifier
        url: Browser URL of the page
        created: True if this call created the page
        updated: True if this call overwrote an existing page
    """
    page_id: str
    url: Optional[str] = None
    created: bool = False
    updated: bool = False

    @property
    def written(self) -> bool:
        return self.created or self.updated


class Sink(ABC):
    """Abstract base class for destinations."""

    @property
    @abstractmethod
    def display_name(self) -> str:
        pass

    @property
    def is_available(self) -> bool:
        return True

    @abstractmethod
    def find_existing(self, link: Optional[str] = None,
                      display_name: Optional[str] = None) -> Optional[PageRef]:
        """Look up a previously published page.

        Lookup is by shareable link when one is given (exact match). Only when
        there is no link does it fall back to the normalized display name.

        Returns:
            PageRef of the existing page, or None
        """
        pass

    @abstractmethod
    def create_or_update(self, record: "PublishRecord", force_update: bool = False) -> PageRef:
        """Publish a record.

        - No existing page: create one.
        - Existing page and not force_update: return it without writing.
        - Existing page and force_update: overwrite its properties and content.

        Raises:
            SinkError: If the destination rejects the request
        """
        pass


class UnavailableSink(Sink):
    """Stand-in for a destination whose configuration is missing."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason

    @property
    def display_name(self) -> str:
        return f"{self.name} (unavailable: {self.reason})"

    @property
    def is_available(self) -> bool:
        return False

    def find_existing(self, link: Optional[str] = None,
                      display_name: Optional[str] = None) -> Optional[PageRef]:
        raise SinkError(f"{self.name} is not available: {self.reason}")

    def create_or_update(self, record: "PublishRecord", force_update: bool = False) -> PageRef:
        raise SinkError(f"{self.name} is not available: {self.reason}")
