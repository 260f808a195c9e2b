"""Persistence gateway contract the event store depends on."""
from abc import ABC, abstractmethod
from typing import Any, Dict, List

from planner.models import Event


class EventGateway(ABC):
    """
    Boundary between the event store and remote storage.

    Implementations surface every transport or storage failure as
    RemoteError, and a missing event as NotFound. They do not retry and
    perform no business validation.
    """

    @abstractmethod
    def get_all(self) -> List[Event]:
        """Return all events ordered by date."""

    @abstractmethod
    def get_by_id(self, event_id: str) -> Event:
        """Return one event, raising NotFound if absent."""

    @abstractmethod
    def create(self, draft: Dict[str, Any]) -> Event:
        """Persist a draft; the remote side assigns id, timestamps and isArchived."""

    @abstractmethod
    def update(self, event_id: str, fields: Dict[str, Any]) -> Event:
        """Merge fields into the stored event and stamp a new updatedAt."""

    @abstractmethod
    def delete(self, event_id: str) -> None:
        """Permanently remove an event, raising NotFound if absent."""

    @abstractmethod
    def upload_image(self, data: bytes, content_type: str = 'image/jpeg') -> str:
        """Upload binary image data and return its public URL."""

    def archive(self, event_id: str) -> None:
        """Soft-delete an event by flagging it archived."""
        self.update(event_id, {'isArchived': True})
