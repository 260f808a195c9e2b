"""HTTP implementation of the event gateway."""
import base64
import logging
import os
from typing import Any, Dict, List, Optional

import requests

from gateway.base import EventGateway
from planner.errors import NotFound, RemoteError
from planner.models import Event

logger = logging.getLogger(__name__)


class EventsApiGateway(EventGateway):
    """Client for the events and upload serverless functions."""

    DEFAULT_BASE_URL = 'http://localhost:8888/.netlify/functions'

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the gateway client.

        Args:
            base_url: Root URL under which /events and /upload are served
            timeout: HTTP request timeout in seconds (default: 30)
            session: Optional requests session to reuse connections
        """
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({'Content-Type': 'application/json'})

    @classmethod
    def from_env(cls) -> 'EventsApiGateway':
        """Build a client from EVENTS_API_URL and TIMEOUT_SECONDS."""
        return cls(
            base_url=os.environ.get('EVENTS_API_URL', cls.DEFAULT_BASE_URL),
            timeout=int(os.environ.get('TIMEOUT_SECONDS', '30'))
        )

    def get_all(self) -> List[Event]:
        payload = self._request('GET', '/events')
        events = [self._parse_event(item) for item in payload]
        events.sort(key=lambda event: (event.date, event.time))
        logger.info(f"Fetched {len(events)} events")
        return events

    def get_by_id(self, event_id: str) -> Event:
        return self._parse_event(self._request('GET', f'/events/{event_id}'))

    def create(self, draft: Dict[str, Any]) -> Event:
        event = self._parse_event(self._request('POST', '/events', json=draft))
        logger.info(f"Created event {event.id}")
        return event

    def update(self, event_id: str, fields: Dict[str, Any]) -> Event:
        return self._parse_event(
            self._request('PUT', f'/events/{event_id}', json=fields)
        )

    def archive(self, event_id: str) -> None:
        self._request('DELETE', f'/events/{event_id}')

    def delete(self, event_id: str) -> None:
        self._request('DELETE', f'/events/{event_id}', params={'permanent': 'true'})
        logger.info(f"Permanently deleted event {event_id}")

    def upload_image(self, data: bytes, content_type: str = 'image/jpeg') -> str:
        """
        Upload an image as a base64 data URL.

        Args:
            data: Raw image bytes
            content_type: MIME type of the image

        Returns:
            Public URL of the stored image, possibly a stock fallback
        """
        encoded = base64.b64encode(data).decode('ascii')
        payload = self._request(
            'POST', '/upload', json={'image': f'data:{content_type};base64,{encoded}'}
        )
        if not isinstance(payload, dict) or not payload.get('url'):
            raise RemoteError("Upload response did not include an image URL")
        if payload.get('fallback'):
            logger.warning("Image host unavailable, received fallback image URL")
        return payload['url']

    def _request(self, method: str, path: str, **kwargs) -> Any:
        """
        Issue one HTTP request and decode the JSON body.

        Raises:
            NotFound: On a 404 response
            RemoteError: On any other HTTP error or transport failure
        """
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise RemoteError(f"{method} {path} failed: {e}") from e

        if response.status_code == 404:
            raise NotFound(self._error_message(response, 'Event not found'))

        try:
            response.raise_for_status()
        except requests.HTTPError as e:
            message = self._error_message(response, str(e))
            logger.error(f"{method} {url} returned {response.status_code}: {message}")
            raise RemoteError(message, status_code=response.status_code) from e

        try:
            return response.json()
        except ValueError as e:
            raise RemoteError(f"Invalid JSON from {method} {path}") from e

    def _error_message(self, response: requests.Response, default: str) -> str:
        try:
            return response.json().get('message', default)
        except (ValueError, AttributeError):
            return default

    def _parse_event(self, data: Dict[str, Any]) -> Event:
        try:
            return Event.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise RemoteError(f"Malformed event payload: {e}") from e
