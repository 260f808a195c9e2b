"""AWS Lambda handlers for the Alchies events and image upload API."""
import json
import logging
import os
import time
import uuid
from typing import Any, Dict, Optional

from botocore.exceptions import ClientError

from planner.models import utc_now_iso
from planner.roster import create_default_rsvps
from storage.event_repository import EventRepository
from storage.image_host import S3ImageHost, fallback_image


EVENTS_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type',
    'Access-Control-Allow-Methods': 'GET, POST, PUT, DELETE',
    'Content-Type': 'application/json'
}

UPLOAD_HEADERS = {
    'Access-Control-Allow-Origin': '*',
    'Access-Control-Allow-Headers': 'Content-Type',
    'Access-Control-Allow-Methods': 'POST, OPTIONS',
    'Content-Type': 'application/json'
}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    EXTRA_FIELDS = ('http_method', 'path', 'status_code', 'duration_ms', 'error_type')

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including known request fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for name in self.EXTRA_FIELDS:
            if hasattr(record, name):
                log_data[name] = getattr(record, name)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def _response(status_code: int, body: Any, headers: Dict[str, str]) -> Dict[str, Any]:
    return {
        'statusCode': status_code,
        'headers': dict(headers),
        'body': json.dumps(body)
    }


def _not_found() -> Dict[str, Any]:
    return _response(404, {'message': 'Event not found'}, EVENTS_HEADERS)


def _event_id_from_request(event: Dict[str, Any]) -> Optional[str]:
    """
    Extract the event id from path parameters or the last path segment.

    Returns:
        Event id, or None for the collection path (/events)
    """
    path_parameters = event.get('pathParameters') or {}
    if path_parameters.get('id'):
        return path_parameters['id']

    segments = [segment for segment in (event.get('path') or '').split('/') if segment]
    if segments and segments[-1] != 'events':
        return segments[-1]
    return None


def _parse_body(event: Dict[str, Any]) -> Dict[str, Any]:
    return json.loads(event.get('body') or '{}')


def _get_events(repository: EventRepository, event_id: Optional[str]) -> Dict[str, Any]:
    if event_id:
        document = repository.get_event(event_id)
        if document is None:
            return _not_found()
        return _response(200, document, EVENTS_HEADERS)

    return _response(200, repository.list_events(), EVENTS_HEADERS)


def _create_event(
    repository: EventRepository, data: Dict[str, Any], site_url: str
) -> Dict[str, Any]:
    """
    Create an event document from a draft.

    Seeds the default roster when no RSVPs are given and generates a
    shareable link when missing. id, timestamps and isArchived are always
    assigned here.
    """
    if not data.get('rsvps'):
        data['rsvps'] = [rsvp.to_dict() for rsvp in create_default_rsvps()]

    if not data.get('shareableLink'):
        data['shareableLink'] = f"{site_url.rstrip('/')}/event/{uuid.uuid4()}"

    now = utc_now_iso()
    document = {
        **data,
        'id': str(uuid.uuid4()),
        'createdAt': now,
        'updatedAt': now,
        'isArchived': False
    }
    repository.put_event(document)
    return _response(201, document, EVENTS_HEADERS)


def _update_event(
    repository: EventRepository, event_id: Optional[str], data: Dict[str, Any]
) -> Dict[str, Any]:
    if not event_id:
        return _not_found()

    document = repository.update_event(event_id, data)
    if document is None:
        return _not_found()
    return _response(200, document, EVENTS_HEADERS)


def _delete_event(
    repository: EventRepository, event_id: Optional[str], query: Dict[str, str]
) -> Dict[str, Any]:
    """Archive by default; remove the document when ?permanent=true."""
    if not event_id:
        return _not_found()

    if query.get('permanent') == 'true':
        if not repository.delete_event(event_id):
            return _not_found()
        return _response(200, {'message': 'Event permanently deleted'}, EVENTS_HEADERS)

    if repository.archive_event(event_id) is None:
        return _not_found()
    return _response(200, {'message': 'Event archived successfully'}, EVENTS_HEADERS)


def events_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for the /events resource.

    Args:
        event: API Gateway proxy event
        context: Lambda context object

    Returns:
        API Gateway proxy response with CORS headers
    """
    # Read configuration from environment variables
    table_name = os.environ.get('TABLE_NAME', 'alchies-events')
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    site_url = os.environ.get('SITE_URL', 'https://alchies.netlify.app')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    method = event.get('httpMethod', '')
    path = event.get('path', '')
    start_time = time.time()

    if method == 'OPTIONS':
        return _response(200, {'message': 'CORS enabled'}, EVENTS_HEADERS)

    try:
        repository = EventRepository(table_name=table_name)
        event_id = _event_id_from_request(event)

        if method == 'GET':
            response = _get_events(repository, event_id)
        elif method == 'POST':
            response = _create_event(repository, _parse_body(event), site_url)
        elif method == 'PUT':
            response = _update_event(repository, event_id, _parse_body(event))
        elif method == 'DELETE':
            response = _delete_event(
                repository, event_id, event.get('queryStringParameters') or {}
            )
        else:
            response = _response(405, {'message': 'Method not allowed'}, EVENTS_HEADERS)

    except Exception as e:
        logger.error(
            f"Events request failed: {str(e)}",
            extra={
                'http_method': method,
                'path': path,
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _response(
            500,
            {'message': 'Internal server error', 'error': str(e)},
            EVENTS_HEADERS
        )

    logger.info(
        f"{method} {path} -> {response['statusCode']}",
        extra={
            'http_method': method,
            'path': path,
            'status_code': response['statusCode'],
            'duration_ms': round((time.time() - start_time) * 1000, 1)
        }
    )
    return response


def upload_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler for POST /upload.

    Stores a base64 data URL image in S3. When no bucket is configured or
    the upload fails, a stock photo URL is returned with fallback=true so
    event creation is never blocked on the image.
    """
    log_level = os.environ.get('LOG_LEVEL', 'INFO')
    bucket = os.environ.get('IMAGE_BUCKET')
    public_base_url = os.environ.get('IMAGE_PUBLIC_BASE_URL')

    setup_logging(log_level)
    logger = logging.getLogger(__name__)

    method = event.get('httpMethod', '')
    if method == 'OPTIONS':
        return _response(200, {'message': 'CORS enabled'}, UPLOAD_HEADERS)
    if method != 'POST':
        return _response(405, {'message': 'Method not allowed'}, UPLOAD_HEADERS)

    try:
        image = _parse_body(event).get('image', '')

        if not bucket:
            logger.warning("IMAGE_BUCKET not configured, using fallback image URL")
            return _response(200, fallback_image().to_dict(), UPLOAD_HEADERS)

        image_host = S3ImageHost(bucket=bucket, public_base_url=public_base_url)
        try:
            result = image_host.upload_data_url(image)
        except (ClientError, ValueError) as e:
            logger.error(
                f"Image upload failed, using fallback image URL: {str(e)}",
                extra={'error_type': type(e).__name__}
            )
            result = fallback_image()

        return _response(200, result.to_dict(), UPLOAD_HEADERS)

    except Exception as e:
        logger.error(
            f"Upload request failed: {str(e)}",
            extra={'error_type': type(e).__name__},
            exc_info=True
        )
        return _response(
            500,
            {'message': 'Internal server error', 'error': str(e)},
            UPLOAD_HEADERS
        )
