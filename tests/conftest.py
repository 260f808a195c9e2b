"""Shared fixtures: fake AWS credentials, moto tables and an in-memory gateway."""
import copy
import threading
import uuid
from typing import Any, Dict, List, Optional, Set

import boto3
import pytest
from moto import mock_aws

from gateway.base import EventGateway
from planner.errors import NotFound, RemoteError
from planner.models import Event, User, touch_timestamp, utc_now_iso
from planner.roster import create_default_rsvps

TABLE_NAME = 'test-alchies-events'
BUCKET_NAME = 'test-alchies-images'


@pytest.fixture(autouse=True)
def aws_credentials(monkeypatch):
    """Keep boto3 away from real credentials and pin a region."""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def aws():
    with mock_aws():
        yield


@pytest.fixture
def events_table(aws):
    """Create a mock DynamoDB events table keyed by 'id'."""
    dynamodb = boto3.resource('dynamodb', region_name='us-east-1')
    table = dynamodb.create_table(
        TableName=TABLE_NAME,
        KeySchema=[{'AttributeName': 'id', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'id', 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST'
    )
    yield table


@pytest.fixture
def image_bucket(aws):
    s3 = boto3.client('s3', region_name='us-east-1')
    s3.create_bucket(Bucket=BUCKET_NAME)
    yield s3


class InMemoryGateway(EventGateway):
    """Gateway double backed by a dict of JSON documents."""

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None):
        self.documents: Dict[str, Dict[str, Any]] = {}
        self.unreachable = False
        self.failing: Set[str] = set()
        self.calls: List[str] = []
        for document in documents or []:
            self.documents[document['id']] = copy.deepcopy(document)

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if self.unreachable or name in self.failing:
            raise RemoteError(f"{name}: connection refused")

    def _require(self, event_id: str) -> Dict[str, Any]:
        if event_id not in self.documents:
            raise NotFound(f"Event {event_id} not found")
        return self.documents[event_id]

    def get_all(self) -> List[Event]:
        self._check('get_all')
        events = [Event.from_dict(copy.deepcopy(doc)) for doc in self.documents.values()]
        return sorted(events, key=lambda event: (event.date, event.time))

    def get_by_id(self, event_id: str) -> Event:
        self._check('get_by_id')
        return Event.from_dict(copy.deepcopy(self._require(event_id)))

    def create(self, draft: Dict[str, Any]) -> Event:
        self._check('create')
        now = utc_now_iso()
        document = {
            **copy.deepcopy(draft),
            'id': str(uuid.uuid4()),
            'createdAt': now,
            'updatedAt': now,
            'isArchived': False
        }
        self.documents[document['id']] = document
        return Event.from_dict(copy.deepcopy(document))

    def update(self, event_id: str, fields: Dict[str, Any]) -> Event:
        self._check('update')
        document = self._require(event_id)
        for key, value in copy.deepcopy(fields).items():
            if key not in ('id', 'createdAt'):
                document[key] = value
        document['updatedAt'] = touch_timestamp(document['updatedAt'])
        return Event.from_dict(copy.deepcopy(document))

    def delete(self, event_id: str) -> None:
        self._check('delete')
        self._require(event_id)
        del self.documents[event_id]

    def upload_image(self, data: bytes, content_type: str = 'image/jpeg') -> str:
        self._check('upload_image')
        return f"https://images.example.com/{uuid.uuid4()}.jpg"


class BlockingGateway(InMemoryGateway):
    """Gateway whose first get_all blocks and then returns a stale result."""

    def __init__(self, documents, stale_documents):
        super().__init__(documents)
        self.stale = [Event.from_dict(copy.deepcopy(doc)) for doc in stale_documents]
        self.entered = threading.Event()
        self.release = threading.Event()
        self._first = True
        self._lock = threading.Lock()

    def get_all(self) -> List[Event]:
        with self._lock:
            first, self._first = self._first, False
        if not first:
            return super().get_all()
        self.entered.set()
        self.release.wait(5)
        return self.stale


def make_event_document(event_id: str, **overrides: Any) -> Dict[str, Any]:
    """Build a stored event document with the default roster RSVPs."""
    document = {
        'id': event_id,
        'title': 'Beach BBQ',
        'date': '2023-06-15',
        'time': '15:00',
        'location': 'Sunny Beach',
        'description': "Let's have a BBQ at the beach!",
        'organizer': {'id': '1', 'name': 'Aubrey'},
        'rsvps': [rsvp.to_dict() for rsvp in create_default_rsvps()],
        'status': 'active',
        'shareableLink': f'https://alchies.netlify.app/event/{event_id}',
        'createdAt': '2023-05-01T12:00:00.000Z',
        'updatedAt': '2023-05-01T12:00:00.000Z',
        'isArchived': False
    }
    document.update(overrides)
    return document


@pytest.fixture
def organizer():
    return User(id='1', name='Aubrey')
