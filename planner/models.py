"""Data models for events, RSVPs and store state."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple


class RsvpStatus(str, Enum):
    ATTENDING = 'attending'
    NOT_ATTENDING = 'not-attending'
    UNDECIDED = 'undecided'


class EventStatus(str, Enum):
    ACTIVE = 'active'
    CANCELLED = 'cancelled'


class ExpenseCategory(str, Enum):
    FOOD = 'food'
    DRINKS = 'drinks'
    TRANSPORT = 'transport'
    ACTIVITIES = 'activities'
    ACCOMMODATION = 'accommodation'
    OTHER = 'other'


class StoreStatus(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


# Python attribute name -> JSON wire key, for names that differ
WIRE_KEYS = {
    'user_id': 'userId',
    'place_id': 'placeId',
    'paid_by': 'paidBy',
    'location_details': 'locationDetails',
    'image_url': 'imageUrl',
    'is_archived': 'isArchived',
    'created_at': 'createdAt',
    'updated_at': 'updatedAt',
    'shareable_link': 'shareableLink',
    'total_expense': 'totalExpense',
}


def utc_now_iso() -> str:
    """Current UTC time as YYYY-MM-DDTHH:MM:SS.mmmZ."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def parse_timestamp(value: str) -> datetime:
    """Parse an ISO-8601 timestamp, accepting a trailing 'Z'."""
    parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def touch_timestamp(previous: Optional[str] = None) -> str:
    """
    Produce a fresh updatedAt value that never precedes the previous one.

    Args:
        previous: The timestamp currently stored on the event, if any

    Returns:
        The current time, or ``previous`` when the local clock is behind it
    """
    now = utc_now_iso()
    if previous:
        try:
            if parse_timestamp(previous) > parse_timestamp(now):
                return previous
        except ValueError:
            pass
    return now


def _wire_value(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (list, tuple)):
        return [_wire_value(item) for item in value]
    if hasattr(value, 'to_dict'):
        return value.to_dict()
    return value


def _serialize(obj: Any, names: Tuple[str, ...]) -> Dict[str, Any]:
    """Serialize the named attributes of obj, skipping those set to None."""
    data = {}
    for name in names:
        value = getattr(obj, name)
        if value is None:
            continue
        data[WIRE_KEYS.get(name, name)] = _wire_value(value)
    return data


def _optional_number(value: Any) -> Optional[float]:
    if value is None:
        return None
    number = float(value)
    return int(number) if number.is_integer() else number


@dataclass(frozen=True)
class User:
    """Participant identity."""
    id: str
    name: str
    avatar: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self, ('id', 'name', 'avatar'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'User':
        return cls(id=str(data['id']), name=data.get('name', ''), avatar=data.get('avatar'))


@dataclass
class RSVP:
    """One user's response to one event."""
    user_id: str
    name: str = ''
    status: RsvpStatus = RsvpStatus.UNDECIDED
    comment: Optional[str] = None
    rating: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            'userId': self.user_id,
            'name': self.name,
            'status': self.status.value,
            'rating': self.rating,
        }
        if self.comment is not None:
            data['comment'] = self.comment
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RSVP':
        return cls(
            user_id=str(data['userId']),
            name=data.get('name', ''),
            status=RsvpStatus(data.get('status', RsvpStatus.UNDECIDED.value)),
            comment=data.get('comment'),
            rating=_optional_number(data.get('rating'))
        )


@dataclass
class LocationDetails:
    """Geocoded venue information."""
    place_id: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self, ('place_id', 'latitude', 'longitude'))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'LocationDetails':
        return cls(
            place_id=data.get('placeId'),
            latitude=_optional_number(data.get('latitude')),
            longitude=_optional_number(data.get('longitude'))
        )


@dataclass
class Expense:
    """A single shared cost attached to an event."""
    amount: float
    description: str
    date: str
    paid_by: str
    category: ExpenseCategory = ExpenseCategory.OTHER
    id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(
            self, ('id', 'amount', 'description', 'date', 'paid_by', 'category')
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Expense':
        return cls(
            id=data.get('id'),
            amount=_optional_number(data['amount']),
            description=data.get('description', ''),
            date=data.get('date', ''),
            paid_by=str(data['paidBy']),
            category=ExpenseCategory(data.get('category', ExpenseCategory.OTHER.value))
        )


def _parse_optional_fields(data: Dict[str, Any]) -> Dict[str, Any]:
    """Parse the optional Event fields shared by drafts and full events."""
    location_details = data.get('locationDetails')
    status = data.get('status')
    expenses = data.get('expenses')
    return {
        'location_details': (
            LocationDetails.from_dict(location_details) if location_details else None
        ),
        'image_url': data.get('imageUrl'),
        'status': EventStatus(status) if status else None,
        'shareable_link': data.get('shareableLink'),
        'total_expense': _optional_number(data.get('totalExpense')),
        'expenses': (
            [Expense.from_dict(item) for item in expenses] if expenses is not None else None
        ),
    }


_CONTENT_FIELDS = (
    'title', 'date', 'time', 'location', 'location_details', 'description',
    'image_url', 'organizer', 'rsvps', 'status', 'shareable_link',
    'total_expense', 'expenses',
)


@dataclass
class EventDraft:
    """An event as submitted by the caller, before the server assigns ids."""
    title: str
    date: str
    time: str
    location: str
    organizer: User
    description: str = ''
    rsvps: List[RSVP] = field(default_factory=list)
    location_details: Optional[LocationDetails] = None
    image_url: Optional[str] = None
    status: Optional[EventStatus] = None
    shareable_link: Optional[str] = None
    total_expense: Optional[float] = None
    expenses: Optional[List[Expense]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self, _CONTENT_FIELDS)


@dataclass
class Event:
    """The central aggregate: an event with its nested RSVPs and expenses."""
    id: str
    title: str
    date: str
    time: str
    location: str
    organizer: User
    created_at: str
    updated_at: str
    description: str = ''
    rsvps: List[RSVP] = field(default_factory=list)
    is_archived: bool = False
    location_details: Optional[LocationDetails] = None
    image_url: Optional[str] = None
    status: Optional[EventStatus] = None
    shareable_link: Optional[str] = None
    total_expense: Optional[float] = None
    expenses: Optional[List[Expense]] = None
    # Local only: an optimistic archive flip not yet confirmed remotely
    pending_sync: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(
            self, ('id',) + _CONTENT_FIELDS + ('is_archived', 'created_at', 'updated_at')
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Event':
        return cls(
            id=str(data['id']),
            title=data['title'],
            date=data['date'],
            time=data['time'],
            location=data['location'],
            organizer=User.from_dict(data['organizer']),
            created_at=data['createdAt'],
            updated_at=data['updatedAt'],
            description=data.get('description', ''),
            rsvps=[RSVP.from_dict(item) for item in data.get('rsvps') or []],
            is_archived=bool(data.get('isArchived', False)),
            **_parse_optional_fields(data)
        )

    def find_rsvp(self, user_id: str) -> Optional[RSVP]:
        for rsvp in self.rsvps:
            if rsvp.user_id == user_id:
                return rsvp
        return None

    def time_range(self) -> Tuple[str, Optional[str]]:
        """
        Split the time field into start and end.

        Returns:
            Tuple of (start_time, end_time), end_time is None for a single time
        """
        if '-' in self.time:
            parts = self.time.split('-')
            start_time = parts[0].strip()
            end_time = parts[1].strip() or None
        else:
            start_time = self.time.strip()
            end_time = None

        return start_time, end_time

    @property
    def has_coordinates(self) -> bool:
        details = self.location_details
        return bool(details and details.latitude is not None and details.longitude is not None)


@dataclass
class EventPatch:
    """
    Typed partial update for an event.

    Only fields that are set are sent. ``id`` and ``createdAt`` are
    deliberately absent: they never change after creation.
    """
    title: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    location: Optional[str] = None
    location_details: Optional[LocationDetails] = None
    description: Optional[str] = None
    image_url: Optional[str] = None
    organizer: Optional[User] = None
    rsvps: Optional[List[RSVP]] = None
    status: Optional[EventStatus] = None
    is_archived: Optional[bool] = None
    shareable_link: Optional[str] = None
    total_expense: Optional[float] = None
    expenses: Optional[List[Expense]] = None

    def to_dict(self) -> Dict[str, Any]:
        return _serialize(self, _CONTENT_FIELDS + ('is_archived',))

    def is_empty(self) -> bool:
        return not self.to_dict()


@dataclass(frozen=True)
class StoreState:
    """Immutable snapshot of the event store handed to readers."""
    events: Tuple[Event, ...] = ()
    status: StoreStatus = StoreStatus.IDLE
    error: Optional[str] = None
