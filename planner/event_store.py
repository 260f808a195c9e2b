"""
Event store: the authoritative in-memory view of events.

Every operation is a coroutine that may suspend on the gateway. Gateway
calls are blocking, so they run in a worker thread via asyncio.to_thread;
store state itself is only read and written on the event loop.
"""
import asyncio
import logging
import uuid
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from gateway.base import EventGateway
from planner.errors import NotFound, PlannerError, ValidationError
from planner.models import (
    RSVP,
    Event,
    EventDraft,
    EventPatch,
    Expense,
    StoreState,
    StoreStatus,
    touch_timestamp,
)
from planner.roster import create_default_rsvps
from planner.rsvp import apply_rating, merge_rsvp, validate_rating

logger = logging.getLogger(__name__)

Listener = Callable[[StoreState], None]

DEFAULT_SITE_URL = 'https://alchies.netlify.app'


def _sort_key(event: Event) -> Tuple[str, str]:
    return event.date, event.time


class EventStore:
    """Holds events and reconciles them with a persistence gateway."""

    def __init__(self, gateway: EventGateway, site_url: str = DEFAULT_SITE_URL):
        """
        Initialize an empty, idle store.

        Args:
            gateway: Persistence gateway used for all remote calls
            site_url: Origin used to synthesize shareable links
        """
        self._gateway = gateway
        self.site_url = site_url.rstrip('/')
        self._state = StoreState()
        self._listeners: List[Listener] = []
        self._fetch_generation = 0
        self._archive_versions: Dict[str, int] = {}
        self._sync_tasks: Set[asyncio.Task] = set()

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def events(self) -> Tuple[Event, ...]:
        return self._state.events

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener called with the new state after every change.

        Returns:
            Function that removes the listener again
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, **changes: Any) -> None:
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception as e:
                logger.error(f"Store listener failed: {e}", exc_info=True)

    def get_event(self, event_id: str) -> Optional[Event]:
        for event in self._state.events:
            if event.id == event_id:
                return event
        return None

    def upcoming_events(self) -> List[Event]:
        return [event for event in self._state.events if not event.is_archived]

    def archived_events(self) -> List[Event]:
        return [event for event in self._state.events if event.is_archived]

    def memories_by_month(self) -> Dict[str, List[Event]]:
        """
        Group archived events under "Month YYYY" labels.

        Returns:
            Ordered dict of label -> events, newest month first
        """
        groups: Dict[str, List[Event]] = {}
        months: Dict[str, datetime] = {}

        for event in self.archived_events():
            try:
                event_date = datetime.strptime(event.date[:10], '%Y-%m-%d')
            except ValueError:
                logger.warning(f"Skipping memory with invalid date '{event.date}' ({event.id})")
                continue
            label = event_date.strftime('%B %Y')
            groups.setdefault(label, []).append(event)
            months[label] = event_date.replace(day=1)

        ordered = sorted(groups, key=lambda label: months[label], reverse=True)
        return {label: groups[label] for label in ordered}

    def visited_locations(self) -> List[Event]:
        """Archived events with coordinates, for the memories map."""
        return [event for event in self.archived_events() if event.has_coordinates]

    def _carry_pending_flip(self, event: Event, sets_archived: bool = False) -> Event:
        """
        Reconcile a remote copy with a pending local archive flip.

        The flip is kept only while its sync is still in flight and the remote
        write did not itself set isArchived. Otherwise the remote copy wins and
        the pending flag is dropped.
        """
        local = self.get_event(event.id)
        if local is None or not local.pending_sync:
            return event
        if event.id in self._archive_versions and not sets_archived:
            return replace(event, is_archived=local.is_archived, pending_sync=True)
        self._archive_versions.pop(event.id, None)
        return event

    def _replace_local(self, event: Event) -> None:
        if self.get_event(event.id) is None:
            logger.debug(f"Event {event.id} not in local collection, not replaced")
            return
        self._set_state(events=tuple(
            event if existing.id == event.id else existing
            for existing in self._state.events
        ))

    async def _call(self, action: str, func: Callable, *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except PlannerError as e:
            logger.error(f"Failed to {action}: {e}")
            raise

    async def fetch_all(self) -> Tuple[Event, ...]:
        """
        Replace the whole collection with the gateway's events.

        Failures are recorded in state (status=failed, error) and not raised.
        The result of a fetch superseded by a newer fetch_all is discarded.

        Returns:
            The events held by the store after the call
        """
        self._fetch_generation += 1
        generation = self._fetch_generation
        self._set_state(status=StoreStatus.LOADING)

        try:
            events = await self._call('fetch events', self._gateway.get_all)
        except PlannerError as e:
            if generation == self._fetch_generation:
                self._set_state(
                    status=StoreStatus.FAILED,
                    error=str(e) or 'Failed to fetch events'
                )
            return self._state.events

        if generation != self._fetch_generation:
            logger.info(f"Discarding superseded fetch result ({len(events)} events)")
            return self._state.events

        ordered = tuple(sorted(
            (self._carry_pending_flip(event) for event in events), key=_sort_key
        ))
        self._set_state(events=ordered, status=StoreStatus.SUCCEEDED, error=None)
        logger.info(f"Loaded {len(ordered)} events")
        return ordered

    async def create(self, draft: EventDraft) -> Event:
        """
        Create an event and append it to the collection.

        Empty RSVP lists are seeded from the default roster and a shareable
        link is generated when missing. Required fields are not checked
        here; see EventDraftValidator.
        """
        payload = draft.to_dict()
        if not draft.rsvps:
            payload['rsvps'] = [rsvp.to_dict() for rsvp in create_default_rsvps()]
        if not draft.shareable_link:
            payload['shareableLink'] = f"{self.site_url}/event/{uuid.uuid4()}"

        event = await self._call('create event', self._gateway.create, payload)
        self._set_state(events=self._state.events + (event,))
        logger.info(f"Created event '{event.title}' ({event.id})")
        return event

    async def update_fields(self, event_id: str, patch: EventPatch) -> Event:
        """Send a partial update and replace the local copy with the result."""
        if patch.is_empty():
            raise ValidationError("Patch does not set any field")

        event = await self._call(
            'update event', self._gateway.update, event_id, patch.to_dict()
        )
        event = self._carry_pending_flip(
            event, sets_archived=patch.is_archived is not None
        )
        self._replace_local(event)
        return event

    async def update_rsvp(self, event_id: str, rsvp: RSVP) -> Event:
        """
        Replace or append one user's RSVP.

        Re-reads the event first, then writes the whole RSVP array back in a
        single update. The read and the write are not atomic: a concurrent
        update from another client between the two is lost.
        """
        validate_rating(rsvp.rating)
        latest = await self._call('load event', self._gateway.get_by_id, event_id)
        rsvps = merge_rsvp(latest.rsvps, rsvp)
        return await self._write_rsvps(event_id, rsvps)

    async def update_rating(
        self, event_id: str, user_id: str, rating: Optional[float]
    ) -> Event:
        """Set (or clear, with None) one user's venue rating."""
        validate_rating(rating)
        latest = await self._call('load event', self._gateway.get_by_id, event_id)
        rsvps = apply_rating(latest.rsvps, user_id, rating)
        return await self._write_rsvps(event_id, rsvps)

    async def _write_rsvps(self, event_id: str, rsvps: List[RSVP]) -> Event:
        payload = {'rsvps': [rsvp.to_dict() for rsvp in rsvps]}
        event = await self._call('update RSVPs', self._gateway.update, event_id, payload)
        event = self._carry_pending_flip(event)
        self._replace_local(event)
        return event

    async def archive(self, event_id: str) -> Event:
        """Optimistically archive; see _flip_archived."""
        return self._flip_archived(event_id, True)

    async def unarchive(self, event_id: str) -> Event:
        return self._flip_archived(event_id, False)

    def _flip_archived(self, event_id: str, archived: bool) -> Event:
        """
        Flip isArchived locally and sync it to the gateway in the background.

        The local change is visible immediately and marked pending_sync. A
        gateway failure is logged, never raised, and leaves pending_sync set
        until the next remote copy of the event replaces it.

        Raises:
            NotFound: If the event is not in the local collection
        """
        event = self.get_event(event_id)
        if event is None:
            raise NotFound(f"Event {event_id} is not loaded")

        flipped = replace(
            event,
            is_archived=archived,
            updated_at=touch_timestamp(event.updated_at),
            pending_sync=True
        )
        self._replace_local(flipped)

        version = self._archive_versions.get(event_id, 0) + 1
        self._archive_versions[event_id] = version

        task = asyncio.create_task(self._sync_archive(event_id, archived, version))
        self._sync_tasks.add(task)
        task.add_done_callback(self._sync_tasks.discard)
        return flipped

    async def _sync_archive(self, event_id: str, archived: bool, version: int) -> None:
        try:
            if archived:
                await asyncio.to_thread(self._gateway.archive, event_id)
            else:
                await asyncio.to_thread(
                    self._gateway.update, event_id, {'isArchived': False}
                )
        except PlannerError as e:
            logger.warning(
                f"Could not sync archive state of event {event_id} "
                f"(isArchived={archived}), keeping local change: {e}"
            )
            if self._archive_versions.get(event_id) == version:
                del self._archive_versions[event_id]
            return

        if self._archive_versions.get(event_id) != version:
            # a newer toggle or a remote copy owns the pending flag
            return
        del self._archive_versions[event_id]

        event = self.get_event(event_id)
        if event is not None and event.pending_sync:
            self._replace_local(replace(event, pending_sync=False))

    async def wait_for_sync(self) -> None:
        """Wait until every background archive sync has finished."""
        while self._sync_tasks:
            await asyncio.gather(*list(self._sync_tasks))

    async def delete_event(self, event_id: str) -> None:
        """Permanently delete; the local entry is removed only on success."""
        await self._call('delete event', self._gateway.delete, event_id)
        self._archive_versions.pop(event_id, None)
        self._set_state(events=tuple(
            event for event in self._state.events if event.id != event_id
        ))
        logger.info(f"Deleted event {event_id}")

    async def upload_event_image(
        self, event_id: str, data: bytes, content_type: str = 'image/jpeg'
    ) -> Event:
        url = await self._call(
            'upload image', self._gateway.upload_image, data, content_type
        )
        return await self.update_fields(event_id, EventPatch(image_url=url))

    async def add_expense(self, event_id: str, expense: Expense) -> Event:
        """
        Append an itemized expense to the event.

        totalExpense is tracked separately and is not recomputed.
        """
        if expense.amount is None or expense.amount < 0:
            raise ValidationError(f"Expense amount must be >= 0, got {expense.amount}")
        if expense.id is None:
            expense = replace(expense, id=str(uuid.uuid4()))

        latest = await self._call('load event', self._gateway.get_by_id, event_id)
        expenses = list(latest.expenses or []) + [expense]
        payload = {'expenses': [item.to_dict() for item in expenses]}
        event = await self._call('add expense', self._gateway.update, event_id, payload)
        event = self._carry_pending_flip(event)
        self._replace_local(event)
        return event

    async def set_total_expense(self, event_id: str, amount: float) -> Event:
        if amount is None or amount < 0:
            raise ValidationError(f"Total expense must be >= 0, got {amount}")
        return await self.update_fields(event_id, EventPatch(total_expense=amount))
