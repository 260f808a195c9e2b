"""RSVP reconciliation: merge one changed RSVP into an event's list."""
from dataclasses import dataclass, replace
from typing import List, Optional

from planner.errors import NotFound, ValidationError
from planner.models import RSVP, RsvpStatus

MIN_RATING = 0
MAX_RATING = 10


@dataclass
class RsvpSummary:
    """Attendance counts for an event card."""
    attending: int
    not_attending: int
    undecided: int
    average_rating: Optional[float]


def merge_rsvp(rsvps: List[RSVP], rsvp: RSVP) -> List[RSVP]:
    """
    Replace the caller's RSVP in place, or append it if the user is new.

    The incoming record is taken as the full desired end state; nothing is
    carried over from the record it replaces.

    Args:
        rsvps: Current RSVP list of the event
        rsvp: The changed RSVP

    Returns:
        A new list holding exactly one record for rsvp.user_id
    """
    merged = []
    replaced = False
    for existing in rsvps:
        if existing.user_id != rsvp.user_id:
            merged.append(existing)
        elif not replaced:
            merged.append(rsvp)
            replaced = True
        # later duplicates of the same user are dropped

    if not replaced:
        merged.append(rsvp)
    return merged


def validate_rating(rating: Optional[float]) -> None:
    """Raise ValidationError unless rating is None or a number in 0-10."""
    if rating is None:
        return
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        raise ValidationError(f"Rating must be a number or None, got {rating!r}")
    if not MIN_RATING <= rating <= MAX_RATING:
        raise ValidationError(
            f"Rating must be between {MIN_RATING} and {MAX_RATING}, got {rating}"
        )


def apply_rating(rsvps: List[RSVP], user_id: str, rating: Optional[float]) -> List[RSVP]:
    """
    Set one user's rating, leaving every other field untouched.

    Raises:
        NotFound: If the user has no RSVP on this event
    """
    validate_rating(rating)
    for index, existing in enumerate(rsvps):
        if existing.user_id == user_id:
            updated = list(rsvps)
            updated[index] = replace(existing, rating=rating)
            return updated
    raise NotFound(f"No RSVP for user {user_id}")


def summarize_rsvps(rsvps: List[RSVP]) -> RsvpSummary:
    ratings = [rsvp.rating for rsvp in rsvps if rsvp.rating is not None]
    return RsvpSummary(
        attending=sum(1 for rsvp in rsvps if rsvp.status == RsvpStatus.ATTENDING),
        not_attending=sum(1 for rsvp in rsvps if rsvp.status == RsvpStatus.NOT_ATTENDING),
        undecided=sum(1 for rsvp in rsvps if rsvp.status == RsvpStatus.UNDECIDED),
        average_rating=round(sum(ratings) / len(ratings), 2) if ratings else None
    )
