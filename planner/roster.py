"""Default roster of participants invited to every event."""
from typing import List, Optional

from planner.models import RSVP, RsvpStatus, User


DEFAULT_USERS = (
    User(id='1', name='Aubrey'),
    User(id='2', name='Tze'),
    User(id='3', name='Tram'),
    User(id='4', name='Jojo', avatar='https://i.pravatar.cc/150?img=4'),
    User(id='5', name='Cameron', avatar='https://i.pravatar.cc/150?img=5'),
    User(id='6', name='Cindy'),
    User(id='7', name='Stevie'),
    User(id='8', name='Caden', avatar='https://i.pravatar.cc/150?img=8'),
    User(id='9', name='Cara', avatar='https://i.pravatar.cc/150?img=9'),
    User(id='10', name='Patti'),
    User(id='11', name='James'),
    User(id='12', name='Moe'),
    User(id='13', name='Venessa'),
    User(id='14', name='Vivek'),
)


def default_users() -> List[User]:
    return list(DEFAULT_USERS)


def get_user(user_id: str) -> Optional[User]:
    """Look up a roster member by id, None if unknown."""
    for user in DEFAULT_USERS:
        if user.id == user_id:
            return user
    return None


def create_default_rsvps() -> List[RSVP]:
    """
    Build a fresh all-undecided RSVP list, one entry per roster member.

    Returns:
        New RSVP objects on every call, so callers may mutate them freely
    """
    return [
        RSVP(user_id=user.id, name=user.name, status=RsvpStatus.UNDECIDED, rating=None)
        for user in DEFAULT_USERS
    ]
