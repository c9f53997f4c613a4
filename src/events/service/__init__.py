import typing as t

from events.exceptions import NotEventOrganizerError
from events.models import Event


def can_manage_event(event: Event, user: t.Any) -> bool:
    """Whether the user is the event's organizer or holds the admin role."""
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    return bool(getattr(user, "is_admin_role", False) or event.organizer_id == user.pk)


def ensure_can_manage_event(event: Event, user: t.Any) -> None:
    """Raise unless the user may manage the event.

    Raises:
        NotEventOrganizerError: If the user neither organizes the event nor is an admin.
    """
    if not can_manage_event(event, user):
        raise NotEventOrganizerError()
