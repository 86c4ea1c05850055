r"""Track who is editing which resource.

The `.EditSessionTracker` holds at most one `.EditSession` for each
``(resource_type, resource_id)`` key. Each resource moves through a very
small state machine:

.. code-block:: text

    Idle --begin_edit--> BeingEdited --end_edit--> Idle
    BeingEdited --commit_edit--> Idle
    BeingEdited --begin_edit(new editor)--> BeingEdited (editor replaced)

Conflicts are resolved by last-write-wins: a new `.EditSessionTracker.begin_edit`
replaces the current editor, and any user may end or commit another user's
session. No ownership is checked, and no signal is ever rejected.

Every operation returns the `.Notification` that should be broadcast to
other viewers of the resource. Publishing it is the job of the `.Relay`\ .
"""

from __future__ import annotations
from datetime import datetime, timezone
import logging
import threading
import time
from typing import Callable, Optional

from .models import (
    Editor,
    EditSession,
    EditState,
    Notification,
    NotificationKind,
    ResourceType,
)

_LOGGER = logging.getLogger(__name__)

SessionKey = tuple[ResourceType, int]


class EditSessionTracker:
    """Reconcile edit, stop-edit and save signals into one state per resource.

    A single `threading.Lock` guards the sessions. It is held only to read or
    replace one entry, so reading a resource that has never been edited
    leaves nothing behind.
    """

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        """Create a tracker with every resource idle.

        :param clock: returns the current time in seconds since the epoch.
            This may be replaced in tests.
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions: dict[SessionKey, EditSession] = {}

    def _notify(
        self,
        kind: NotificationKind,
        resource_type: ResourceType,
        resource_id: int,
        editor: Editor,
        resource_name: Optional[str],
        now: float,
    ) -> Notification:
        if resource_name is None:
            resource_name = f"{resource_type.value} {resource_id}"
        return Notification.create(
            kind=kind,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=resource_name,
            editor=editor,
            emitted_at=now,
        )

    def begin_edit(
        self,
        resource_type: ResourceType,
        resource_id: int,
        editor: Editor,
        resource_name: Optional[str] = None,
    ) -> Notification:
        """Record that ``editor`` is now editing a resource.

        Any existing session for the resource is replaced, whoever owns it.

        :param resource_type: the kind of resource being edited.
        :param resource_id: the ID of the resource.
        :param editor: the user who has started editing.
        :param resource_name: the display name of the resource. If omitted,
            the type and ID are used, e.g. ``"Group 5"``.

        :return: a notification that the resource is being edited.
        """
        key = (resource_type, resource_id)
        with self._lock:
            now = self._clock()
            previous = self._sessions.get(key)
            self._sessions[key] = EditSession(
                resource_type=resource_type,
                resource_id=resource_id,
                editor=editor,
                started_at=datetime.fromtimestamp(now, tz=timezone.utc),
            )
        if previous is not None and previous.editor != editor:
            _LOGGER.info(
                "%s %s: editor %s replaced by %s",
                resource_type.value,
                resource_id,
                previous.editor.username,
                editor.username,
            )
        return self._notify(
            NotificationKind.BEING_EDITED,
            resource_type,
            resource_id,
            editor,
            resource_name,
            now,
        )

    def _clear(self, key: SessionKey) -> tuple[Optional[EditSession], float]:
        with self._lock:
            return self._sessions.pop(key, None), self._clock()

    def end_edit(
        self,
        resource_type: ResourceType,
        resource_id: int,
        editor: Editor,
        resource_name: Optional[str] = None,
    ) -> Notification:
        """Record that a resource is no longer being edited.

        The session is cleared regardless of who is recorded as its editor.
        Ending an edit on an idle resource changes nothing.

        :param resource_type: the kind of resource.
        :param resource_id: the ID of the resource.
        :param editor: the user who has stopped editing.
        :param resource_name: the display name of the resource.

        :return: a notification that editing has stopped.
        """
        _previous, now = self._clear((resource_type, resource_id))
        return self._notify(
            NotificationKind.STOP_EDITED,
            resource_type,
            resource_id,
            editor,
            resource_name,
            now,
        )

    def commit_edit(
        self,
        resource_type: ResourceType,
        resource_id: int,
        editor: Editor,
        resource_name: Optional[str] = None,
    ) -> Notification:
        """Record that a resource has been saved, ending any edit session.

        :param resource_type: the kind of resource.
        :param resource_id: the ID of the resource.
        :param editor: the user who saved the resource.
        :param resource_name: the display name of the resource.

        :return: a notification that the resource has been updated.
        """
        _previous, now = self._clear((resource_type, resource_id))
        return self._notify(
            NotificationKind.SAVED,
            resource_type,
            resource_id,
            editor,
            resource_name,
            now,
        )

    def session(
        self, resource_type: ResourceType, resource_id: int
    ) -> Optional[EditSession]:
        """Return the active session for a resource, if there is one.

        :param resource_type: the kind of resource.
        :param resource_id: the ID of the resource.

        :return: the current session, or ``None`` if the resource is idle.
        """
        key = (resource_type, resource_id)
        with self._lock:
            return self._sessions.get(key)

    def state(self, resource_type: ResourceType, resource_id: int) -> EditState:
        """Return whether a resource is being edited.

        :param resource_type: the kind of resource.
        :param resource_id: the ID of the resource.

        :return: `.EditState.BEING_EDITED` if there is an active session,
            otherwise `.EditState.IDLE`.
        """
        session = self.session(resource_type, resource_id)
        return EditState.IDLE if session is None else session.state

    def sessions(self) -> list[EditSession]:
        """Return a snapshot of every active session.

        :return: the active sessions, in no particular order.
        """
        with self._lock:
            return list(self._sessions.values())
