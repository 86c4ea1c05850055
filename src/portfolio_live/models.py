r"""Data structures shared by the relay and its websocket protocol.

There are two kinds of structure in this module:

* Internal records, which are immutable `dataclasses.dataclass` objects:
  `.Editor`, `.EditSession` and `.Notification`\ .
* Wire models, which are `pydantic.BaseModel` subclasses using camelCase
  aliases so that they match the JSON sent by the portfolio pages:
  `.EditSignal` (inbound) and `.NotificationPayload` (outbound).

Topic names are also defined here, as they depend only on the resource type
and the notification kind. See `.topic_name` and `.parse_topic`\ .
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import html
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .exceptions import UnknownTopicError


class ResourceType(str, Enum):
    """The kinds of resource that may be edited collaboratively."""

    GROUP = "Group"
    EVENT = "Event"
    MILESTONE = "Milestone"

    @property
    def topic_prefix(self) -> str:
        """The prefix used for this resource's topic names, e.g. ``group``."""
        return self.value.lower()


class NotificationKind(str, Enum):
    """The phase of editing a notification describes.

    The value of each member is the suffix of the topic it is published on.
    """

    BEING_EDITED = "being-edited"
    STOP_EDITED = "stop-being-edited"
    SAVED = "save-edit"


class EditState(str, Enum):
    """Whether a resource is currently being edited."""

    IDLE = "Idle"
    BEING_EDITED = "BeingEdited"


MESSAGE_TEMPLATES: dict[NotificationKind, str] = {
    NotificationKind.BEING_EDITED: (
        "'{resource_name}' is being edited by {first_name} {last_name}"
    ),
    NotificationKind.STOP_EDITED: (
        "'{resource_name}' has stopped being edited by {first_name} {last_name}"
    ),
    NotificationKind.SAVED: (
        "'{resource_name}' has been updated by {first_name} {last_name}"
    ),
}


def topic_name(resource_type: ResourceType, kind: NotificationKind) -> str:
    """Return the topic used for a resource type and notification kind.

    :param resource_type: the kind of resource the notification is about.
    :param kind: the phase of editing.

    :return: a topic name such as ``"event-save-edit"``.
    """
    return f"{resource_type.topic_prefix}-{kind.value}"


def all_topics() -> list[str]:
    """List every valid topic name.

    :return: one topic per combination of `.ResourceType` and
        `.NotificationKind`.
    """
    return [topic_name(r, k) for r in ResourceType for k in NotificationKind]


def parse_topic(topic: str) -> tuple[ResourceType, NotificationKind]:
    """Split a topic name into its resource type and notification kind.

    :param topic: the topic name, e.g. ``"group-being-edited"``.

    :return: the resource type and notification kind of the topic.

    :raise UnknownTopicError: if ``topic`` is not a valid topic name.
    """
    for resource_type in ResourceType:
        for kind in NotificationKind:
            if topic == topic_name(resource_type, kind):
                return resource_type, kind
    raise UnknownTopicError(f"There is no topic named '{topic}'.")


@dataclass(frozen=True)
class Editor:
    """The identity of a user, as supplied by the session layer.

    The relay trusts this identity: it does no authentication of its own.
    """

    user_id: int
    username: str
    first_name: str
    last_name: str


@dataclass(frozen=True)
class EditSession:
    """A record that one user is editing one resource.

    At most one of these exists per ``(resource_type, resource_id)`` key.
    """

    resource_type: ResourceType
    resource_id: int
    editor: Editor
    started_at: datetime
    state: EditState = EditState.BEING_EDITED


@dataclass(frozen=True)
class Notification:
    """A change in editing state, to be shown to other viewers of a resource.

    Notifications are created by the `.EditSessionTracker` and never
    modified afterwards. ``resource_name`` is HTML-escaped when the
    notification is created by `.Notification.create`, so it is safe to
    insert into a page.
    """

    kind: NotificationKind
    resource_type: ResourceType
    resource_id: int
    resource_name: str
    actor_username: str
    actor_first_name: str
    actor_last_name: str
    emitted_at: int
    """The time the signal was received, in whole seconds since the epoch."""

    @classmethod
    def create(
        cls,
        kind: NotificationKind,
        resource_type: ResourceType,
        resource_id: int,
        resource_name: str,
        editor: Editor,
        emitted_at: float,
    ) -> Notification:
        """Make a notification about an editor's action on a resource.

        :param kind: the phase of editing.
        :param resource_type: the kind of resource.
        :param resource_id: the ID of the resource.
        :param resource_name: the display name of the resource. This will
            be HTML-escaped.
        :param editor: the user responsible for the change.
        :param emitted_at: the current time, in seconds since the epoch.

        :return: a new notification.
        """
        return cls(
            kind=kind,
            resource_type=resource_type,
            resource_id=resource_id,
            resource_name=html.escape(resource_name, quote=True),
            actor_username=editor.username,
            actor_first_name=editor.first_name,
            actor_last_name=editor.last_name,
            emitted_at=int(emitted_at),
        )

    @property
    def topic(self) -> str:
        """The topic this notification is published on."""
        return topic_name(self.resource_type, self.kind)

    @property
    def message(self) -> str:
        """The human-readable message shown to other viewers."""
        return MESSAGE_TEMPLATES[self.kind].format(
            resource_name=self.resource_name,
            first_name=self.actor_first_name,
            last_name=self.actor_last_name,
        )

    def to_payload(self) -> NotificationPayload:
        """Convert the notification to the form sent to clients.

        :return: a `.NotificationPayload` describing this notification.
        """
        return NotificationPayload(
            message=self.message,
            resource_id=self.resource_id,
            username=self.actor_username,
            first_name=self.actor_first_name,
            last_name=self.actor_last_name,
            timestamp=self.emitted_at,
            resource_type=self.resource_type.value,
        )


class CamelModel(BaseModel):
    """A model that uses camelCase field names in JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EditSignal(CamelModel):
    """A message from a client saying it has started, stopped or saved an edit."""

    resource_type: ResourceType
    resource_id: int
    resource_name: Optional[str] = None
    user_id: int
    username: str
    first_name: str
    last_name: str

    @property
    def editor(self) -> Editor:
        """The identity of the user sending this signal."""
        return Editor(
            user_id=self.user_id,
            username=self.username,
            first_name=self.first_name,
            last_name=self.last_name,
        )


class NotificationPayload(CamelModel):
    """A notification, as it is sent to clients."""

    message: str
    resource_id: int
    username: str
    first_name: str
    last_name: str
    timestamp: int = Field(description="Time of the signal in seconds since the epoch.")
    resource_type: str


class EditSessionModel(CamelModel):
    """An active edit session, as returned by the HTTP API."""

    resource_type: ResourceType
    resource_id: int
    state: EditState
    user_id: int
    username: str
    first_name: str
    last_name: str
    started_at: datetime

    @classmethod
    def from_session(cls, session: EditSession) -> EditSessionModel:
        """Describe an `.EditSession` for the HTTP API.

        :param session: the session to describe.

        :return: a model that FastAPI can serialise.
        """
        return cls(
            resource_type=session.resource_type,
            resource_id=session.resource_id,
            state=session.state,
            user_id=session.editor.user_id,
            username=session.editor.username,
            first_name=session.editor.first_name,
            last_name=session.editor.last_name,
            started_at=session.started_at,
        )
