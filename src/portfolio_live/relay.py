"""Connect the edit-session tracker, message broker and notification store.

The `.Relay` is the entry point for signals from clients. Each signal is
passed to the `.EditSessionTracker`, and the resulting `.Notification` is
published on its topic by the `.MessageBroker` and retained by the
`.NotificationStore` for clients that connect later.
"""

from __future__ import annotations
import logging
from typing import Callable, Optional

from .broker import DEFAULT_SUBSCRIBER_BUFFER_SIZE, MessageBroker, Subscription
from .models import (
    Editor,
    EditSignal,
    Notification,
    NotificationKind,
    ResourceType,
    parse_topic,
)
from .store import DEFAULT_BUFFER_SIZE, NotificationStore
from .tracker import EditSessionTracker

_LOGGER = logging.getLogger(__name__)


class Relay:
    """Relay editing signals to everyone viewing the same kind of resource."""

    def __init__(
        self,
        tracker: Optional[EditSessionTracker] = None,
        broker: Optional[MessageBroker] = None,
        store: Optional[NotificationStore] = None,
        *,
        buffer_size: int = DEFAULT_BUFFER_SIZE,
        subscriber_buffer_size: int = DEFAULT_SUBSCRIBER_BUFFER_SIZE,
    ) -> None:
        """Set up a relay, creating any components that are not supplied.

        :param tracker: the tracker that owns edit sessions.
        :param broker: the broker used to publish notifications.
        :param store: the store that retains recent notifications.
        :param buffer_size: the number of notifications to retain per topic,
            if a new store is created.
        :param subscriber_buffer_size: the default subscriber buffer size,
            if a new broker is created.
        """
        self.tracker = tracker or EditSessionTracker()
        self.broker = broker or MessageBroker(subscriber_buffer_size)
        self.store = store or NotificationStore(buffer_size)

    def _operation(
        self, kind: NotificationKind
    ) -> Callable[[ResourceType, int, Editor, Optional[str]], Notification]:
        return {
            NotificationKind.BEING_EDITED: self.tracker.begin_edit,
            NotificationKind.STOP_EDITED: self.tracker.end_edit,
            NotificationKind.SAVED: self.tracker.commit_edit,
        }[kind]

    async def signal(self, kind: NotificationKind, signal: EditSignal) -> Notification:
        """Handle a signal from a client, and broadcast the result.

        :param kind: the phase of editing the signal describes.
        :param signal: the signal, including the identity of the sender.

        :return: the notification that was published.
        """
        notification = self._operation(kind)(
            signal.resource_type,
            signal.resource_id,
            signal.editor,
            signal.resource_name,
        )
        delivered = await self.broker.publish(notification.topic, notification)
        self.store.record(notification.topic, notification)
        _LOGGER.info(
            "%s (delivered to %d subscribers of %s)",
            notification.message,
            delivered,
            notification.topic,
        )
        return notification

    async def editing(self, signal: EditSignal) -> Notification:
        """Handle a client starting to edit a resource.

        :param signal: the signal from the client.

        :return: the notification that was published.
        """
        return await self.signal(NotificationKind.BEING_EDITED, signal)

    async def stop_editing(self, signal: EditSignal) -> Notification:
        """Handle a client no longer editing a resource.

        :param signal: the signal from the client.

        :return: the notification that was published.
        """
        return await self.signal(NotificationKind.STOP_EDITED, signal)

    async def saved(self, signal: EditSignal) -> Notification:
        """Handle a client saving a resource.

        :param signal: the signal from the client.

        :return: the notification that was published.
        """
        return await self.signal(NotificationKind.SAVED, signal)

    def subscribe(
        self, topic: str, max_buffer_size: Optional[int] = None
    ) -> Subscription:
        """Subscribe to a topic.

        :param topic: the topic to subscribe to.
        :param max_buffer_size: overrides the broker's default buffer size.

        :return: a `.Subscription` to the topic.

        :raise UnknownTopicError: if the topic name is not valid.
        """
        parse_topic(topic)
        return self.broker.subscribe(topic, max_buffer_size)

    def latest(self, topic: str) -> list[Notification]:
        """Return the notifications retained for a topic, newest last.

        :param topic: the topic to read.

        :return: up to ``buffer_size`` recent notifications.

        :raise UnknownTopicError: if the topic name is not valid.
        """
        parse_topic(topic)
        return self.store.latest(topic)
