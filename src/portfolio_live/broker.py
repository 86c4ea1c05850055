"""Handle pub-sub style notifications.

Every notification is published on a topic, named after the kind of resource
and the phase of editing (see `.topic_name`). This module relays published
notifications to everyone subscribed to that topic.

Subscribers receive notifications through `anyio` memory object streams.
Each stream has a bounded buffer: publishing never waits for a subscriber.
If a subscriber's buffer is full, the new notification is dropped for that
subscriber only, and a warning is logged. If a subscriber's stream has been
closed, it is removed the next time something is published on the topic.

A subscriber only receives notifications published after it subscribed. Use
the `.NotificationStore` to catch up on earlier ones.
"""

from __future__ import annotations
from dataclasses import dataclass
import logging
import threading
from types import TracebackType
from typing import Optional
from weakref import WeakSet

from anyio import (
    BrokenResourceError,
    ClosedResourceError,
    EndOfStream,
    WouldBlock,
    create_memory_object_stream,
)
from anyio.abc import ObjectSendStream
from typing_extensions import Self

from .models import Notification

_LOGGER = logging.getLogger(__name__)

DEFAULT_SUBSCRIBER_BUFFER_SIZE = 16
"""The number of undelivered notifications each subscriber may queue."""


@dataclass(frozen=True)
class TopicMessage:
    """A notification, together with the topic it was published on.

    This is the item sent down each subscriber's stream, so that one stream
    may listen to several topics.
    """

    topic: str
    notification: Notification


class MessageBroker:
    """A class that relays notifications to subscribers of a topic."""

    def __init__(
        self, subscriber_buffer_size: int = DEFAULT_SUBSCRIBER_BUFFER_SIZE
    ) -> None:
        """Initialise the message broker.

        :param subscriber_buffer_size: the default buffer size for
            streams created by `.MessageBroker.subscribe`.
        """
        self.subscriber_buffer_size = subscriber_buffer_size
        self._lock = threading.Lock()
        # Note that we use a weak set below, so that when a subscriber goes away
        # without unsubscribing, its stream is removed automatically.
        self._listeners: dict[str, WeakSet[ObjectSendStream[TopicMessage]]] = {}

    def add_listener(
        self, topic: str, stream: ObjectSendStream[TopicMessage]
    ) -> None:
        """Send notifications on a topic to an existing stream.

        Note that this method is not async - it just registers the stream and so
        can be run from any thread. Adding the same stream twice has no effect.

        :param topic: the topic to listen to.
        :param stream: a stream to send `.TopicMessage` objects to. Sends use
            ``send_nowait``, so the stream should have a buffer.
        """
        with self._lock:
            if topic not in self._listeners:
                self._listeners[topic] = WeakSet()
            self._listeners[topic].add(stream)
        _LOGGER.debug("Added a listener to %s", topic)

    def remove_listener(
        self, topic: str, stream: ObjectSendStream[TopicMessage]
    ) -> None:
        """Stop sending notifications on a topic to a stream.

        Removing a stream that is not listening does nothing.

        :param topic: the topic to stop listening to.
        :param stream: the stream that was passed to `.add_listener`.
        """
        with self._lock:
            listeners = self._listeners.get(topic)
            if listeners is not None:
                listeners.discard(stream)

    def subscriber_count(self, topic: str) -> int:
        """Count the streams currently listening to a topic.

        :param topic: the topic name.

        :return: the number of listening streams.
        """
        with self._lock:
            return len(self._listeners.get(topic, ()))

    def subscribe(
        self, topic: str, max_buffer_size: Optional[int] = None
    ) -> Subscription:
        """Subscribe to notifications published on a topic.

        :param topic: the topic to subscribe to.
        :param max_buffer_size: the number of notifications that may wait
            to be received before further ones are dropped. Defaults to the
            broker's ``subscriber_buffer_size``.

        :return: a `.Subscription`, which yields notifications when iterated
            over asynchronously. Close it (or use it as an async context
            manager) to unsubscribe.
        """
        if max_buffer_size is None:
            max_buffer_size = self.subscriber_buffer_size
        return Subscription(self, topic, max_buffer_size)

    async def publish(self, topic: str, notification: Notification) -> int:
        """Publish a notification to every subscriber of a topic.

        This must be called from the event loop. It never waits for a
        subscriber: full buffers cause the notification to be dropped for that
        subscriber, and closed streams are unsubscribed.

        :param topic: the topic to publish on.
        :param notification: the notification to send.

        :return: the number of subscribers the notification was delivered to.
        """
        with self._lock:
            listeners = list(self._listeners.get(topic, ()))
        message = TopicMessage(topic=topic, notification=notification)
        delivered = 0
        for stream in listeners:
            try:
                stream.send_nowait(message)
            except WouldBlock:
                _LOGGER.warning(
                    "Dropped a notification on %s: the subscriber's buffer is full.",
                    topic,
                )
            except (BrokenResourceError, ClosedResourceError):
                # The subscriber has gone away. This is an implicit unsubscribe.
                self.remove_listener(topic, stream)
            else:
                delivered += 1
        return delivered


class Subscription:
    """An asynchronous stream of the notifications published on one topic.

    Iterate over a subscription with ``async for`` to receive notifications.
    Iteration ends once the subscription is closed.

    .. code-block:: python

        async with broker.subscribe("group-save-edit") as subscription:
            async for notification in subscription:
                print(notification.message)
    """

    def __init__(self, broker: MessageBroker, topic: str, max_buffer_size: int):
        """Create a stream and register it with the broker.

        Subscriptions should be created with `.MessageBroker.subscribe`.

        :param broker: the broker to subscribe to.
        :param topic: the topic to subscribe to.
        :param max_buffer_size: the size of the subscriber's buffer.
        """
        self.topic = topic
        self._broker = broker
        self._send_stream, self._receive_stream = create_memory_object_stream[
            TopicMessage
        ](max_buffer_size)
        self._closed = False
        broker.add_listener(topic, self._send_stream)

    @property
    def closed(self) -> bool:
        """Whether the subscription has been closed."""
        return self._closed

    def close(self) -> None:
        """Unsubscribe, and release the underlying streams.

        Notifications already buffered are discarded. Calling this more than
        once has no further effect.
        """
        if self._closed:
            return
        self._closed = True
        self._broker.remove_listener(self.topic, self._send_stream)
        self._send_stream.close()
        self._receive_stream.close()

    async def receive(self) -> Notification:
        """Wait for the next notification.

        :return: the next notification published on the topic.

        :raise EndOfStream: if the subscription has been closed.
        """
        try:
            message = await self._receive_stream.receive()
        except ClosedResourceError as e:
            raise EndOfStream() from e
        return message.notification

    def __aiter__(self) -> Self:
        """Iterate over notifications as they arrive.

        :return: this subscription.
        """
        return self

    async def __anext__(self) -> Notification:
        """Return the next notification.

        :return: the next notification published on the topic.

        :raise StopAsyncIteration: once the subscription is closed.
        """
        try:
            return await self.receive()
        except EndOfStream:
            raise StopAsyncIteration() from None

    async def __aenter__(self) -> Self:
        """Use the subscription as an async context manager.

        :return: this subscription.
        """
        return self

    async def __aexit__(
        self,
        exc_type: Optional[type[BaseException]],
        exc_value: Optional[BaseException],
        traceback: Optional[TracebackType],
    ) -> None:
        """Unsubscribe when the ``async with`` block ends.

        :param exc_type: the type of any exception raised in the block.
        :param exc_value: the exception raised in the block, if any.
        :param traceback: the traceback of that exception.
        """
        self.close()
