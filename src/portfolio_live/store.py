"""Retain the most recent notifications on each topic.

A client that connects (or reconnects) after a notification was published
will not receive it from the `.MessageBroker`. The `.NotificationStore` keeps
the last few notifications on every topic so that such clients can catch up.

The store is bounded by size, not by time. Hiding a notification after it has
been displayed for a while is left to the client.
"""

from __future__ import annotations
from collections import deque
import threading
from typing import Optional

from .models import Notification

DEFAULT_BUFFER_SIZE = 3
"""The number of notifications retained per topic unless configured otherwise."""


class NotificationStore:
    """A fixed-size, oldest-first buffer of notifications for each topic.

    Each topic has its own `threading.Lock`, so recording on one topic never
    waits for another. The store may be used from the event loop or from
    worker threads.
    """

    def __init__(self, buffer_size: int = DEFAULT_BUFFER_SIZE) -> None:
        """Create an empty store.

        :param buffer_size: the maximum number of notifications to retain
            on each topic.

        :raise ValueError: if ``buffer_size`` is less than 1.
        """
        if buffer_size < 1:
            raise ValueError("The notification buffer must hold at least one entry.")
        self.buffer_size = buffer_size
        self._lock = threading.Lock()
        self._buffers: dict[str, tuple[threading.Lock, deque[Notification]]] = {}

    def _buffer_for(self, topic: str) -> tuple[threading.Lock, deque[Notification]]:
        with self._lock:
            if topic not in self._buffers:
                self._buffers[topic] = (
                    threading.Lock(),
                    deque(maxlen=self.buffer_size),
                )
            return self._buffers[topic]

    def record(self, topic: str, notification: Notification) -> None:
        """Add a notification to a topic's buffer.

        If the buffer is full, the oldest notification is discarded.

        :param topic: the topic the notification was published on.
        :param notification: the notification to retain.
        """
        lock, buffer = self._buffer_for(topic)
        with lock:
            buffer.append(notification)

    def latest(self, topic: str) -> list[Notification]:
        """Return the retained notifications for a topic, newest last.

        :param topic: the topic to read.

        :return: a copy of the topic's buffer. This is empty if nothing has
            been recorded on the topic.
        """
        with self._lock:
            entry = self._buffers.get(topic)
        if entry is None:
            return []
        lock, buffer = entry
        with lock:
            return list(buffer)

    def topics(self) -> list[str]:
        """List the topics that currently hold notifications.

        :return: topic names, in the order they were first used.
        """
        with self._lock:
            entries = list(self._buffers.items())
        topics = []
        for topic, (lock, buffer) in entries:
            with lock:
                if buffer:
                    topics.append(topic)
        return topics

    def clear(self, topic: Optional[str] = None) -> None:
        """Discard retained notifications.

        Buffers are emptied in place while holding their topic's lock, so a
        notification recorded during the call is either discarded or kept,
        never written to a buffer that has been detached from the store.

        :param topic: the topic to clear. If this is ``None``, every topic
            is cleared.
        """
        with self._lock:
            if topic is None:
                entries = list(self._buffers.values())
            elif topic in self._buffers:
                entries = [self._buffers[topic]]
            else:
                entries = []
        for lock, buffer in entries:
            with lock:
                buffer.clear()
