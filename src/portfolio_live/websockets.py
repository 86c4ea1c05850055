r"""Relay editing signals and notifications over a websocket.

Each websocket connection may send signals (``editing``, ``stopEditing``,
``saved``) and subscribe to any number of topics. Messages are JSON objects
with a ``messageType`` key:

.. code-block:: javascript

    {"messageType": "subscribe", "topic": "group-being-edited", "replay": true}
    {"messageType": "unsubscribe", "topic": "group-being-edited"}
    {"messageType": "editing", "data": {"resourceType": "Group", "resourceId": 5, ...}}

Notifications are sent to the client as:

.. code-block:: javascript

    {"messageType": "notification", "topic": "group-being-edited", "data": {...}}

where ``data`` is a `.NotificationPayload`\ . If ``replay`` is true when
subscribing, the notifications retained for the topic are sent first.
Subscribing and unsubscribing are confirmed with a response:

.. code-block:: javascript

    {"messageType": "response", "operation": "subscribe", "topic": "group-being-edited"}

which, when replaying, follows the replayed notifications.

A bad message causes an error response to be sent to that client only, and
the connection stays open. When the client disconnects, all of its
subscriptions are removed.
"""

from __future__ import annotations
import json
import logging
from typing import TYPE_CHECKING, Any, Literal

from anyio import (
    BrokenResourceError,
    WouldBlock,
    create_memory_object_stream,
    create_task_group,
)
from anyio.abc import ObjectReceiveStream, ObjectSendStream
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from pydantic import StrictBool, TypeAdapter, ValidationError

from .broker import TopicMessage
from .exceptions import UnknownMessageTypeError, UnknownTopicError
from .models import EditSignal, Notification, NotificationKind, parse_topic

if TYPE_CHECKING:
    from .relay import Relay

_LOGGER = logging.getLogger(__name__)

SIGNAL_MESSAGE_TYPES: dict[str, NotificationKind] = {
    "editing": NotificationKind.BEING_EDITED,
    "stopEditing": NotificationKind.STOP_EDITED,
    "saved": NotificationKind.SAVED,
}

OutgoingMessage = TopicMessage | dict[str, Any]

REPLAY_FLAG = TypeAdapter(StrictBool)
"""Checks that the ``replay`` flag of a subscribe message is a JSON boolean."""


def notification_message(topic: str, notification: Notification) -> dict[str, Any]:
    """Format a notification to be sent over the websocket.

    :param topic: the topic the notification was published on.
    :param notification: the notification to send.

    :return: a JSON-serialisable dictionary.
    """
    return {
        "messageType": "notification",
        "topic": topic,
        "data": jsonable_encoder(notification.to_payload(), by_alias=True),
    }


def error_response(
    operation: str, status: Literal["400", "404"], exception: Exception
) -> dict[str, Any]:
    """Generate a websocket error response for a message we could not handle.

    :param operation: the ``messageType`` of the message that failed.
    :param status: an HTTP-style status code, as a string.
    :param exception: the error that was raised.

    :return: a dictionary that may be returned to the websocket.
    """
    titles = {"400": "Bad Request", "404": "Not Found"}
    if isinstance(exception, KeyError) and exception.args:
        # str() of a KeyError is the repr of its argument.
        detail = str(exception.args[0])
    else:
        detail = str(exception)
    return {
        "messageType": "response",
        "operation": operation,
        "error": {
            "status": status,
            "title": titles[status],
            "detail": detail,
        },
    }


def subscription_response(operation: str, topic: str) -> dict[str, Any]:
    """Confirm that a subscription has been added or removed.

    :param operation: either ``subscribe`` or ``unsubscribe``.
    :param topic: the topic concerned.

    :return: a dictionary that may be returned to the websocket.
    """
    return {"messageType": "response", "operation": operation, "topic": topic}


async def relay_notifications_to_websocket(
    websocket: WebSocket, receive_stream: ObjectReceiveStream[OutgoingMessage]
) -> None:
    """Relay objects from a stream to a websocket as JSON.

    Topics we've subscribed to will post `.TopicMessage` objects to the
    stream, and responses to the client's own messages are posted as
    dictionaries: this function takes those messages from the stream and
    passes them to the websocket.

    :param websocket: the WebSocket we are communicating over.
    :param receive_stream: an `anyio.abc.ObjectReceiveStream` that will
        yield objects that we send over the websocket.
    """
    async with receive_stream:
        async for item in receive_stream:
            if isinstance(item, TopicMessage):
                item = notification_message(item.topic, item.notification)
            try:
                await websocket.send_json(item)
            except WebSocketDisconnect:
                return


class WebsocketSession:
    """The subscriptions and message handling of one websocket connection."""

    def __init__(
        self, relay: Relay, send_stream: ObjectSendStream[OutgoingMessage]
    ) -> None:
        """Start a session with no subscriptions.

        :param relay: the relay handling signals and subscriptions.
        :param send_stream: the stream that feeds this connection's websocket.
        """
        self.relay = relay
        self.send_stream = send_stream
        self.topics: set[str] = set()

    def subscribe(self, topic: str, replay: bool = False) -> None:
        """Start forwarding a topic to this connection.

        :param topic: the topic to subscribe to.
        :param replay: whether to send the retained notifications first.

        :raise UnknownTopicError: if the topic name is not valid.
        """
        backlog = self.relay.latest(topic)
        self.relay.broker.add_listener(topic, self.send_stream)
        self.topics.add(topic)
        if not replay:
            return
        for notification in backlog:
            try:
                self.send_stream.send_nowait(TopicMessage(topic, notification))
            except WouldBlock:
                _LOGGER.warning("Could not replay all notifications on %s.", topic)
                break

    def unsubscribe(self, topic: str) -> None:
        """Stop forwarding a topic to this connection.

        :param topic: the topic to unsubscribe from.

        :raise UnknownTopicError: if the topic name is not valid.
        """
        parse_topic(topic)
        self.relay.broker.remove_listener(topic, self.send_stream)
        self.topics.discard(topic)

    def close(self) -> None:
        """Remove every subscription made by this connection."""
        for topic in list(self.topics):
            self.unsubscribe(topic)

    async def reply(self, message: dict[str, Any]) -> None:
        """Send a response to this connection's client.

        If the client has already gone, the response is discarded.

        :param message: the response to send.
        """
        try:
            await self.send_stream.send(message)
        except BrokenResourceError:
            _LOGGER.debug("Discarded a response to a disconnected client.")

    async def handle(self, data: Any) -> None:
        r"""Act on one message received from the client.

        :param data: the decoded JSON message.

        :raise UnknownMessageTypeError: if ``messageType`` is not recognised.
        :raise UnknownTopicError: if a subscribe or unsubscribe message names
            an invalid topic.
        :raise ValidationError: if a signal's ``data`` is not a valid
            `.EditSignal`\ , or ``replay`` is not a boolean.
        :raise KeyError: if a required key is missing.
        """
        if not isinstance(data, dict):
            raise UnknownMessageTypeError("Messages must be JSON objects.")
        message_type = data.get("messageType")
        if message_type in SIGNAL_MESSAGE_TYPES:
            signal = EditSignal.model_validate(data["data"])
            await self.relay.signal(SIGNAL_MESSAGE_TYPES[message_type], signal)
        elif message_type == "subscribe":
            replay = REPLAY_FLAG.validate_python(data.get("replay", False))
            self.subscribe(data["topic"], replay=replay)
            await self.reply(subscription_response(message_type, data["topic"]))
        elif message_type == "unsubscribe":
            self.unsubscribe(data["topic"])
            await self.reply(subscription_response(message_type, data["topic"]))
        else:
            raise UnknownMessageTypeError(
                f"Unknown messageType '{message_type}'."
            )


async def process_messages_from_websocket(
    websocket: WebSocket, session: WebsocketSession
) -> None:
    r"""Process messages received from a websocket.

    Errors caused by a bad message are reported back to the client, and
    do not close the connection. When the client disconnects, its
    subscriptions are removed and the send stream is closed, which stops
    `.relay_notifications_to_websocket`\ .

    :param websocket: the WebSocket we are communicating over.
    :param session: the `.WebsocketSession` for this connection.
    """
    try:
        while True:
            try:
                data = await websocket.receive_json()
            except WebSocketDisconnect:
                return
            except json.JSONDecodeError as e:
                _LOGGER.error(f"Got a websocket message that isn't JSON: {e!r}.")
                await session.reply(error_response("unknown", "400", e))
                continue
            operation = "unknown"
            if isinstance(data, dict):
                operation = str(data.get("messageType", "unknown"))
            try:
                await session.handle(data)
            except UnknownTopicError as e:
                _LOGGER.error(f"Got a bad websocket message: {data}, caused {e!r}.")
                await session.reply(error_response(operation, "404", e))
            except (UnknownMessageTypeError, ValidationError, KeyError) as e:
                _LOGGER.error(f"Got a bad websocket message: {data}, caused {e!r}.")
                await session.reply(error_response(operation, "400", e))
    finally:
        session.close()
        await session.send_stream.aclose()


async def websocket_endpoint(relay: Relay, websocket: WebSocket) -> None:
    """Handle communication to a client via websocket.

    :param relay: the relay that signals are passed to.
    :param websocket: the web socket that has been created.
    """
    await websocket.accept()
    send_stream, receive_stream = create_memory_object_stream[OutgoingMessage](
        relay.broker.subscriber_buffer_size
    )
    session = WebsocketSession(relay, send_stream)
    async with create_task_group() as tg:
        tg.start_soon(relay_notifications_to_websocket, websocket, receive_stream)
        tg.start_soon(process_messages_from_websocket, websocket, session)
