"""Code supporting the portfolio-live server.

The `.RelayServer` wraps a `fastapi.FastAPI` application around a `.Relay`,
exposing the websocket protocol described in `.websockets` and a small HTTP
API for clients that need to catch up, or that cannot hold a websocket open.
"""

from __future__ import annotations
from collections.abc import Mapping
from contextlib import asynccontextmanager
import logging
from typing import Any, AsyncGenerator, Literal, Optional

from anyio.from_thread import BlockingPortal
from fastapi import FastAPI, HTTPException, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from ..exceptions import ServerNotRunningError, UnknownTopicError
from ..logs import configure_relay_logger
from ..models import (
    CamelModel,
    EditSessionModel,
    EditSignal,
    Notification,
    NotificationKind,
    NotificationPayload,
    ResourceType,
    all_topics,
)
from ..relay import Relay
from ..websockets import websocket_endpoint
from .config_model import RelayConfig

_LOGGER = logging.getLogger(__name__)

SIGNAL_ACTIONS: dict[str, NotificationKind] = {
    "editing": NotificationKind.BEING_EDITED,
    "stop-editing": NotificationKind.STOP_EDITED,
    "saved": NotificationKind.SAVED,
}


class ClientSettings(CamelModel):
    """Settings that clients need in order to display notifications."""

    notification_display_seconds: float


class RelayServer:
    """Use FastAPI to serve a `.Relay`.

    There are several functions of a `.RelayServer`:

    * Own the process-wide state (edit sessions, subscriptions and retained
      notifications), which lives for as long as the server does.
    * Serve the websocket endpoint at ``/ws``.
    * Serve HTTP endpoints to read retained notifications and active edit
      sessions, and to send signals without a websocket.
    * Configure the server to allow cross-origin requests.
    * Allow threaded code to publish notifications, by providing an
      `anyio.from_thread.BlockingPortal`.
    """

    def __init__(self, config: Optional[RelayConfig] = None) -> None:
        """Initialise a relay server.

        :param config: the server configuration. Defaults are used if this
            is omitted.
        """
        self.config = config or RelayConfig()
        configure_relay_logger(self.config.log_level)
        self.relay = Relay(
            buffer_size=self.config.notification_buffer_size,
            subscriber_buffer_size=self.config.subscriber_buffer_size,
        )
        self.app = FastAPI(lifespan=self.lifespan)
        self.set_cors_middleware()
        self.blocking_portal: Optional[BlockingPortal] = None
        self.add_websocket_to_app()
        self.add_notifications_view_to_app()
        self.add_edit_sessions_view_to_app()
        self.add_signals_to_app()

    app: FastAPI
    relay: Relay

    @classmethod
    def from_config(cls, config: RelayConfig | Mapping[str, Any]) -> RelayServer:
        r"""Create a RelayServer from a configuration model or dictionary.

        :param config: a `.RelayConfig`, or a dictionary that validates as one.

        :return: a `.RelayServer`\ . The server will not be started by
            this function.
        """
        if not isinstance(config, RelayConfig):
            config = RelayConfig.model_validate(config)
        return cls(config)

    def set_cors_middleware(self) -> None:
        """Configure the server to allow requests from other origins.

        This is required if the portfolio pages are not served from the same
        origin as the relay.
        """
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=self.config.allowed_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    @asynccontextmanager
    async def lifespan(self, app: FastAPI) -> AsyncGenerator[None]:
        """Manage set up and tear down of the server.

        This method is used as a lifespan function for the FastAPI app. See
        the lifespan_ page in FastAPI's documentation.

        .. _lifespan: https://fastapi.tiangolo.com/advanced/events/#lifespan-function

        It sets up the blocking portal so background threads can publish
        notifications in the event loop.

        :param app: The FastAPI application wrapped by the server.
        :yield: no value. The FastAPI application will serve requests while this
            function yields.
        """
        async with BlockingPortal() as portal:
            self.blocking_portal = portal
            _LOGGER.info("Live update relay started.")
            yield
        self.blocking_portal = None

    def signal_from_thread(
        self, kind: NotificationKind, signal: EditSignal
    ) -> Notification:
        """Handle a signal from threaded code, e.g. a synchronous view.

        :param kind: the phase of editing the signal describes.
        :param signal: the signal, including the identity of the sender.

        :return: the notification that was published.

        :raise ServerNotRunningError: if the server is not running, so there
            is no event loop to publish from.
        """
        if self.blocking_portal is None:
            raise ServerNotRunningError(
                "Can't publish notifications when the server isn't running."
            )
        return self.blocking_portal.call(self.relay.signal, kind, signal)

    def add_websocket_to_app(self) -> None:
        """Add the websocket endpoint at ``/ws``."""
        relay = self.relay

        @self.app.websocket("/ws")
        async def websocket(ws: WebSocket) -> None:
            await websocket_endpoint(relay, ws)

    def add_notifications_view_to_app(self) -> None:
        """Add endpoints that list topics and their retained notifications."""
        relay = self.relay
        config = self.config

        @self.app.get("/topics/")
        def topics() -> list[str]:
            """List the topics that may be subscribed to.

            :return: every valid topic name.
            """
            return all_topics()

        @self.app.get(
            "/notifications/{topic}",
            response_model=list[NotificationPayload],
            responses={404: {"description": "No such topic"}},
        )
        def notifications(topic: str) -> list[NotificationPayload]:
            """Return the notifications retained for a topic, newest last.

            This allows a page to show recent notifications when it loads.

            :param topic: The topic name (from the path).

            :return: up to ``notification_buffer_size`` notifications.

            :raise HTTPException: with code ``404`` if the topic is not valid.
            """
            try:
                return [n.to_payload() for n in relay.latest(topic)]
            except UnknownTopicError as e:
                raise HTTPException(
                    status_code=404,
                    detail=f"There is no topic named '{topic}'.",
                ) from e

        @self.app.get("/settings/", response_model=ClientSettings)
        def settings() -> ClientSettings:
            """Return settings that clients need to display notifications.

            :return: the client display settings.
            """
            return ClientSettings(
                notification_display_seconds=config.notification_display_seconds
            )

    def add_edit_sessions_view_to_app(self) -> None:
        """Add endpoints that describe active edit sessions."""
        tracker = self.relay.tracker

        @self.app.get("/edit-sessions/", response_model=list[EditSessionModel])
        def edit_sessions() -> list[EditSessionModel]:
            """List every resource that is currently being edited.

            :return: the active edit sessions.
            """
            return [EditSessionModel.from_session(s) for s in tracker.sessions()]

        @self.app.get(
            "/edit-sessions/{resource_type}/{resource_id}",
            response_model=EditSessionModel,
            responses={404: {"description": "The resource is not being edited"}},
        )
        def edit_session(
            resource_type: ResourceType, resource_id: int
        ) -> EditSessionModel:
            """Describe who is editing a resource.

            :param resource_type: The kind of resource (from the path).
            :param resource_id: The resource's ID (from the path).

            :return: the active edit session.

            :raise HTTPException: with code ``404`` if the resource is idle.
            """
            session = tracker.session(resource_type, resource_id)
            if session is None:
                raise HTTPException(
                    status_code=404,
                    detail=f"{resource_type.value} {resource_id} is not being edited.",
                )
            return EditSessionModel.from_session(session)

    def add_signals_to_app(self) -> None:
        """Add an endpoint to send signals over HTTP.

        Pages that save a resource with an ordinary form post may use this
        instead of the websocket.
        """
        relay = self.relay

        @self.app.post("/signals/{action}", response_model=NotificationPayload)
        async def send_signal(
            action: Literal["editing", "stop-editing", "saved"], signal: EditSignal
        ) -> NotificationPayload:
            """Start, stop or save an edit, and notify other viewers.

            :param action: The kind of signal (from the path).
            :param signal: The signal (from the request body).

            :return: the notification that was published.
            """
            notification = await relay.signal(SIGNAL_ACTIONS[action], signal)
            return notification.to_payload()
