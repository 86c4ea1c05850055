r"""portfolio-live.

This is the top level module for portfolio-live, which tells users of the
portfolio application when someone else starts editing, stops editing, or
saves a group, event or milestone they are looking at.

This module contains a number of convenience imports and is intended to be
imported using:

.. code-block:: python

    import portfolio_live as pl

Symbols in the top-level module mostly exist elsewhere in the package, but
should be imported from here as a preference, to ensure code does not break
if modules are rearranged.
"""

from .models import (
    Editor,
    EditSession,
    EditSignal,
    EditState,
    Notification,
    NotificationKind,
    NotificationPayload,
    ResourceType,
    all_topics,
    parse_topic,
    topic_name,
)
from .tracker import EditSessionTracker
from .broker import MessageBroker, Subscription, TopicMessage
from .store import NotificationStore
from .relay import Relay
from .server import RelayServer
from .server.config_model import RelayConfig

# The symbols in __all__ are part of our public API.
# They are imported when using `import portfolio_live as pl`.
__all__ = [
    "Editor",
    "EditSession",
    "EditSignal",
    "EditState",
    "Notification",
    "NotificationKind",
    "NotificationPayload",
    "ResourceType",
    "all_topics",
    "parse_topic",
    "topic_name",
    "EditSessionTracker",
    "MessageBroker",
    "Subscription",
    "TopicMessage",
    "NotificationStore",
    "Relay",
    "RelayServer",
    "RelayConfig",
]
