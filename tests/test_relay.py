"""Test the `.Relay`, which connects the tracker, broker and store.

The scenarios here follow the way the portfolio pages use the relay: one
client edits and saves a resource while others are viewing it.
"""

import anyio
import pytest

import portfolio_live as pl
from portfolio_live.exceptions import UnknownTopicError

pytestmark = pytest.mark.anyio


def signal_from(editor, resource_type, resource_id, resource_name=None):
    return pl.EditSignal(
        resource_type=resource_type,
        resource_id=resource_id,
        resource_name=resource_name,
        user_id=editor.user_id,
        username=editor.username,
        first_name=editor.first_name,
        last_name=editor.last_name,
    )


@pytest.fixture
def relay(clock):
    """A relay with a fake clock."""
    return pl.Relay(tracker=pl.EditSessionTracker(clock=clock))


async def test_edit_then_save(relay, alice):
    """A late viewer catches up on an edit, then sees the save."""
    event = pl.ResourceType.EVENT
    await relay.editing(signal_from(alice, event, 1, "Demo day"))

    # A second client connects after the edit started
    with anyio.fail_after(1):
        async with relay.subscribe("event-save-edit") as saves:
            backlog = relay.latest("event-being-edited")
            assert len(backlog) == 1
            assert backlog[0].actor_username == "alice1"
            assert backlog[0].message == "'Demo day' is being edited by Alice Smith"

            saved = await relay.saved(signal_from(alice, event, 1, "Demo day"))
            assert saved.message == "'Demo day' has been updated by Alice Smith"
            assert await saves.receive() == saved
    assert relay.tracker.state(event, 1) is pl.EditState.IDLE
    assert relay.latest("event-save-edit") == [saved]


async def test_two_editors(relay, alice, bob):
    """The second editor wins, and both notifications are broadcast in order."""
    group = pl.ResourceType.GROUP
    with anyio.fail_after(1):
        async with relay.subscribe("group-being-edited") as viewer:
            first = await relay.editing(signal_from(alice, group, 5))
            second = await relay.editing(signal_from(bob, group, 5))
            assert relay.tracker.session(group, 5).editor == bob
            assert await viewer.receive() == first
            assert await viewer.receive() == second
            with pytest.raises(anyio.WouldBlock):
                viewer._receive_stream.receive_nowait()
    assert [n.actor_username for n in (first, second)] == ["alice1", "bob2"]


async def test_stop_editing(relay, alice, bob):
    """Anyone may stop an edit session, and a notification is retained."""
    milestone = pl.ResourceType.MILESTONE
    await relay.editing(signal_from(alice, milestone, 3, "MVP"))
    stopped = await relay.stop_editing(signal_from(bob, milestone, 3, "MVP"))
    assert relay.tracker.state(milestone, 3) is pl.EditState.IDLE
    assert stopped.kind is pl.NotificationKind.STOP_EDITED
    assert relay.latest("milestone-stop-being-edited") == [stopped]


async def test_store_is_bounded(alice):
    """Only the configured number of notifications are retained."""
    relay = pl.Relay(buffer_size=2)
    notifications = [
        await relay.saved(signal_from(alice, pl.ResourceType.GROUP, i))
        for i in range(4)
    ]
    assert relay.latest("group-save-edit") == notifications[2:]


async def test_signal_dispatch(relay, alice):
    """`signal` chooses the tracker operation from the notification kind."""
    for kind in pl.NotificationKind:
        notification = await relay.signal(
            kind, signal_from(alice, pl.ResourceType.GROUP, 9)
        )
        assert notification.kind is kind
        assert notification.topic == f"group-{kind.value}"


def test_unknown_topic(relay):
    """Subscribing to, or reading, an invalid topic is an error."""
    with pytest.raises(UnknownTopicError):
        relay.subscribe("sprint-being-edited")
    with pytest.raises(UnknownTopicError):
        relay.latest("not-a-topic")
