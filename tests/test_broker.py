"""Test the pub-sub `.MessageBroker` and its `.Subscription` objects."""

import anyio
from anyio import EndOfStream, create_memory_object_stream
import pytest

import portfolio_live as pl

pytestmark = pytest.mark.anyio


def make_notification(editor, resource_id=1, kind=pl.NotificationKind.BEING_EDITED):
    return pl.Notification.create(
        kind=kind,
        resource_type=pl.ResourceType.GROUP,
        resource_id=resource_id,
        resource_name=f"Team {resource_id}",
        editor=editor,
        emitted_at=1_700_000_000,
    )


async def test_publish_reaches_every_subscriber(alice):
    """Every subscriber of a topic receives a published notification."""
    broker = pl.MessageBroker()
    notification = make_notification(alice)
    with anyio.fail_after(1):
        async with broker.subscribe("group-being-edited") as s1:
            async with broker.subscribe("group-being-edited") as s2:
                assert broker.subscriber_count("group-being-edited") == 2
                delivered = await broker.publish("group-being-edited", notification)
                assert delivered == 2
                assert await s1.receive() == notification
                assert await s2.receive() == notification


async def test_topics_do_not_cross(alice):
    """Subscribers of other topics receive nothing."""
    broker = pl.MessageBroker()
    async with broker.subscribe("event-being-edited") as other:
        delivered = await broker.publish("group-being-edited", make_notification(alice))
        assert delivered == 0
        with pytest.raises(anyio.WouldBlock):
            other._receive_stream.receive_nowait()


async def test_publish_without_subscribers(alice):
    """Publishing to nobody is not an error."""
    broker = pl.MessageBroker()
    assert await broker.publish("group-save-edit", make_notification(alice)) == 0


async def test_not_retroactive(alice):
    """A late subscriber doesn't receive earlier notifications."""
    broker = pl.MessageBroker()
    await broker.publish("group-being-edited", make_notification(alice, 1))
    async with broker.subscribe("group-being-edited") as subscription:
        second = make_notification(alice, 2)
        await broker.publish("group-being-edited", second)
        with anyio.fail_after(1):
            assert await subscription.receive() == second


async def test_order_is_preserved(alice, bob):
    """Notifications arrive in the order they were published."""
    broker = pl.MessageBroker()
    first = make_notification(alice)
    second = make_notification(bob)
    async with broker.subscribe("group-being-edited") as subscription:
        await broker.publish("group-being-edited", first)
        await broker.publish("group-being-edited", second)
        received = []
        with anyio.fail_after(1):
            async for notification in subscription:
                received.append(notification)
                if len(received) == 2:
                    break
    assert received == [first, second]


async def test_unsubscribe(alice):
    """After closing, nothing more is received and publishing still works."""
    broker = pl.MessageBroker()
    subscription = broker.subscribe("group-being-edited")
    subscription.close()
    assert subscription.closed
    assert broker.subscriber_count("group-being-edited") == 0
    for _ in range(3):
        assert await broker.publish("group-being-edited", make_notification(alice)) == 0
    with pytest.raises(EndOfStream):
        await subscription.receive()
    # Closing twice is harmless
    subscription.close()


async def test_close_ends_iteration(alice):
    """Closing a subscription ends an ``async for`` loop waiting on it."""
    broker = pl.MessageBroker()
    subscription = broker.subscribe("group-being-edited")
    received = []

    async def consume():
        async for notification in subscription:
            received.append(notification)

    with anyio.fail_after(1):
        async with anyio.create_task_group() as tg:
            tg.start_soon(consume)
            await broker.publish("group-being-edited", make_notification(alice))
            await anyio.sleep(0.01)
            subscription.close()
    assert len(received) == 1


async def test_full_buffer_drops_new(alice, bob, caplog):
    """A slow subscriber loses new notifications, and publish doesn't block."""
    broker = pl.MessageBroker()
    first = make_notification(alice)
    async with broker.subscribe("group-being-edited", max_buffer_size=1) as slow:
        async with broker.subscribe("group-being-edited", max_buffer_size=5) as fast:
            with anyio.fail_after(1):
                assert await broker.publish("group-being-edited", first) == 2
                dropped = make_notification(bob)
                assert await broker.publish("group-being-edited", dropped) == 1
            assert "buffer is full" in caplog.text
            assert await slow.receive() == first
            with pytest.raises(anyio.WouldBlock):
                slow._receive_stream.receive_nowait()
            assert await fast.receive() == first
            assert await fast.receive() == dropped


async def test_closed_listener_is_removed(alice):
    """A listener whose stream has closed is unsubscribed on the next publish."""
    broker = pl.MessageBroker()
    send_stream, receive_stream = create_memory_object_stream[pl.TopicMessage](1)
    broker.add_listener("group-save-edit", send_stream)
    receive_stream.close()
    assert broker.subscriber_count("group-save-edit") == 1
    assert await broker.publish("group-save-edit", make_notification(alice)) == 0
    assert broker.subscriber_count("group-save-edit") == 0
    send_stream.close()


async def test_listener_receives_topic(alice):
    """Streams added with `add_listener` receive `TopicMessage` objects."""
    broker = pl.MessageBroker()
    send_stream, receive_stream = create_memory_object_stream[pl.TopicMessage](4)
    broker.add_listener("group-save-edit", send_stream)
    broker.add_listener("group-being-edited", send_stream)
    # Adding twice doesn't duplicate delivery.
    broker.add_listener("group-save-edit", send_stream)
    notification = make_notification(alice, kind=pl.NotificationKind.SAVED)
    await broker.publish("group-save-edit", notification)
    message = receive_stream.receive_nowait()
    assert message == pl.TopicMessage(topic="group-save-edit", notification=notification)
    with pytest.raises(anyio.WouldBlock):
        receive_stream.receive_nowait()
    broker.remove_listener("group-save-edit", send_stream)
    broker.remove_listener("group-save-edit", send_stream)
    assert broker.subscriber_count("group-save-edit") == 0
    assert broker.subscriber_count("group-being-edited") == 1
    send_stream.close()
    receive_stream.close()
