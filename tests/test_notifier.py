import asyncio

from conftest import RecordingObserver, StalledObserver
from models.events import NotificationEvent
from services.notifier import NotificationChannel


async def test_broadcast_reaches_every_observer():
    channel = NotificationChannel()
    first, second = RecordingObserver(), RecordingObserver()
    await channel.connect(first, accept=False)
    await channel.connect(second, accept=False)

    await channel.broadcast(NotificationEvent.counter_update(3))

    assert first.messages == second.messages == [{"event": "updateImageCount", "data": 3}]


async def test_broadcast_with_no_observers_succeeds():
    await NotificationChannel().broadcast(NotificationEvent.status_log("", "nobody listening"))


async def test_failing_observer_is_dropped():
    channel = NotificationChannel()
    broken, healthy = RecordingObserver(fail=True), RecordingObserver()
    await channel.connect(broken, accept=False)
    await channel.connect(healthy, accept=False)

    await channel.broadcast(NotificationEvent.status_log("t1", "hello"))

    assert channel.subscriber_count == 1
    assert healthy.events("statusUpdate", "t1") == [{"taskId": "t1", "message": "hello"}]


async def test_late_observer_gets_no_history():
    channel = NotificationChannel()
    await channel.status_log("t1", "before")

    late = RecordingObserver()
    await channel.connect(late, accept=False)
    await channel.status_log("t1", "after")

    assert [e["message"] for e in late.events("statusUpdate")] == ["after"]


async def test_disconnect_is_idempotent():
    channel = NotificationChannel()
    observer = RecordingObserver()
    await channel.connect(observer, accept=False)

    channel.disconnect(observer)
    channel.disconnect(observer)
    assert channel.subscriber_count == 0


async def test_stalled_observer_is_dropped_without_blocking():
    channel = NotificationChannel(send_timeout=0.05)
    stalled, healthy = StalledObserver(), RecordingObserver()
    await channel.connect(stalled, accept=False)
    await channel.connect(healthy, accept=False)

    await asyncio.wait_for(channel.broadcast(NotificationEvent.counter_update(1)), 1)
    await asyncio.wait_for(channel.broadcast(NotificationEvent.counter_update(2)), 1)

    assert stalled.attempts == 1
    assert channel.subscriber_count == 1
    assert healthy.events("updateImageCount") == [1, 2]

