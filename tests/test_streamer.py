from __future__ import annotations

import asyncio

import pytest

from knowreply_mcp.server.streamer import NotificationStreamer, ProgressChannel, notification_text


def test_events_drain_before_result():
    async def scenario():
        progress = ProgressChannel()
        streamer = NotificationStreamer(progress, lambda: True)
        sent = await streamer.stream(3, 0)
        progress.finish("done")

        seen = []

        async def on_event(event):
            seen.append((event.sequence, event.data))

        delivered, result = await progress.drain(on_event)
        return sent, seen, delivered, result

    sent, seen, delivered, result = asyncio.run(scenario())
    assert sent == 3
    assert [s for s, _ in seen] == [1, 2, 3]
    assert seen[0][1].startswith("Notification #1 at ")
    assert (delivered, result) == (True, "done")


def test_only_one_terminal_item():
    async def scenario():
        progress = ProgressChannel()
        assert progress.finish(1)
        assert not progress.finish(2)
        assert not progress.abandon()
        assert not progress.emit(object())

        async def on_event(event):
            raise AssertionError("no events expected")

        return await progress.drain(on_event)

    assert asyncio.run(scenario()) == (True, 1)


def test_abandon_discards_result():
    async def scenario():
        progress = ProgressChannel()
        progress.abandon()
        late = progress.finish("late")

        async def on_event(event):
            pass

        return late, await progress.drain(on_event)

    late, drained = asyncio.run(scenario())
    assert late is False
    assert drained == (False, None)


def test_producer_failure_is_raised():
    async def scenario():
        progress = ProgressChannel()
        progress.fail(RuntimeError("boom"))

        async def on_event(event):
            pass

        await progress.drain(on_event)

    with pytest.raises(RuntimeError, match="boom"):
        asyncio.run(scenario())


def test_stream_stops_when_session_dies():
    state = {"alive": True}

    async def scenario():
        progress = ProgressChannel()
        streamer = NotificationStreamer(progress, lambda: state["alive"])

        def text(seq, ts):
            if seq == 3:
                state["alive"] = False
            return notification_text(seq, ts)

        return await streamer.stream(5, 0, text=text), streamer.sent

    emitted, sent = asyncio.run(scenario())
    assert emitted == 2
    assert sent == 2


def test_closed_event_cuts_the_pause_short():
    async def scenario():
        closed = asyncio.Event()
        alive = {"v": True}
        streamer = NotificationStreamer(ProgressChannel(), lambda: alive["v"], closed)

        async def disconnect():
            await asyncio.sleep(0.01)
            alive["v"] = False
            closed.set()

        loop = asyncio.get_running_loop()
        started = loop.time()
        _, emitted = await asyncio.gather(disconnect(), streamer.stream(3, 30_000))
        return emitted, loop.time() - started

    emitted, elapsed = asyncio.run(scenario())
    assert emitted == 1
    assert elapsed < 5


def test_publish_after_close_is_dropped():
    async def scenario():
        streamer = NotificationStreamer(ProgressChannel(), lambda: False)
        return streamer.publish("x"), streamer.sent

    assert asyncio.run(scenario()) == (None, 0)
