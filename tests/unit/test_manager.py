from __future__ import annotations

import pytest

from mqtt_console.core.manager import SubscriptionState
from mqtt_console.core.sinks import CONSOLE, SinkId
from mqtt_console.errors import SpawnError, TopicError, TopicRequiredError


def test_subscribe_registers_running_subscription(session, fake_runner):
    sub = session.manager.subscribe("x/y")

    assert sub.state is SubscriptionState.RUNNING
    assert session.manager.handle_map[sub.id] is sub
    assert fake_runner.started[0].argv[-2:] == ["-t", "x/y"]
    assert session.sinks.is_live(SinkId.topic("x/y"))


def test_lines_reach_topic_and_console_in_order(session, fake_runner, settle):
    sub = session.manager.subscribe("x/y")
    proc = fake_runner.started[0]
    payloads = [f"msg {i}" for i in range(20)]

    proc.emit(*payloads)
    proc.finish(0)
    settle(sub)

    topic_lines = session.sinks.lines(SinkId.topic("x/y"))
    console_lines = session.sinks.lines(CONSOLE)
    assert topic_lines[1:21] == payloads
    assert console_lines[1:21] == [f"[x/y] {p}" for p in payloads]


def test_natural_exit_appends_status_and_removes(session, fake_runner, settle):
    sub = session.manager.subscribe("x/y")
    fake_runner.started[0].finish(7)
    settle(sub)

    assert sub.id not in session.manager.handle_map
    assert sub.state is SubscriptionState.STOPPED
    assert session.sinks.lines(SinkId.topic("x/y"))[-1] == "[mqtt-console] Subscription to x/y ended (code 7)"
    assert session.sinks.lines(CONSOLE)[-1] == "[x/y] [mqtt-console] Subscription to x/y ended (code 7)"


def test_no_lines_delivered_after_stop(session, fake_runner, settle):
    sub = session.manager.subscribe("a")
    proc = fake_runner.started[0]
    proc.emit("before")
    # lines queued but not yet applied when stop() runs
    sub.pump.join(0.2)

    assert session.manager.stop(sub.id) is True
    settle(sub)

    assert "before" not in session.sinks.lines(SinkId.topic("a"))
    assert proc.stop_calls == 1
    assert sub.state is SubscriptionState.STOPPED
    # no "ended" status line for a subscription stopped by the caller
    assert not any("ended" in line for line in session.sinks.lines(SinkId.topic("a")))


def test_stop_twice_and_stop_after_exit(session, fake_runner, settle):
    sub = session.manager.subscribe("a")
    assert session.manager.stop(sub.id) is True
    assert session.manager.stop(sub.id) is False

    other = session.manager.subscribe("b")
    fake_runner.started[1].finish(0)
    settle(other)
    assert session.manager.stop(other.id) is False
    assert len(session.manager.handle_map) == 0


def test_each_subscribe_gets_its_own_process(session, fake_runner):
    a = session.manager.subscribe("dup")
    b = session.manager.subscribe("dup")

    assert a.id != b.id
    assert len(session.manager.handle_map) == 2
    # both share the one topic surface
    assert session.sinks.get(a.sink) is session.sinks.get(b.sink)


def test_stop_topic_stops_all_for_topic(session):
    session.manager.subscribe("dup")
    session.manager.subscribe("dup")
    keep = session.manager.subscribe("other")

    assert session.manager.stop_topic("dup") == 2
    assert list(session.manager.handle_map) == [keep.id]


def test_closing_topic_surface_stops_its_processes(session, fake_runner):
    a = session.manager.subscribe("closing")
    b = session.manager.subscribe("closing")
    keep = session.manager.subscribe("keep")

    session.sinks.get(SinkId.topic("closing")).close()

    assert a.id not in session.manager.handle_map
    assert b.id not in session.manager.handle_map
    assert keep.id in session.manager.handle_map
    assert fake_runner.started[0].stop_calls == 1
    assert fake_runner.started[1].stop_calls == 1
    assert fake_runner.started[2].stop_calls == 0


def test_resubscribe_after_close_gets_fresh_surface(session):
    first = session.manager.subscribe("t")
    old = session.sinks.get(first.sink)
    old.close()

    session.manager.subscribe("t")

    new = session.sinks.get(first.sink)
    assert new is not old
    assert new.is_valid()


def test_spawn_failure_leaves_no_handle_and_does_not_affect_others(session, fake_runner, settle):
    live = session.manager.subscribe("live")

    fake_runner.fail_with = "executable not found"
    with pytest.raises(SpawnError):
        session.manager.subscribe("broken")
    fake_runner.fail_with = None

    assert list(session.manager.handle_map) == [live.id]
    fake_runner.started[0].emit("still here")
    fake_runner.started[0].finish(0)
    settle(live)
    assert "still here" in session.sinks.lines(SinkId.topic("live"))


def test_invalid_topic_rejected_before_spawn(session, fake_runner):
    with pytest.raises(TopicRequiredError):
        session.manager.subscribe("")
    with pytest.raises(TopicError):
        session.manager.subscribe("a/#/b")
    assert fake_runner.started == []


def test_console_disabled_routes_topic_only(cfg, fake_runner, tmp_path):
    import dataclasses
    import io

    from mqtt_console.session import Session
    from mqtt_console.surfaces import SurfaceProvider

    s = Session(
        dataclasses.replace(cfg, use_console=False),
        runner=fake_runner,
        provider=SurfaceProvider(io.StringIO(), open_windows=False),
    )
    sub = s.manager.subscribe("q")
    fake_runner.started[0].emit("m")
    fake_runner.started[0].finish(0)
    sub.pump.join(2)
    s.dispatcher.drain()

    assert "m" in s.sinks.lines(SinkId.topic("q"))
    assert s.sinks.is_live(CONSOLE) is False


def test_publish_not_tracked(session, fake_runner):
    pid = session.manager.publish("t", "hello world")

    assert pid == fake_runner.started[0].handle
    assert fake_runner.started[0].argv[-4:] == ["-t", "t", "-m", "hello world"]
    assert len(session.manager.handle_map) == 0


def test_publish_rejects_wildcards(session, fake_runner):
    with pytest.raises(TopicError):
        session.manager.publish("t/#", "x")
    assert fake_runner.started == []


def test_publish_spawn_failure_raises(session, fake_runner):
    fake_runner.fail_with = "permission denied"
    with pytest.raises(SpawnError):
        session.manager.publish("t", "x")


def test_client_opts_passed_through(fake_runner):
    import io

    from mqtt_console.config import ClientConfig
    from mqtt_console.session import Session
    from mqtt_console.surfaces import SurfaceProvider

    s = Session(
        ClientConfig(client_opts=("--insecure",), sub_binary="my_sub"),
        runner=fake_runner,
        provider=SurfaceProvider(io.StringIO(), open_windows=False),
    )
    s.subscribe("a")
    try:
        assert fake_runner.started[0].argv == [
            "my_sub", "-h", "127.0.0.1", "-p", "1883", "--insecure", "-t", "a",
        ]
    finally:
        s.shutdown()


def test_spawn_failure_leaves_no_surface(session, fake_runner):
    fake_runner.fail_with = "executable not found"
    with pytest.raises(SpawnError):
        session.manager.subscribe("broken")

    assert session.sinks.is_live(SinkId.topic("broken")) is False
    assert session.sinks.sink_ids() == []


def test_stopped_subscriptions_release_close_callbacks(session):
    for _ in range(100):
        sub = session.manager.subscribe("t")
        session.manager.stop(sub.id)

    surface = session.sinks.get(SinkId.topic("t"))
    assert surface.close_callback_count == 0
    assert len(session.manager.handle_map) == 0


def test_exited_subscription_releases_close_callback(session, fake_runner, settle):
    keep = session.manager.subscribe("t")
    done = session.manager.subscribe("t")
    surface = session.sinks.get(SinkId.topic("t"))
    assert surface.close_callback_count == 2

    fake_runner.started[1].finish(0)
    settle(done)

    assert surface.close_callback_count == 1
    assert keep.id in session.manager.handle_map
