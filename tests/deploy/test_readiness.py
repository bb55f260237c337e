import threading

import pytest

from hostforge.config.models import ReadinessPolicy
from hostforge.deploy.models import CommandResult, Host, ReadyState
from hostforge.deploy.readiness import ReadinessGate
from hostforge.errors import ChannelError, Interrupted, ReadinessTimeout
from hostforge.observers.dispatcher import EventBus
from hostforge.observers.events import HostReady, HostUnreachable, ReadinessAttempt


def _flaky(fail_times):
    attempts = {"n": 0}

    def responder(host, command):
        attempts["n"] += 1
        if attempts["n"] <= fail_times:
            return ChannelError("connection refused")
        return None
    return responder


def test_ready_after_k_attempts_sleeps_k_minus_one_intervals(channel_factory, capture):
    channel = channel_factory(_flaky(2))
    sleeps = []
    gate = ReadinessGate(
        channel,
        ReadinessPolicy(max_attempts=5, interval_seconds=10),
        sleep=sleeps.append,
        bus=EventBus([capture]),
    )
    host = Host(address="10.0.0.1", role="application")

    attempts = gate.await_ready(host)

    assert attempts == 3
    assert len(channel.calls) == 3
    assert sleeps == [10, 10]
    assert host.ready_state == ReadyState.READY
    assert sum(isinstance(e, ReadinessAttempt) for e in capture.events) == 3
    ready = next(e for e in capture.events if isinstance(e, HostReady))
    assert ready.attempts == 3


def test_ready_on_first_attempt_does_not_sleep(channel_factory):
    sleeps = []
    gate = ReadinessGate(channel_factory(), ReadinessPolicy(max_attempts=3), sleep=sleeps.append)
    host = Host(address="10.0.0.1", role="ci")

    assert gate.await_ready(host) == 1
    assert sleeps == []


def test_never_reachable_times_out_after_max_attempts(channel_factory, capture):
    channel = channel_factory(lambda h, c: ChannelError("timed out"))
    sleeps = []
    gate = ReadinessGate(
        channel,
        ReadinessPolicy(max_attempts=4, interval_seconds=2),
        sleep=sleeps.append,
        bus=EventBus([capture]),
    )
    host = Host(address="10.0.0.9", role="monitoring")

    with pytest.raises(ReadinessTimeout) as exc:
        gate.await_ready(host)

    assert isinstance(exc.value, TimeoutError)
    assert exc.value.attempts == 4
    assert len(channel.calls) == 4
    assert sleeps == [2, 2, 2]
    assert host.ready_state == ReadyState.UNREACHABLE
    assert any(isinstance(e, HostUnreachable) for e in capture.events)


def test_non_zero_exit_counts_as_not_ready(channel_factory):
    channel = channel_factory(lambda h, c: CommandResult(exit_code=255, stderr="Permission denied"))
    gate = ReadinessGate(channel, ReadinessPolicy(max_attempts=2, interval_seconds=0), sleep=lambda s: None)

    with pytest.raises(ReadinessTimeout):
        gate.await_ready(Host(address="10.0.0.2", role="ci"))


def test_probe_uses_connect_timeout(channel_factory):
    seen = {}

    class Recording(channel_factory):
        def execute(self, host, command, *, timeout=None, connect_timeout=None):
            seen["timeout"] = timeout
            seen["connect_timeout"] = connect_timeout
            return super().execute(host, command)

    gate = ReadinessGate(Recording(), ReadinessPolicy(connect_timeout_seconds=7))
    gate.await_ready(Host(address="10.0.0.3", role="ci"))
    assert seen == {"timeout": 7, "connect_timeout": 7}


def test_cancelled_gate_stops_polling(channel_factory):
    cancel = threading.Event()
    cancel.set()
    channel = channel_factory()
    gate = ReadinessGate(channel, ReadinessPolicy(), cancel=cancel)

    with pytest.raises(Interrupted):
        gate.await_ready(Host(address="10.0.0.4", role="ci"))
    assert channel.calls == []
