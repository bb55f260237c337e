import threading
from pathlib import Path

import pytest

from hostforge.deploy.models import CommandResult


class FakeChannel:
    """
    In-memory RemoteChannel. ``responder(host, command)`` may return a
    CommandResult, raise / return an exception, or return None for exit 0.
    """

    def __init__(self, responder=None):
        self.responder = responder
        self.calls = []
        self.transfers = []
        self.transfer_timeouts = []
        self.closed = False
        self._lock = threading.Lock()

    def execute(self, host, command, *, timeout=None, connect_timeout=None):
        with self._lock:
            self.calls.append((host.address, command))
        if self.responder is not None:
            res = self.responder(host, command)
            if isinstance(res, Exception):
                raise res
            if res is not None:
                return res
        return CommandResult(exit_code=0)

    def transfer(self, host, local_path, remote_path, *, timeout=None):
        content = Path(local_path).read_text()
        with self._lock:
            self.transfers.append((host.address, remote_path, content))
            self.transfer_timeouts.append(timeout)

    def close(self):
        self.closed = True

    def commands_for(self, address):
        return [c for a, c in self.calls if a == address]


class Capture:
    def __init__(self): self.events = []
    def notify(self, ev): self.events.append(ev)


@pytest.fixture
def channel_factory():
    return FakeChannel


@pytest.fixture
def capture():
    return Capture()
