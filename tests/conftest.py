import threading
from unittest.mock import MagicMock, patch

import pytest


class MockChannel:
    """Stand-in for paramiko.Channel driven by queued output."""

    def __init__(self, stdout=(), stderr=(), exit_code=0, hang=False, fail_on_recv=None):
        self.stdout_queue = [c.encode("utf-8") if isinstance(c, str) else c for c in stdout]
        self.stderr_queue = [c.encode("utf-8") if isinstance(c, str) else c for c in stderr]
        self.exit_code = exit_code
        self.hang = hang
        self.fail_on_recv = fail_on_recv
        self.closed = False
        self.executed = []
        self._lock = threading.Lock()

    def exec_command(self, command):
        self.executed.append(command)

    def recv_ready(self):
        if self.fail_on_recv is not None:
            raise self.fail_on_recv
        with self._lock:
            return len(self.stdout_queue) > 0

    def recv(self, n):
        with self._lock:
            if not self.stdout_queue:
                return b""
            return self.stdout_queue.pop(0)

    def recv_stderr_ready(self):
        with self._lock:
            return len(self.stderr_queue) > 0

    def recv_stderr(self, n):
        with self._lock:
            if not self.stderr_queue:
                return b""
            return self.stderr_queue.pop(0)

    def exit_status_ready(self):
        return not self.hang and not self.closed

    def recv_exit_status(self):
        return self.exit_code

    def close(self):
        self.closed = True


class FakeSSH:
    """Replaces paramiko.SSHClient and records connect/close ordering."""

    def __init__(self):
        self.clients = []
        self.events = []
        self.fail_hosts = {}
        self.channels = []

    def __call__(self):
        client = MagicMock()
        state = {"host": None, "alive": True}
        transport = MagicMock()
        transport.is_active.side_effect = lambda: state["alive"]
        transport.open_session.side_effect = self._next_channel
        client.get_transport.return_value = transport
        client.transport = transport
        client.state = state

        def connect(**kwargs):
            state["host"] = kwargs["hostname"]
            self.events.append(("connect", kwargs["hostname"]))
            if kwargs["hostname"] in self.fail_hosts:
                state["alive"] = False
                raise self.fail_hosts[kwargs["hostname"]]

        def close():
            state["alive"] = False
            self.events.append(("close", state["host"]))

        client.connect.side_effect = connect
        client.close.side_effect = close
        self.clients.append(client)
        return client

    def _next_channel(self, *args, **kwargs):
        if not self.channels:
            return MockChannel()
        return self.channels.pop(0)

    def live_clients(self):
        return [c for c in self.clients if c.state["alive"]]


@pytest.fixture
def fake_ssh():
    fake = FakeSSH()
    with patch("mcp_ssh_command.connection.paramiko.SSHClient", side_effect=fake):
        yield fake


@pytest.fixture
def manager(fake_ssh):
    from mcp_ssh_command.session_manager import SSHSessionManager

    mgr = SSHSessionManager()
    yield mgr
    mgr.shutdown()
