import io
import threading

import pytest

import server
from streaming.events import EventBus
from streaming.registry import SessionRegistry
from streaming.sessions import PingStreamController, TracerouteStreamController


class ChunkedStream:
    """Pipe stand-in whose read1() hands back the given chunks one at a time."""

    def __init__(self, chunks):
        self.chunks = list(chunks)
        self.closed = False

    def read1(self, size=-1):
        return self.chunks.pop(0) if self.chunks else b""

    def close(self):
        self.closed = True


def as_stream(data):
    return ChunkedStream(data) if isinstance(data, list) else io.BytesIO(data)


class FakeProcess:
    """
    Stand-in for subprocess.Popen.
    Output is canned (bytes, or a list of chunks); with running=True the process only exits once killed.
    """

    def __init__(self, stdout=b"", stderr=b"", returncode: int = 0, running: bool = False):
        self.stdout = as_stream(stdout)
        self.stderr = as_stream(stderr)
        self.pid = 4242
        self.kill_calls = 0
        self._returncode = returncode
        self._exited = threading.Event()
        if not running:
            self._exited.set()

    def poll(self):
        return self._returncode if self._exited.is_set() else None

    def wait(self, timeout=None):
        self._exited.wait(timeout)
        return self.poll()

    def kill(self):
        self.kill_calls += 1
        self._returncode = -9
        self._exited.set()


class FakeSpawner:
    """Records spawned argv and hands out queued FakeProcess objects."""

    def __init__(self, *processes):
        self.processes = list(processes)
        self.calls = []

    def __call__(self, argv):
        self.calls.append(list(argv))
        if not self.processes:
            raise FileNotFoundError(2, "No such file or directory", argv[0])
        return self.processes.pop(0)


@pytest.fixture()
def bus():
    return EventBus(max_events=50)


@pytest.fixture()
def make_ping_controller(bus):
    def factory(*processes):
        spawner = FakeSpawner(*processes)
        controller = PingStreamController(SessionRegistry(), bus, spawn=spawner)
        return controller, spawner

    return factory


@pytest.fixture()
def make_traceroute_controller(bus):
    def factory(*processes):
        spawner = FakeSpawner(*processes)
        return TracerouteStreamController(bus, spawn=spawner), spawner

    return factory


@pytest.fixture()
def client_ctx(monkeypatch, bus):
    """
    Flask test client with isolated controllers.
    Tests queue FakeProcess objects on the spawners; nothing real is executed.
    """
    ping_spawner = FakeSpawner()
    trace_spawner = FakeSpawner()
    ping_controller = PingStreamController(SessionRegistry(), bus, spawn=ping_spawner)
    trace_controller = TracerouteStreamController(bus, spawn=trace_spawner)

    monkeypatch.setattr(server, "ping_streams", ping_controller)
    monkeypatch.setattr(server, "traceroute_streams", trace_controller)
    monkeypatch.setattr(server, "session_bus", bus)
    monkeypatch.setattr(server, "API_KEY", "", raising=False)

    return {
        "client": server.app.test_client(),
        "ping": ping_controller,
        "ping_spawner": ping_spawner,
        "traceroute": trace_controller,
        "trace_spawner": trace_spawner,
        "bus": bus,
    }
