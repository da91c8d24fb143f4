"""Test fixtures and configuration."""

import tempfile
from pathlib import Path

import psutil
import pytest

from pfm.allocator import PortAllocator
from pfm.manager import ForwardManager
from pfm.registry import ForwardRegistry
from pfm.supervisor import ProcessSupervisor


class FakeProbe:
    """Port probe where only the listed ports are taken."""

    def __init__(self, busy=()):
        self.busy = set(busy)

    def is_port_free(self, port):
        return port not in self.busy


class FakeProcesses:
    """Process table with controllable liveness."""

    def __init__(self):
        self.alive = set()
        self.denied = set()
        self.terminated = []

    def is_alive(self, pid):
        return pid in self.alive

    def terminate(self, pid):
        if pid in self.denied:
            raise psutil.AccessDenied(pid)
        if pid not in self.alive:
            raise psutil.NoSuchProcess(pid)
        self.alive.discard(pid)
        self.terminated.append(pid)

    def kill(self, pid):
        """Simulate the process being killed outside pfm."""
        self.alive.discard(pid)


class FakeLauncher:
    """Launcher that hands out pids instead of running ssh."""

    def __init__(self, processes):
        self.processes = processes
        self.calls = []
        self.next_pid = 1000
        self.error = None

    def __call__(self, host, remote_port, local_port, options):
        self.calls.append((host, remote_port, local_port, options))
        if self.error is not None:
            raise self.error
        pid = self.next_pid
        self.next_pid += 1
        self.processes.alive.add(pid)
        return pid


@pytest.fixture
def temp_dir():
    """Temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def registry_path(temp_dir):
    return temp_dir / "forwards.json"


@pytest.fixture
def registry(registry_path):
    """Registry instance backed by a temporary file."""
    return ForwardRegistry(registry_path, lock_timeout=0.2)


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def processes():
    return FakeProcesses()


@pytest.fixture
def launcher(processes):
    return FakeLauncher(processes)


@pytest.fixture
def manager(registry, probe, launcher, processes):
    """Forward manager wired to fakes instead of ssh and the OS."""
    return ForwardManager(
        registry=registry,
        allocator=PortAllocator(probe, window=100),
        supervisor=ProcessSupervisor(launcher=launcher, processes=processes),
    )
