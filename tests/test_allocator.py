"""Tests for allocator module."""

import pytest

from pfm.allocator import PortAllocator
from pfm.errors import NoPortsAvailable
from pfm.probe import MAX_PORT


class MockProbe:
    def __init__(self, busy):
        self.busy = set(busy)
        self.checked = []

    def is_port_free(self, port):
        self.checked.append(port)
        return port not in self.busy


def test_allocate_requested_port_when_free():
    """Test that a free requested port is returned as is."""
    allocator = PortAllocator(MockProbe(busy=set()))

    assert allocator.allocate(8080) == 8080


def test_allocate_skips_occupied_ports():
    """Test that occupied ports are skipped one at a time."""
    allocator = PortAllocator(MockProbe(busy={8080, 8081, 8082}))

    assert allocator.allocate(8080) == 8083


def test_allocate_skips_reserved_ports():
    """Test that ports held by running forwards are skipped even if bindable."""
    probe = MockProbe(busy=set())
    allocator = PortAllocator(probe)

    port = allocator.allocate(8080, reserved={8080, 8081})

    assert port == 8082
    # Reserved ports are rejected without touching the OS
    assert probe.checked == [8082]


def test_allocate_checks_both_sources():
    """Test that a candidate must pass the reserved set and the probe."""
    allocator = PortAllocator(MockProbe(busy={8081}))

    assert allocator.allocate(8080, reserved={8080, 8082}) == 8083


def test_allocate_window_exhausted_raises_error():
    """Test that allocation fails when every port in the window is taken."""
    allocator = PortAllocator(MockProbe(busy=set(range(8080, 8091))), window=10)

    with pytest.raises(NoPortsAvailable):
        allocator.allocate(8080)


def test_allocate_uses_last_port_in_window():
    """Test that the window includes requested_port + window."""
    allocator = PortAllocator(MockProbe(busy=set(range(8080, 8090))), window=10)

    assert allocator.allocate(8080) == 8090


def test_allocate_stops_at_max_port():
    """Test that the search never goes past the highest TCP port."""
    probe = MockProbe(busy=set(range(MAX_PORT - 2, MAX_PORT + 1)))
    allocator = PortAllocator(probe, window=100)

    with pytest.raises(NoPortsAvailable):
        allocator.allocate(MAX_PORT - 2)

    assert max(probe.checked) == MAX_PORT


@pytest.mark.parametrize("port", [0, -1, MAX_PORT + 1])
def test_allocate_rejects_invalid_port(port):
    allocator = PortAllocator(MockProbe(busy=set()))

    with pytest.raises(ValueError):
        allocator.allocate(port)


def test_allocate_is_deterministic():
    allocator = PortAllocator(MockProbe(busy={5000, 5002}))

    assert allocator.allocate(5000) == allocator.allocate(5000) == 5001
