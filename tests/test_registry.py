"""Tests for registry module."""

import json
from datetime import datetime, timezone

import pytest

from pfm.errors import LockTimeout, NotFound, StorageError
from pfm.models import ForwardStatus
from pfm.registry import ForwardRegistry


def _add(registry, local_port, pid=100, host="example.com", remote_port=80):
    return registry.add(
        host=host,
        remote_port=remote_port,
        local_port=local_port,
        requested_port=local_port,
        process_id=pid,
    )


def test_missing_file_is_empty(registry):
    """Test that a registry without a file loads as empty."""
    with registry.locked():
        assert registry.records() == []

    assert not registry.path.exists()


def test_add_assigns_ids_and_persists(registry):
    """Test that added records get increasing ids and reach the file."""
    with registry.locked():
        first = _add(registry, 8080, pid=100)
        second = _add(registry, 8081, pid=101)

    assert (first.id, second.id) == (1, 2)
    assert first.status is ForwardStatus.RUNNING

    data = json.loads(registry.path.read_text())
    assert data["version"] == 1
    assert data["next_id"] == 3
    assert [f["local_port"] for f in data["forwards"]] == [8080, 8081]


def test_round_trip_preserves_records_and_order(registry, registry_path):
    """Test that saving then loading reproduces the same ordered records."""
    created = datetime(2024, 5, 1, 12, 30, tzinfo=timezone.utc)
    with registry.locked():
        for port in (9000, 8000, 8500):
            registry.add(
                host="user@example.com",
                remote_port=22,
                local_port=port,
                requested_port=port - 1,
                process_id=port,
                created_at=created,
            )
        registry.mark_dead(2)
        expected = registry.records()

    reloaded = ForwardRegistry(registry_path)
    reloaded.load()

    assert reloaded.records() == expected
    assert [r.local_port for r in reloaded.records()] == [9000, 8000, 8500]


def test_ids_are_never_reused(registry):
    """Test that removing the newest record does not free its id."""
    with registry.locked():
        _add(registry, 8080)
        last = _add(registry, 8081)
        registry.remove(last.id)

    with registry.locked():
        again = _add(registry, 8081)

    assert again.id == last.id + 1


def test_running_local_ports_are_unique(registry):
    """Test that two running records cannot share a local port."""
    with registry.locked():
        _add(registry, 8080)
        with pytest.raises(ValueError):
            _add(registry, 8080, pid=101)


def test_dead_record_frees_local_port(registry):
    """Test that a dead record's port may be reused by a new record."""
    with registry.locked():
        old = _add(registry, 8080)
        registry.mark_dead(old.id)
        new = _add(registry, 8080, pid=101)

    assert registry.running_ports() == {8080}
    assert new.id != old.id


def test_mark_dead_replaces_record(registry):
    with registry.locked():
        record = _add(registry, 8080)
        dead = registry.mark_dead(record.id)

    assert dead.status is ForwardStatus.DEAD
    assert dead.local_port == record.local_port
    assert record.status is ForwardStatus.RUNNING  # Records are immutable
    assert registry.get(record.id) == dead


def test_get_and_remove_unknown_id(registry):
    with registry.locked():
        with pytest.raises(NotFound):
            registry.get(42)
        with pytest.raises(NotFound):
            registry.remove(42)


def test_mutation_requires_lock(registry):
    """Test that records cannot be changed outside a locked session."""
    with pytest.raises(RuntimeError):
        _add(registry, 8080)


def test_corrupt_file_raises_storage_error(registry, registry_path):
    registry_path.write_text("{not json")

    with pytest.raises(StorageError):
        with registry.locked():
            pass


@pytest.mark.parametrize(
    "payload",
    [
        [],
        {"version": 99, "forwards": []},
        {"version": 1},
        {"version": 1, "forwards": [{"id": 1, "host": "h"}]},
        {
            "version": 1,
            "forwards": [
                {
                    "id": "1",
                    "host": "h",
                    "remote_port": 80,
                    "local_port": 80,
                    "requested_port": 80,
                    "process_id": 1,
                    "status": "running",
                    "created_at": "2024-01-01T00:00:00+00:00",
                }
            ],
        },
    ],
)
def test_malformed_registry_raises_storage_error(registry, registry_path, payload):
    registry_path.write_text(json.dumps(payload))

    with pytest.raises(StorageError):
        registry.load()


def test_unreadable_path_raises_storage_error(temp_dir):
    """Test that a directory in place of the file is reported, not ignored."""
    path = temp_dir / "forwards.json"
    path.mkdir()

    with pytest.raises(StorageError):
        ForwardRegistry(path).load()


def test_lock_timeout_when_held(registry_path):
    """Test that a second holder gives up after lock_timeout."""
    holder = ForwardRegistry(registry_path, lock_timeout=0.1)
    waiter = ForwardRegistry(registry_path, lock_timeout=0.1)

    with holder.locked():
        with pytest.raises(LockTimeout):
            with waiter.locked():
                pass

    # Released after the holder's session
    with waiter.locked():
        assert waiter.is_locked
    assert not waiter.is_locked


def test_lock_is_not_reentrant(registry):
    with registry.locked():
        with pytest.raises(RuntimeError):
            with registry.locked():
                pass


def test_session_sees_other_writers(registry_path):
    """Test that each locked session reloads the file."""
    first = ForwardRegistry(registry_path)
    second = ForwardRegistry(registry_path)

    with first.locked():
        _add(first, 8080)

    with second.locked():
        _add(second, 8081, pid=101)

    with first.locked():
        assert [r.local_port for r in first.records()] == [8080, 8081]


def test_save_leaves_no_temp_file(registry, temp_dir):
    with registry.locked():
        _add(registry, 8080)

    assert sorted(p.name for p in temp_dir.iterdir()) == [
        "forwards.json",
        "forwards.json.lock",
    ]


def test_running_records_sharing_port_raise_storage_error(registry, registry_path):
    """Test that a hand-edited file with two running forwards on one port is rejected."""
    forward = {
        "host": "example.com",
        "remote_port": 80,
        "local_port": 8080,
        "requested_port": 8080,
        "process_id": 100,
        "status": "running",
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    payload = {
        "version": 1,
        "next_id": 3,
        "forwards": [{**forward, "id": 1}, {**forward, "id": 2, "process_id": 101}],
    }
    registry_path.write_text(json.dumps(payload))

    with pytest.raises(StorageError, match="share a local port"):
        registry.load()


def test_dead_and_running_records_may_share_port(registry, registry_path):
    forward = {
        "host": "example.com",
        "remote_port": 80,
        "local_port": 8080,
        "requested_port": 8080,
        "process_id": 100,
        "created_at": "2024-01-01T00:00:00+00:00",
    }
    payload = {
        "version": 1,
        "next_id": 3,
        "forwards": [
            {**forward, "id": 1, "status": "dead"},
            {**forward, "id": 2, "status": "running"},
        ],
    }
    registry_path.write_text(json.dumps(payload))

    registry.load()

    assert registry.running_ports() == {8080}


def test_failed_save_rolls_back_add(registry, monkeypatch):
    """Test that a record whose save failed is not kept in memory."""
    with registry.locked():
        _add(registry, 8080)

        def failing_save():
            raise StorageError("disk full")

        monkeypatch.setattr(registry, "save", failing_save)
        with pytest.raises(StorageError):
            _add(registry, 8081, pid=101)
        monkeypatch.undo()

        assert [r.local_port for r in registry.records()] == [8080]
        assert _add(registry, 8081, pid=101).id == 2
