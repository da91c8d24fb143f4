"""Data model for tracked forwards."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class ForwardStatus(str, Enum):
    """Persisted status of a forward."""

    RUNNING = "running"
    DEAD = "dead"


@dataclass(frozen=True)
class ForwardRecord:
    """One tracked SSH local forward."""

    id: int
    host: str
    remote_port: int
    local_port: int  # Port actually bound, may differ from requested_port
    requested_port: int
    process_id: int | None
    status: ForwardStatus
    created_at: datetime

    @property
    def is_running(self) -> bool:
        return self.status is ForwardStatus.RUNNING

    @property
    def remapped(self) -> bool:
        """True when the requested port was taken and another one was used."""
        return self.local_port != self.requested_port

    @property
    def name(self) -> str:
        """Human-readable label, e.g. ``user_at_server_8080_80``."""
        return f"{self.host.replace('@', '_at_')}_{self.local_port}_{self.remote_port}"

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a JSON-compatible dict."""
        return {
            "id": self.id,
            "host": self.host,
            "remote_port": self.remote_port,
            "local_port": self.local_port,
            "requested_port": self.requested_port,
            "process_id": self.process_id,
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ForwardRecord":
        """Build a record from its serialized form.

        Raises:
            KeyError: If a field is missing
            ValueError: If a field has the wrong type or value
        """
        process_id = data["process_id"]
        return cls(
            id=_as_int(data["id"], "id"),
            host=_as_str(data["host"], "host"),
            remote_port=_as_int(data["remote_port"], "remote_port"),
            local_port=_as_int(data["local_port"], "local_port"),
            requested_port=_as_int(data["requested_port"], "requested_port"),
            process_id=None if process_id is None else _as_int(process_id, "process_id"),
            status=ForwardStatus(data["status"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )


def _as_int(value: Any, field: str) -> int:
    # bool is an int subclass but never a valid port or id
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field} must be an integer, got {value!r}")
    return value


def _as_str(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise ValueError(f"{field} must be a non-empty string, got {value!r}")
    return value
