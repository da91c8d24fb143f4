"""Forward lifecycle orchestration for pfm."""

from dataclasses import dataclass, field

from .allocator import PortAllocator
from .console import debug, warning
from .errors import PfmError, TerminateFailed
from .models import ForwardRecord
from .registry import ForwardRegistry
from .supervisor import LaunchOptions, ProcessSupervisor, TerminateOutcome


@dataclass
class PruneResult:
    """Result of a prune operation."""

    removed: list[ForwardRecord] = field(default_factory=list)  # Dead forwards removed
    kept: list[ForwardRecord] = field(default_factory=list)  # Running forwards left alone

    @property
    def count(self) -> int:
        return len(self.removed)


class ForwardManager:
    """Start, list, stop and prune SSH forwards.

    Every operation holds the registry lock from load to save, so concurrent
    invocations of the tool never interleave their writes.
    """

    def __init__(
        self,
        registry: ForwardRegistry | None = None,
        allocator: PortAllocator | None = None,
        supervisor: ProcessSupervisor | None = None,
    ) -> None:
        self.registry = registry or ForwardRegistry()
        self.allocator = allocator or PortAllocator()
        self.supervisor = supervisor or ProcessSupervisor()

    def start(
        self,
        host: str,
        remote_port: int,
        requested_port: int | None = None,
        options: LaunchOptions | None = None,
    ) -> ForwardRecord:
        """Start a new forward and record it.

        The local port is the requested one, or the next free port above it.
        Nothing is persisted unless the ssh process launched.

        Args:
            host: SSH host, optionally ``user@host``
            remote_port: Port on the remote host
            requested_port: Preferred local port (defaults to remote_port)
            options: Extra ssh parameters

        Returns:
            The new running record

        Raises:
            NoPortsAvailable: If no local port could be allocated
            LaunchFailed: If ssh could not be started
            StorageError: If the record could not be saved; the ssh process
                is terminated first
        """
        if requested_port is None:
            requested_port = remote_port

        with self.registry.locked() as registry:
            self._reconcile()
            local_port = self.allocator.allocate(
                requested_port, reserved=registry.running_ports()
            )
            pid = self.supervisor.launch(host, remote_port, local_port, options)
            try:
                return registry.add(
                    host=host,
                    remote_port=remote_port,
                    local_port=local_port,
                    requested_port=requested_port,
                    process_id=pid,
                )
            except PfmError:
                # An untracked ssh child could never be stopped by pfm
                self._abandon(pid)
                raise

    def list_forwards(self) -> list[ForwardRecord]:
        """Get all forwards with their status checked against the OS.

        Returns:
            Records in creation order
        """
        with self.registry.locked() as registry:
            self._reconcile()
            return registry.records()

    def stop(self, forward_id: int) -> ForwardRecord:
        """Terminate a forward's process and remove its record.

        Returns:
            The removed record

        Raises:
            NotFound: If no forward has this id
            TerminateFailed: If the process could not be signalled
        """
        with self.registry.locked():
            return self._stop(forward_id)

    def stop_all(self) -> list[ForwardRecord]:
        """Stop every tracked forward.

        Returns:
            Removed records
        """
        with self.registry.locked() as registry:
            return [self._stop(record.id) for record in registry.records()]

    def prune(self, dry_run: bool = False) -> PruneResult:
        """Remove forwards whose process is gone.

        Args:
            dry_run: If True, only report what would be removed

        Returns:
            PruneResult with removed and kept records
        """
        result = PruneResult()

        with self.registry.locked() as registry:
            self._reconcile()
            for record in registry.records():
                if record.is_running:
                    result.kept.append(record)
                    continue
                if not dry_run:
                    registry.remove(record.id)
                result.removed.append(record)

        return result

    def _stop(self, forward_id: int) -> ForwardRecord:
        record = self.registry.get(forward_id)
        if record.is_running:
            outcome = self.supervisor.terminate(record.process_id)
            if outcome is TerminateOutcome.ALREADY_DEAD:
                debug(f"Process {record.process_id} of forward {forward_id} was already stopped")
        return self.registry.remove(forward_id)

    def _reconcile(self) -> None:
        """Demote running records whose process no longer exists."""
        for record in self.registry.records():
            if record.is_running and not self.supervisor.is_alive(record.process_id):
                debug(f"Forward {record.id} (pid {record.process_id}) is dead")
                self.registry.mark_dead(record.id)

    def _abandon(self, pid: int) -> None:
        """Terminate a launched process that could not be recorded."""
        try:
            self.supervisor.terminate(pid)
        except TerminateFailed as e:
            warning(f"Could not stop untracked ssh process {pid}: {e}")
