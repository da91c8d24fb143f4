"""SSH child process launching and supervision."""

import subprocess
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Protocol

import psutil

from .config import DEFAULT_SSH_COMMAND, DEFAULT_STARTUP_GRACE
from .console import debug
from .errors import LaunchFailed, TerminateFailed


@dataclass
class LaunchOptions:
    """Extra ssh parameters for a forward."""

    identity: str | None = None  # Path passed to ssh -i
    ssh_port: int | None = None  # Remote sshd port, ssh -p
    options: list[str] = field(default_factory=list)  # Values for ssh -o


class TerminateOutcome(str, Enum):
    TERMINATED = "terminated"
    ALREADY_DEAD = "already_dead"


class Launcher(Protocol):
    def __call__(
        self, host: str, remote_port: int, local_port: int, options: LaunchOptions
    ) -> int: ...


class ProcessControl(Protocol):
    def is_alive(self, pid: int) -> bool: ...

    def terminate(self, pid: int) -> None: ...


class SshLauncher:
    """Start ``ssh -N -L`` as a detached background process."""

    def __init__(
        self,
        command: str = DEFAULT_SSH_COMMAND,
        startup_grace: float = DEFAULT_STARTUP_GRACE,
    ) -> None:
        """Initialize launcher.

        Args:
            command: ssh executable
            startup_grace: Seconds to wait before checking that ssh did not
                exit right away. 0 disables the check.
        """
        self.command = command
        self.startup_grace = startup_grace

    def build_command(
        self, host: str, remote_port: int, local_port: int, options: LaunchOptions
    ) -> list[str]:
        """Build the ssh argument vector.

        Example:
            ssh -N -L 8080:localhost:80 user@server.com
        """
        forward = f"{local_port}:localhost:{remote_port}"

        args = [self.command, "-N", "-L", forward]
        if options.identity:
            args += ["-i", options.identity]
        if options.ssh_port:
            args += ["-p", str(options.ssh_port)]
        for opt in options.options:
            args += ["-o", opt]
        args.append(host)
        return args

    def __call__(
        self, host: str, remote_port: int, local_port: int, options: LaunchOptions
    ) -> int:
        """Spawn ssh and return its pid.

        Raises:
            LaunchFailed: If ssh cannot be started or exits during startup_grace
        """
        args = self.build_command(host, remote_port, local_port, options)
        debug(f"Starting SSH tunnel: {' '.join(args)}")

        try:
            process = subprocess.Popen(
                args,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise LaunchFailed(f"Failed to start {self.command}: {e}", cause=e) from e

        if self.startup_grace > 0:
            time.sleep(self.startup_grace)
            returncode = process.poll()
            if returncode is not None:
                raise LaunchFailed(
                    f"{self.command} exited immediately with status {returncode}"
                )

        return process.pid


class ProcessTable:
    """OS process queries backed by psutil."""

    def is_alive(self, pid: int) -> bool:
        try:
            return psutil.Process(pid).status() != psutil.STATUS_ZOMBIE
        except psutil.NoSuchProcess:
            return False
        except psutil.AccessDenied:
            # Exists but belongs to someone else
            return True

    def terminate(self, pid: int) -> None:
        """Send SIGTERM to ``pid``.

        Raises:
            psutil.NoSuchProcess: If the process is gone
            psutil.AccessDenied: If the signal is not permitted
        """
        psutil.Process(pid).terminate()


class ProcessSupervisor:
    """Launch forward processes and track their liveness."""

    def __init__(
        self,
        launcher: Launcher | None = None,
        processes: ProcessControl | None = None,
    ) -> None:
        self.launcher = launcher or SshLauncher()
        self.processes = processes or ProcessTable()

    def launch(
        self,
        host: str,
        remote_port: int,
        local_port: int,
        options: LaunchOptions | None = None,
    ) -> int:
        """Start the forward process.

        Only checks that the process started, not that the tunnel works.

        Returns:
            Process id of the ssh child

        Raises:
            LaunchFailed: If the process could not be started
        """
        pid = self.launcher(host, remote_port, local_port, options or LaunchOptions())
        debug(f"Launched forward localhost:{local_port} -> {host}:{remote_port} (pid {pid})")
        return pid

    def is_alive(self, pid: int | None) -> bool:
        """Check whether ``pid`` is a running process.

        A pid reused by an unrelated process reads as alive.
        """
        if pid is None or pid <= 0:
            return False
        return self.processes.is_alive(pid)

    def terminate(self, pid: int | None) -> TerminateOutcome:
        """Ask the process to exit.

        Returns:
            TERMINATED, or ALREADY_DEAD if there was nothing to signal

        Raises:
            TerminateFailed: If the signal could not be delivered
        """
        if not self.is_alive(pid):
            return TerminateOutcome.ALREADY_DEAD

        try:
            self.processes.terminate(pid)
        except psutil.NoSuchProcess:
            return TerminateOutcome.ALREADY_DEAD
        except (psutil.AccessDenied, OSError) as e:
            raise TerminateFailed(f"Failed to stop process {pid}: {e}") from e

        debug(f"Sent SIGTERM to process {pid}")
        return TerminateOutcome.TERMINATED
