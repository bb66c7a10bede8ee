"""Background server processes for the two variants.

A server is started with :func:`start_server`, which only hands back a
:class:`ServerHandle` once the server answers on its URL.  The handle owns
the process; :meth:`ServerHandle.stop` ends it and invalidates the handle.
"""

from __future__ import annotations

import os
import signal
import subprocess
from collections.abc import Callable
from typing import Any

from perfcompare.errors import ServerStoppedError
from perfcompare.logging import get_logger
from perfcompare.reachability import wait_for_server

log = get_logger("server")

# Seconds to wait after SIGTERM before escalating to SIGKILL.
STOP_GRACE_PERIOD = 10.0


def spawn_server(command: str) -> subprocess.Popen[Any]:
    """Launch *command* in its own session without waiting for it.

    The new session makes the shell and everything it starts (ember and its
    workers) one process group, so the whole tree can be signalled at once.
    """
    return subprocess.Popen(
        command,
        shell=True,
        stdin=subprocess.DEVNULL,
        start_new_session=True,
    )


class ServerHandle:
    """A live server process and the URL it answers on."""

    def __init__(self, process: subprocess.Popen[Any], url: str, command: str) -> None:
        self._process: subprocess.Popen[Any] | None = process
        self.url = url
        self.command = command

    @property
    def running(self) -> bool:
        """False once :meth:`stop` has been called."""
        return self._process is not None

    @property
    def pid(self) -> int | None:
        return self._process.pid if self._process is not None else None

    def stop(self) -> int | None:
        """Terminate the server's process group.

        Sends SIGTERM, then SIGKILL if the process outlives
        :data:`STOP_GRACE_PERIOD`.

        Returns:
            The process's exit status.

        Raises:
            ServerStoppedError: If the handle was already stopped.
        """
        if self._process is None:
            raise ServerStoppedError(f"Server for {self.url} has already been stopped")
        process, self._process = self._process, None

        log.info("Stopping server for %s (pid %d)", self.url, process.pid)
        _signal_group(process, signal.SIGTERM)
        try:
            return process.wait(timeout=STOP_GRACE_PERIOD)
        except subprocess.TimeoutExpired:
            log.warning("Server for %s ignored SIGTERM, killing", self.url)
            _signal_group(process, signal.SIGKILL)
            return process.wait()

    def __repr__(self) -> str:
        state = "running" if self.running else "stopped"
        return f"ServerHandle(url={self.url!r}, {state})"


def _signal_group(process: subprocess.Popen[Any], sig: int) -> None:
    try:
        os.killpg(os.getpgid(process.pid), sig)
    except ProcessLookupError:
        # Already exited.
        pass
    except (PermissionError, OSError):
        process.send_signal(sig)


def start_server(
    command: str,
    url: str,
    *,
    wait: Callable[[str], Any] = wait_for_server,
    spawn: Callable[[str], subprocess.Popen[Any]] = spawn_server,
) -> ServerHandle:
    """Start *command* in the background and wait until *url* answers.

    Returns:
        A handle owning the running server.

    Raises:
        ServerUnreachable: If the server never answers.  The spawned
            process is killed before the error propagates.
    """
    log.info("Starting server: %s", command)
    process = spawn(command)
    try:
        wait(url)
    except BaseException:
        log.error("Server for %s did not come up, killing pid %d", url, process.pid)
        _signal_group(process, signal.SIGKILL)
        process.wait()
        raise
    log.info("Server started at %s", url)
    return ServerHandle(process, url, command)
