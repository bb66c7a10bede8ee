"""Exception types raised by perfcompare."""

from __future__ import annotations


class PerfCompareError(Exception):
    """Base class for every error perfcompare raises deliberately."""


class ConfigError(PerfCompareError):
    """Configuration could not be loaded or contains unrecognized options."""


class CommandError(PerfCompareError):
    """A shell command failed to start or exited with a non-zero status."""

    def __init__(self, command: str, returncode: int | None, output: str = "") -> None:
        self.command = command
        self.returncode = returncode
        self.output = output
        if returncode is None:
            message = f"Command could not be started: {command}"
        else:
            message = f"Command exited with status {returncode}: {command}"
        super().__init__(message)


class ServerUnreachable(PerfCompareError):
    """A server did not become reachable within the polling budget."""

    def __init__(self, url: str, attempts: int) -> None:
        self.url = url
        self.attempts = attempts
        super().__init__(
            f"Unable to reach server at {url} for performance analysis "
            f"after {attempts} attempts"
        )


class ServerStoppedError(PerfCompareError):
    """A server handle was used after it had already been stopped."""
