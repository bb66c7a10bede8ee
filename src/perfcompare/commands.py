"""Shell command execution with live output.

Every external step (git, the package manager, ember, tracerbench) goes
through :func:`run_command`, which streams the child's output to the
console while it runs and fails loudly on a non-zero exit.
"""

from __future__ import annotations

import subprocess
import sys
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from perfcompare.errors import CommandError
from perfcompare.logging import get_logger

log = get_logger("commands")


@dataclass(frozen=True)
class CommandResult:
    """Captured output and exit status of a finished command."""

    command: str
    output: str
    returncode: int

    @property
    def stdout(self) -> str:
        """Combined stdout/stderr text (stderr is merged into stdout)."""
        return self.output


def run_command(
    command: str,
    *,
    cwd: Path | None = None,
    echo: bool = True,
    stream: TextIO | None = None,
) -> CommandResult:
    """Run *command* through the shell and wait for it to exit.

    Output lines are copied to *stream* (default ``sys.stdout``) as they
    arrive so long builds stay observable.

    Args:
        command: The shell command line.
        cwd: Working directory for the child process.
        echo: If False, capture output without copying it to *stream*.
        stream: Where to echo output lines.

    Returns:
        The captured output and exit status.

    Raises:
        CommandError: If the command cannot be started or exits non-zero.
    """
    log.info("Running: %s", command)
    out = stream if stream is not None else sys.stdout
    try:
        proc = subprocess.Popen(
            command,
            shell=True,
            cwd=str(cwd) if cwd else None,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
        )
    except OSError as exc:
        log.error("Failed to start %s: %s", command, exc)
        raise CommandError(command, None, str(exc)) from exc

    chunks: list[str] = []
    assert proc.stdout is not None
    with proc.stdout:
        for line in proc.stdout:
            chunks.append(line)
            if echo:
                out.write(line)
                out.flush()
    returncode = proc.wait()

    output = "".join(chunks)
    if returncode != 0:
        log.error("Command exited %d: %s", returncode, command)
        raise CommandError(command, returncode, output)
    log.debug("Command finished: %s", command)
    return CommandResult(command=command, output=output, returncode=returncode)


def resolve_revision(
    ref: str,
    *,
    run: Callable[[str], CommandResult] = run_command,
) -> str:
    """Resolve a git reference (branch, tag, ``HEAD``) to a short revision id.

    Raises:
        CommandError: If git cannot resolve *ref*.
    """
    result = run(f"git rev-parse --short=8 {ref}")
    sha = result.stdout.strip()
    log.debug("Resolved %s -> %s", ref, sha)
    return sha
