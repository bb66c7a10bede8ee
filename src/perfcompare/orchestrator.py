"""The comparison pipeline: build both variants, serve them, compare, tear down.

Stages run strictly in order and any failure aborts the rest.  Servers
that were started are always stopped, exactly once, even when the
comparison itself fails.
"""

from __future__ import annotations

import enum
import functools
import time
from collections.abc import Callable, Mapping
from typing import Any

from perfcompare.build import build_variant
from perfcompare.commands import CommandResult, run_command
from perfcompare.config import CI, Preset, Variant, normalize, variant_key
from perfcompare.logging import get_logger
from perfcompare.reachability import wait_for_server
from perfcompare.server import ServerHandle, start_server

log = get_logger("orchestrator")

TOOL_PACKAGE = "tracerbench@3"


class Stage(str, enum.Enum):
    """Pipeline stages, in execution order."""

    NORMALIZING = "normalizing"
    INSTALLING_TOOL = "installing-tool"
    BUILDING_CONTROL = "building-control"
    BUILDING_EXPERIMENT = "building-experiment"
    STARTING_CONTROL_SERVER = "starting-control-server"
    STARTING_EXPERIMENT_SERVER = "starting-experiment-server"
    COMPARING = "comparing"
    TERMINATING_SERVERS = "terminating-servers"
    DONE = "done"


_BUILD_STAGES = {
    Variant.CONTROL: Stage.BUILDING_CONTROL,
    Variant.EXPERIMENT: Stage.BUILDING_EXPERIMENT,
}
_SERVER_STAGES = {
    Variant.CONTROL: Stage.STARTING_CONTROL_SERVER,
    Variant.EXPERIMENT: Stage.STARTING_EXPERIMENT_SERVER,
}


def tool_install_command(config: Mapping[str, Any]) -> str:
    """Return the command that installs tracerbench globally."""
    if config["use-yarn"]:
        return f"yarn global add {TOOL_PACKAGE}"
    return f"npm install -g {TOOL_PACKAGE}"


def build_compare_command(config: Mapping[str, Any]) -> str:
    """Return the ``tracerbench compare`` command line for *config*."""
    cmd = (
        "tracerbench compare"
        f" --experimentURL={config['experiment-url']}"
        f" --controlURL={config['control-url']}"
        f" --regressionThreshold={config['regression-threshold']}"
        f" --fidelity={config['fidelity']}"
    )
    if config["headless"]:
        cmd += " --headless"
    if config["runtime-stats"]:
        cmd += " --runtimeStats"
    if config["report"]:
        cmd += " --report"
    return cmd


class Orchestrator:
    """Runs one A/B comparison.

    Collaborators are injectable so the stage sequence can be exercised
    without git, ember or a browser.

    Args:
        config: Caller-supplied options; unset ones are defaulted from *preset*.
        preset: Default set and reachability policy.
        run: Runs a shell command to completion.
        resolve_revision: Maps a git reference to a short revision id.
        start: Starts a server and returns its handle once reachable.
    """

    def __init__(
        self,
        config: Mapping[str, Any] | None = None,
        *,
        preset: Preset = CI,
        run: Callable[[str], CommandResult] = run_command,
        resolve_revision: Callable[[str], str] | None = None,
        start: Callable[[str, str], ServerHandle] | None = None,
    ) -> None:
        self.source_config: dict[str, Any] = dict(config or {})
        self.preset = preset
        self.run_command = run
        self.resolve_revision = resolve_revision
        if start is None:
            wait = functools.partial(wait_for_server, policy=preset.wait)
            start = functools.partial(start_server, wait=wait)
        self.start_server = start
        self.stage = Stage.NORMALIZING
        self.failed_stage: Stage | None = None
        self.config: dict[str, Any] = {}
        self.servers: list[ServerHandle] = []

    def _enter(self, stage: Stage) -> None:
        self.stage = stage
        log.info("== %s", stage.value)

    def run(self) -> CommandResult:
        """Execute every stage and return the comparison command's result.

        On failure, :attr:`failed_stage` records the stage that raised,
        even though teardown runs afterwards.

        Raises:
            CommandError: If any command, including the comparison, fails.
            ServerUnreachable: If a server never answers.
            OSError: If a server cannot be stopped after a successful comparison.
        """
        try:
            return self._run_stages()
        except BaseException:
            if self.failed_stage is None:
                self.failed_stage = self.stage
            raise

    def _run_stages(self) -> CommandResult:
        start_time = time.monotonic()
        self._enter(Stage.NORMALIZING)
        self.config = normalize(
            self.source_config,
            preset=self.preset,
            resolve_revision=self.resolve_revision,
        )

        self._enter(Stage.INSTALLING_TOOL)
        self.run_command(tool_install_command(self.config))

        for variant in Variant:
            self._enter(_BUILD_STAGES[variant])
            build_variant(self.config, variant, run=self.run_command)

        try:
            for variant in Variant:
                self._enter(_SERVER_STAGES[variant])
                self.servers.append(
                    self.start_server(
                        self.config[variant_key(variant, "serve-command")],
                        self.config[variant_key(variant, "url")],
                    )
                )

            self._enter(Stage.COMPARING)
            result = self.run_command(build_compare_command(self.config))
        except BaseException:
            self.failed_stage = self.stage
            # Stop failures are logged; the original error keeps propagating.
            self._terminate_servers(reraise=False)
            raise
        self._terminate_servers()

        self._enter(Stage.DONE)
        log.info("Comparison finished in %.1fs", time.monotonic() - start_time)
        return result

    def _terminate_servers(self, *, reraise: bool = True) -> None:
        self._enter(Stage.TERMINATING_SERVERS)
        servers, self.servers = self.servers, []
        failures: list[OSError] = []
        for server in servers:
            try:
                server.stop()
            except OSError as exc:
                log.error("Failed to stop server for %s: %s", server.url, exc)
                failures.append(exc)
        if failures and reraise:
            raise failures[0]


def run_comparison(
    config: Mapping[str, Any] | None = None,
    **kwargs: Any,
) -> CommandResult:
    """Run a full comparison with *config*; see :class:`Orchestrator`."""
    return Orchestrator(config, **kwargs).run()
