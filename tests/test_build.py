"""Tests for perfcompare.build — per-variant checkout, install and build."""

from __future__ import annotations

import unittest
from unittest.mock import MagicMock

from perfcompare.build import build_variant, checkout_command, install_command
from perfcompare.commands import CommandResult
from perfcompare.config import Variant, normalize
from perfcompare.errors import CommandError


def _config(**overrides: object) -> dict[str, object]:
    partial = {"control-sha": "aaaa1111", "experiment-sha": "bbbb2222"}
    partial.update({k.replace("_", "-"): v for k, v in overrides.items()})
    return normalize(partial, resolve_revision=MagicMock())


def _recorder() -> MagicMock:
    return MagicMock(side_effect=lambda cmd: CommandResult(cmd, "", 0))


class TestHelpers(unittest.TestCase):
    def test_checkout_command(self) -> None:
        self.assertEqual(checkout_command("abc12345"), "git checkout abc12345")

    def test_install_yarn(self) -> None:
        self.assertEqual(install_command({"use-yarn": True}), "yarn install")

    def test_install_npm(self) -> None:
        self.assertEqual(install_command({"use-yarn": False}), "npm install")


class TestBuildVariant(unittest.TestCase):
    def test_builds_control(self) -> None:
        run = _recorder()
        dist = build_variant(_config(), Variant.CONTROL, run=run)
        self.assertEqual(dist, "dist-control")
        self.assertEqual(
            [c.args[0] for c in run.call_args_list],
            [
                "git checkout aaaa1111",
                "yarn install",
                "ember build -e production --output-path dist-control",
            ],
        )

    def test_builds_experiment_with_npm(self) -> None:
        run = _recorder()
        dist = build_variant(_config(use_yarn=False), Variant.EXPERIMENT, run=run)
        self.assertEqual(dist, "dist-experiment")
        self.assertEqual(
            [c.args[0] for c in run.call_args_list],
            [
                "git checkout bbbb2222",
                "npm install",
                "ember build -e production --output-path dist-experiment",
            ],
        )

    def test_skip_build(self) -> None:
        run = _recorder()
        dist = build_variant(
            _config(build_control=False, control_dist="prebuilt"), Variant.CONTROL, run=run
        )
        self.assertEqual(dist, "prebuilt")
        run.assert_not_called()

    def test_skip_one_variant_only(self) -> None:
        run = _recorder()
        config = _config(build_control=False)
        build_variant(config, Variant.CONTROL, run=run)
        build_variant(config, Variant.EXPERIMENT, run=run)
        self.assertEqual(run.call_count, 3)

    def test_custom_build_command(self) -> None:
        run = _recorder()
        build_variant(_config(control_build_command="make dist"), Variant.CONTROL, run=run)
        self.assertEqual(run.call_args_list[-1].args[0], "make dist")

    def test_checkout_failure_stops_build(self) -> None:
        run = MagicMock(side_effect=CommandError("git checkout aaaa1111", 1, ""))
        with self.assertRaises(CommandError):
            build_variant(_config(), Variant.CONTROL, run=run)
        run.assert_called_once_with("git checkout aaaa1111")

    def test_install_failure_stops_build(self) -> None:
        def run(cmd: str) -> CommandResult:
            if cmd == "yarn install":
                raise CommandError(cmd, 1, "")
            return CommandResult(cmd, "", 0)

        recorder = MagicMock(side_effect=run)
        with self.assertRaises(CommandError):
            build_variant(_config(), Variant.CONTROL, run=recorder)
        self.assertEqual(
            [c.args[0] for c in recorder.call_args_list],
            ["git checkout aaaa1111", "yarn install"],
        )


if __name__ == "__main__":
    unittest.main()
