"""Building one variant of the application from its revision.

Checkout is destructive to the shared working tree, so callers must build
the variants one after the other.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from typing import Any

from perfcompare.commands import CommandResult, run_command
from perfcompare.config import Variant, build_flag_key, variant_key
from perfcompare.logging import get_logger

log = get_logger("build")


def checkout_command(sha: str) -> str:
    return f"git checkout {sha}"


def install_command(config: Mapping[str, Any]) -> str:
    """Return the dependency install command for the configured package manager."""
    return "yarn install" if config["use-yarn"] else "npm install"


def build_variant(
    config: Mapping[str, Any],
    variant: Variant,
    *,
    run: Callable[[str], CommandResult] = run_command,
) -> str:
    """Check out, install and build *variant* if its build flag is set.

    When the flag is off nothing runs and the dist directory is assumed to
    already hold a valid build.

    Returns:
        The variant's dist directory.

    Raises:
        CommandError: If checkout, install or build fails.
    """
    dist: str = config[variant_key(variant, "dist")]
    if not config[build_flag_key(variant)]:
        log.info("Skipping %s build, using existing %s", variant.value, dist)
        return dist

    log.info("Building %s at %s", variant.value, config[variant_key(variant, "sha")])
    run(checkout_command(config[variant_key(variant, "sha")]))
    run(install_command(config))
    run(config[variant_key(variant, "build-command")])
    return dist
