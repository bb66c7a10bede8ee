"""Comparison configuration: presets, defaulting and validation.

Handles:
- The two shipped default sets (``ci`` and ``interactive`` presets).
- Filling every unset option with a literal or computed default, in an
  order where dependent options come after the options they read.
- Loading option values from a YAML file.
- Validating the final configuration before anything is built.
"""

from __future__ import annotations

import enum
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from perfcompare.commands import resolve_revision as git_resolve_revision
from perfcompare.errors import ConfigError
from perfcompare.logging import get_logger

log = get_logger("config")


# ---------------------------------------------------------------------------
# Variants and option names
# ---------------------------------------------------------------------------


class Variant(str, enum.Enum):
    """One of the two builds under comparison."""

    CONTROL = "control"
    EXPERIMENT = "experiment"


def variant_key(variant: Variant, suffix: str) -> str:
    """Return the option name ``{variant}-{suffix}``, e.g. ``control-url``."""
    return f"{variant.value}-{suffix}"


def build_flag_key(variant: Variant) -> str:
    """Return the option name of the variant's build flag, e.g. ``build-control``."""
    return f"build-{variant.value}"


OPTION_NAMES: tuple[str, ...] = (
    "use-yarn",
    "control-sha",
    "experiment-sha",
    "build-control",
    "build-experiment",
    "control-dist",
    "experiment-dist",
    "control-build-command",
    "experiment-build-command",
    "control-serve-command",
    "experiment-serve-command",
    "control-url",
    "experiment-url",
    "fidelity",
    "markers",
    "runtime-stats",
    "report",
    "headless",
    "regression-threshold",
)

BOOL_OPTIONS = frozenset(
    {"use-yarn", "build-control", "build-experiment", "runtime-stats", "report", "headless"}
)

FIDELITY_NAMES = ("test", "low", "medium", "high")

# Options naming a git revision; YAML must not coerce these to numbers.
_REVISION_OPTIONS = ("control-sha", "experiment-sha")

# ember serves on this port unless told otherwise.
_EMBER_DEFAULT_PORT = 4200


# ---------------------------------------------------------------------------
# Presets
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WaitPolicy:
    """How long to poll a freshly started server before giving up."""

    max_attempts: int
    interval: float  # seconds between checks
    request_timeout: float  # seconds per request

    @property
    def budget(self) -> float:
        """Upper bound on seconds spent sleeping between checks."""
        return max(self.max_attempts - 1, 0) * self.interval


CI_WAIT = WaitPolicy(max_attempts=500, interval=0.2, request_timeout=2.0)
INTERACTIVE_WAIT = WaitPolicy(max_attempts=300, interval=1.0, request_timeout=2.0)


@dataclass(frozen=True)
class Preset:
    """A named set of defaults for the options that differ between environments."""

    name: str
    control_port: int
    experiment_port: int
    control_ref: str
    instrument: bool
    fidelity: str
    headless: bool
    wait: WaitPolicy


CI = Preset(
    name="ci",
    control_port=4200,
    experiment_port=4201,
    control_ref="origin/master",
    instrument=True,
    fidelity="low",
    headless=True,
    wait=CI_WAIT,
)

INTERACTIVE = Preset(
    name="interactive",
    control_port=4200,
    experiment_port=4201,
    control_ref="origin/master",
    instrument=True,
    fidelity="high",
    headless=False,
    wait=INTERACTIVE_WAIT,
)

PRESETS: dict[str, Preset] = {p.name: p for p in (CI, INTERACTIVE)}


def get_preset(name: str) -> Preset:
    """Look up a shipped preset by name.

    Raises:
        ConfigError: If no preset has that name.
    """
    try:
        return PRESETS[name]
    except KeyError:
        raise ConfigError(
            f"Unknown preset '{name}'. Valid presets: {', '.join(sorted(PRESETS))}"
        ) from None


# ---------------------------------------------------------------------------
# Defaults
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Literal:
    """A default that is a fixed value."""

    value: Any


@dataclass(frozen=True)
class Computed:
    """A default produced from the options resolved so far.

    The producer only runs when the option was not supplied.
    """

    produce: Callable[[Mapping[str, Any]], Any]


Default = Literal | Computed


def _serve_command(dist: str, port: int) -> str:
    cmd = f"ember s --path={dist}"
    if port != _EMBER_DEFAULT_PORT:
        cmd += f" --port={port}"
    return cmd


def _url(port: int, instrument: bool) -> str:
    url = f"http://localhost:{port}"
    if instrument:
        url += "?tracerbench=true"
    return url


def default_options(
    preset: Preset,
    resolve_revision: Callable[[str], str],
) -> list[tuple[str, Default]]:
    """Return the ordered ``(option, default)`` pairs for *preset*.

    Options that embed another option's value appear after it.
    """
    return [
        ("use-yarn", Literal(True)),
        ("control-sha", Computed(lambda _: resolve_revision(preset.control_ref))),
        ("experiment-sha", Computed(lambda _: resolve_revision("HEAD"))),
        ("build-control", Literal(True)),
        ("build-experiment", Literal(True)),
        ("control-dist", Literal("dist-control")),
        ("experiment-dist", Literal("dist-experiment")),
        (
            "control-build-command",
            Computed(lambda c: f"ember build -e production --output-path {c['control-dist']}"),
        ),
        (
            "experiment-build-command",
            Computed(lambda c: f"ember build -e production --output-path {c['experiment-dist']}"),
        ),
        (
            "control-serve-command",
            Computed(lambda c: _serve_command(c["control-dist"], preset.control_port)),
        ),
        (
            "experiment-serve-command",
            Computed(lambda c: _serve_command(c["experiment-dist"], preset.experiment_port)),
        ),
        ("control-url", Literal(_url(preset.control_port, preset.instrument))),
        ("experiment-url", Literal(_url(preset.experiment_port, preset.instrument))),
        ("fidelity", Literal(preset.fidelity)),
        ("markers", Literal("domComplete")),
        ("runtime-stats", Literal(False)),
        ("report", Literal(True)),
        ("headless", Literal(preset.headless)),
        ("regression-threshold", Literal(50)),
    ]


def normalize(
    partial: Mapping[str, Any] | None = None,
    *,
    preset: Preset = CI,
    resolve_revision: Callable[[str], str] | None = None,
) -> dict[str, Any]:
    """Return a complete configuration built from *partial*.

    Caller-supplied values always win; ``None`` counts as unset.  The
    input mapping is never modified.

    Args:
        partial: Caller-supplied option values.
        preset: The default set to fill gaps from.
        resolve_revision: Maps a git reference to a short revision id.
            Defaults to running ``git rev-parse``.

    Returns:
        A new dict holding a value for every recognized option.

    Raises:
        ConfigError: If *partial* contains an unrecognized option.
    """
    supplied = {k: v for k, v in (partial or {}).items() if v is not None}
    unknown = sorted(set(supplied) - set(OPTION_NAMES))
    if unknown:
        raise ConfigError(f"Unrecognized option(s): {', '.join(unknown)}")

    config: dict[str, Any] = {}
    for key, default in default_options(preset, resolve_revision or git_resolve_revision):
        if key in supplied:
            config[key] = supplied[key]
            continue
        if isinstance(default, Computed):
            config[key] = default.produce(config)
        else:
            config[key] = default.value
        log.debug("Defaulted %s = %r", key, config[key])
    return config


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


@dataclass
class ValidationError:
    """A single configuration validation error."""

    field: str
    message: str
    severity: str = "error"  # "error" or "warning"


def validate_config(config: Mapping[str, Any]) -> list[ValidationError]:
    """Validate a normalized configuration.

    Returns a list of validation errors.  Empty list means valid.
    """
    errors: list[ValidationError] = []

    for key in OPTION_NAMES:
        if key not in config:
            errors.append(ValidationError(field=key, message=f"Option '{key}' is not set."))
            continue
        value = config[key]
        if key in BOOL_OPTIONS:
            if not isinstance(value, bool):
                errors.append(
                    ValidationError(
                        field=key,
                        message=f"Option '{key}' must be true or false (got {value!r}).",
                    )
                )
        elif key == "regression-threshold":
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                errors.append(
                    ValidationError(
                        field=key,
                        message=(
                            f"Regression threshold must be a non-negative integer "
                            f"percentage (got {value!r})."
                        ),
                    )
                )
        elif key == "fidelity":
            if not _valid_fidelity(value):
                errors.append(
                    ValidationError(
                        field=key,
                        message=(
                            f"Fidelity must be one of {', '.join(FIDELITY_NAMES)} "
                            f"or a positive sample count (got {value!r})."
                        ),
                    )
                )
        elif not isinstance(value, str) or not value.strip():
            errors.append(
                ValidationError(
                    field=key,
                    message=f"Option '{key}' must be a non-empty string (got {value!r}).",
                )
            )

    for variant in Variant:
        url = config.get(variant_key(variant, "url"))
        if isinstance(url, str) and not url.startswith(("http://", "https://")):
            errors.append(
                ValidationError(
                    field=variant_key(variant, "url"),
                    message=f"URL for {variant.value} does not look like an HTTP URL: {url}",
                    severity="warning",
                )
            )

    if config.get("control-url") and config.get("control-url") == config.get("experiment-url"):
        errors.append(
            ValidationError(
                field="experiment-url",
                message="Control and experiment URLs are identical.",
            )
        )

    return errors


def _valid_fidelity(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return value > 0
    if isinstance(value, str):
        return value in FIDELITY_NAMES or (value.isdigit() and int(value) > 0)
    return False


# ---------------------------------------------------------------------------
# YAML config files
# ---------------------------------------------------------------------------


def load_config_file(path: Path) -> dict[str, Any]:
    """Load option values from a YAML file.

    File format::

        control-sha: 1a2b3c4d
        build-control: false
        fidelity: high
        regression-threshold: 25

    Revision values are kept as written, so an all-digit short SHA such
    as ``01234567`` is not read as a number.

    Returns:
        The parsed mapping.

    Raises:
        FileNotFoundError: If *path* does not exist.
        ConfigError: If the file is not a YAML mapping.
    """
    import yaml

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must be a YAML mapping, got {type(data).__name__}")

    config = {str(k): v for k, v in data.items()}
    for key_node, value_node in yaml.compose(text, Loader=yaml.SafeLoader).value:
        key = key_node.value
        if key in _REVISION_OPTIONS and isinstance(value_node, yaml.ScalarNode):
            if config.get(key) is not None:
                config[key] = value_node.value
    return config
