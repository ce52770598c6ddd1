"""Sync pulse configuration loading.

This module builds the :class:`SyncPulseConfig` used for pulse generation:
the fixed defaults, ``key=value`` overrides read from a config file, and the
interactive prompts. Loading never fails; out-of-range values are clamped
and an unreadable file yields the defaults.

Config file format (one ``key=value`` per line, ``#`` for comments)::

    pulse_period=10
    start_sfn=1024
    report_period=10
    pulse_align_type=0
    pulse_trigger_action=0
    pulse_get_cxo_count=0
"""

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Optional, Union

import click

from tnsprobe.qmi.models import (
    PULSE_PERIOD_MAX,
    REPORT_PERIOD_MAX,
    START_SFN_MAX,
    SyncPulseConfig,
)

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "/etc/tns/tns_config.conf"

CONFIG_KEYS = (
    "pulse_period",
    "start_sfn",
    "report_period",
    "pulse_align_type",
    "pulse_trigger_action",
    "pulse_get_cxo_count",
)

_UNSIGNED_PATTERN = re.compile(r"^[+]?(0[xX][0-9a-fA-F]+|0[0-7]*|[1-9][0-9]*)")


@dataclass(frozen=True)
class ConfigLoadResult:
    """Outcome of loading a config file.

    Attributes:
        config: The effective configuration (defaults when not loaded).
        loaded: Whether the file was read.
        error: Why the file could not be read, if it was not.
    """

    config: SyncPulseConfig
    loaded: bool
    error: Optional[str] = None


def load_defaults() -> SyncPulseConfig:
    """Return the baseline sync pulse configuration."""
    return SyncPulseConfig()


def parse_unsigned(value: str) -> int:
    """Parse an unsigned integer the way ``strtoul(value, NULL, 0)`` does.

    Accepts decimal, ``0x`` hexadecimal and leading-zero octal prefixes and
    ignores trailing garbage. Anything unparsable yields 0.
    """
    match = _UNSIGNED_PATTERN.match(value.strip())
    if not match:
        return 0

    token = match.group(1)
    if len(token) > 1 and token[0] == "0" and token[1] not in "xX":
        return int(token, 8)
    return int(token, 0)


def load_overrides(source: Iterable[str], defaults: Optional[SyncPulseConfig] = None) -> SyncPulseConfig:
    """Apply ``key=value`` lines on top of ``defaults``.

    Args:
        source: Lines of the config source.
        defaults: Baseline config (``load_defaults()`` if not given).

    Returns:
        The merged, clamped configuration.
    """
    base = defaults or load_defaults()
    values: Dict[str, Any] = base.to_request()

    for raw_line in source:
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        key, sep, value = line.partition("=")
        if not sep:
            continue

        key = key.strip()
        value = value.strip()
        if key not in CONFIG_KEYS:
            logger.info("Unknown config key: '%s'", key)
            continue

        values[key] = parse_unsigned(value)
        logger.info("Config %s=%s", key, value)

    config = SyncPulseConfig.clamped(**values)
    logger.info("Config loaded: %s", config.summary())
    return config


def load_config_file(
    path: Union[str, Path, None],
    defaults: Optional[SyncPulseConfig] = None,
) -> ConfigLoadResult:
    """Load a config file, falling back to defaults on any read failure."""
    base = defaults or load_defaults()

    if path is None:
        logger.error("Config path is not set, using defaults")
        return ConfigLoadResult(base, loaded=False, error="no config path")

    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            logger.info("Loading config from '%s'", path)
            config = load_overrides(f, base)
    except OSError as e:
        logger.error("Cannot open config file '%s': %s, using defaults", path, e.strerror or e)
        return ConfigLoadResult(base, loaded=False, error=str(e))

    return ConfigLoadResult(config, loaded=True)


def prompt_interactive(
    defaults: Optional[SyncPulseConfig] = None,
    prompt: Callable[..., Any] = click.prompt,
) -> SyncPulseConfig:
    """Ask for the three pulse parameters on the terminal.

    Fields that are not prompted for keep their values from ``defaults``.
    Invalid or out-of-range answers are asked again.
    """
    base = defaults or load_defaults()

    pulse_period = prompt(
        f"Enter pulse period (range: 0 - {PULSE_PERIOD_MAX}, in multiple of 10 milliseconds)",
        type=click.IntRange(0, PULSE_PERIOD_MAX),
    )
    start_sfn = prompt(
        f"Enter system frame number (range: 0 - {START_SFN_MAX}, "
        f"{START_SFN_MAX} = next available sfn)",
        type=click.IntRange(0, START_SFN_MAX),
    )
    report_period = prompt(
        f"Enter pulse generation indication periodicity (range: 0 - {REPORT_PERIOD_MAX}, "
        "in multiple of 10 milliseconds, 0 = disabled)",
        type=click.IntRange(0, REPORT_PERIOD_MAX),
    )

    values = base.to_request()
    values.update(
        pulse_period=int(pulse_period),
        start_sfn=int(start_sfn),
        report_period=int(report_period),
    )
    config = SyncPulseConfig.clamped(**values)
    logger.info(
        "Configuration: pulse_period=%d, start_sfn=%d, report_period=%d",
        config.pulse_period,
        config.start_sfn,
        config.report_period,
    )
    return config
