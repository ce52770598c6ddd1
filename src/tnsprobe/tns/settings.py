"""Runtime settings for the TNS probe.

Timing and policy knobs for the workers, loaded from an optional YAML
file. Pulse parameters are not part of these settings; they come from the
``key=value`` config file or the interactive prompts.

Example settings file::

    config_path: /etc/tns/tns_config.conf
    log_level: INFO
    gate:
      poll_interval: 5.0
    configurator:
      send_timeout: 50.0
      max_attempts: 3
      retry_backoff: 3.0
      exit_on_failure: false
    supervisor:
      join_timeout: 10.0
      restart_delay: 5.0
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Union

import yaml

from tnsprobe.qmi.exceptions import ConfigurationError
from tnsprobe.tns.config import DEFAULT_CONFIG_PATH

VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class TnsSettings:
    """TNS worker settings.

    Attributes:
        poll_interval: Seconds between cancellation checks while waiting.
        send_timeout: Timeout of a single QMI request in seconds.
        max_attempts: Sync pulse configuration attempts before giving up.
        retry_backoff: Seconds between configuration attempts.
        join_timeout: Seconds to wait for each worker at shutdown.
        exit_on_configure_failure: Shut down when configuration attempts are
            exhausted instead of continuing to listen.
        restart_delay: Seconds before restarting after a failed run.
        config_path: Default pulse config file.
        log_level: Logging level name.
    """

    poll_interval: float = 5.0
    send_timeout: float = 50.0
    max_attempts: int = 3
    retry_backoff: float = 3.0
    join_timeout: float = 10.0
    exit_on_configure_failure: bool = False
    restart_delay: float = 5.0
    config_path: str = DEFAULT_CONFIG_PATH
    log_level: str = "INFO"

    def validate(self) -> None:
        """Validate settings values.

        Raises:
            ValueError: If a value is out of range.
        """
        if self.poll_interval <= 0:
            raise ValueError(f"Invalid poll_interval: {self.poll_interval}")

        if self.send_timeout <= 0:
            raise ValueError(f"Invalid send_timeout: {self.send_timeout}")

        if self.max_attempts < 1:
            raise ValueError(f"Invalid max_attempts: {self.max_attempts}")

        if self.retry_backoff < 0:
            raise ValueError(f"Invalid retry_backoff: {self.retry_backoff}")

        if self.join_timeout <= 0:
            raise ValueError(f"Invalid join_timeout: {self.join_timeout}")

        if self.restart_delay < 0:
            raise ValueError(f"Invalid restart_delay: {self.restart_delay}")

        if self.log_level.upper() not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log_level: {self.log_level}")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TnsSettings":
        """Create settings from a dictionary.

        Accepts flat keys as well as the ``gate``, ``configurator`` and
        ``supervisor`` sections of the settings file.

        Raises:
            ValueError: If the data holds unknown keys or invalid values.
        """
        data = dict(data)
        gate = data.pop("gate", None) or {}
        configurator = data.pop("configurator", None) or {}
        supervisor = data.pop("supervisor", None) or {}

        if "poll_interval" in gate:
            data["poll_interval"] = gate["poll_interval"]
        for key in ("send_timeout", "max_attempts", "retry_backoff"):
            if key in configurator:
                data[key] = configurator[key]
        if "exit_on_failure" in configurator:
            data["exit_on_configure_failure"] = configurator["exit_on_failure"]
        for key in ("join_timeout", "restart_delay"):
            if key in supervisor:
                data[key] = supervisor[key]

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(unknown)}")

        settings = cls(**data)
        settings.validate()
        return settings

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "TnsSettings":
        """Load settings from a YAML file.

        Raises:
            ConfigurationError: If the file cannot be read or is invalid.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"cannot read file: {e}", path=str(path))
        except yaml.YAMLError as e:
            raise ConfigurationError(f"invalid YAML: {e}", path=str(path))

        if not isinstance(data, dict):
            raise ConfigurationError("top level must be a mapping", path=str(path))

        try:
            return cls.from_dict(data)
        except (TypeError, ValueError) as e:
            raise ConfigurationError(str(e), path=str(path))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {f.name: getattr(self, f.name) for f in fields(self)}
