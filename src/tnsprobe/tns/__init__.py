"""TNS (Time Network Synchronization) workers.

Quick Start:
    >>> from tnsprobe.qmi import SimulatedServiceProvider
    >>> from tnsprobe.tns import Supervisor, load_config_file
    >>>
    >>> result = load_config_file("/etc/tns/tns_config.conf")
    >>> supervisor = Supervisor(SimulatedServiceProvider(), result.config)
    >>> exit_code = supervisor.run()
"""

from tnsprobe.tns.config import (
    DEFAULT_CONFIG_PATH,
    ConfigLoadResult,
    load_config_file,
    load_defaults,
    load_overrides,
    parse_unsigned,
    prompt_interactive,
)
from tnsprobe.tns.configurator import ConfiguratorState, PulseConfigurator, RetryPolicy
from tnsprobe.tns.gate import ReadinessGate
from tnsprobe.tns.router import IndicationRouter
from tnsprobe.tns.settings import TnsSettings
from tnsprobe.tns.supervisor import ControlChannel, Supervisor, run_supervisor

__all__ = [
    # Config
    "DEFAULT_CONFIG_PATH",
    "ConfigLoadResult",
    "load_config_file",
    "load_defaults",
    "load_overrides",
    "parse_unsigned",
    "prompt_interactive",
    "TnsSettings",
    # Workers
    "ReadinessGate",
    "IndicationRouter",
    "ConfiguratorState",
    "PulseConfigurator",
    "RetryPolicy",
    "ControlChannel",
    "Supervisor",
    "run_supervisor",
]
