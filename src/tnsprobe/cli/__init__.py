"""CLI commands for the TNS probe.

Example:
    $ tns-probe run --config /etc/tns/tns_config.conf
    $ tns-probe show-config
"""

from tnsprobe.cli.tns import cli, run, show_config, simulate

__all__ = [
    "cli",
    "run",
    "show_config",
    "simulate",
]
