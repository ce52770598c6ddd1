"""TNS probe CLI commands.

This module provides the command-line interface for running the NR5G
time sync pulse probe.

Example:
    $ tns-probe run --config /etc/tns/tns_config.conf
    $ tns-probe run --interactive --restart
    $ tns-probe show-config --json
    $ tns-probe simulate --status-delay 2 --duration 10
"""

import importlib
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Callable, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from tnsprobe import __version__
from tnsprobe.qmi.exceptions import ConfigurationError, TnsProbeError
from tnsprobe.qmi.models import ServiceStatus
from tnsprobe.qmi.simulated import SimulatedServiceProvider
from tnsprobe.qmi.transport import ServiceProvider
from tnsprobe.tns.config import DEFAULT_CONFIG_PATH, load_config_file, load_defaults, prompt_interactive
from tnsprobe.tns.settings import TnsSettings
from tnsprobe.tns.supervisor import Supervisor, run_supervisor

console = Console()

# Log output goes to stderr so command output stays machine-readable
log_console = Console(stderr=True)

SIMULATED_TRANSPORT = "simulated"
SIMULATED_STATUS_DELAY = 2.0


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None) -> None:
    """Set up logging with Rich handler, plus an optional log file."""
    level = logging.DEBUG if verbose else logging.INFO
    handlers = [RichHandler(console=log_console, rich_tracebacks=True)]

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=handlers,
        force=True,
    )


def simulated_provider_factory(status_delay: float) -> Callable[[], ServiceProvider]:
    """Build simulated providers that report NR5G service after a delay."""

    def factory() -> ServiceProvider:
        provider = SimulatedServiceProvider()
        provider.schedule_nr5g_status(ServiceStatus.SERVICE, delay=status_delay)
        return provider

    return factory


def load_provider_factory(transport: str) -> Callable[[], ServiceProvider]:
    """Resolve the ``--transport`` option.

    Args:
        transport: ``simulated`` or ``package.module:ClassName`` naming a
            ``ServiceProvider`` subclass with a no-argument constructor.

    Raises:
        click.BadParameter: If the transport cannot be loaded.
    """
    if transport == SIMULATED_TRANSPORT:
        return simulated_provider_factory(SIMULATED_STATUS_DELAY)

    module_name, sep, class_name = transport.partition(":")
    if not sep or not module_name or not class_name:
        raise click.BadParameter(
            f"expected '{SIMULATED_TRANSPORT}' or 'module:Class', got '{transport}'",
            param_hint="--transport",
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"cannot import {module_name}: {e}", param_hint="--transport")

    provider_class = getattr(module, class_name, None)
    if not isinstance(provider_class, type) or not issubclass(provider_class, ServiceProvider):
        raise click.BadParameter(
            f"{transport} is not a ServiceProvider class",
            param_hint="--transport",
        )

    return provider_class


def _load_settings(settings_path: Optional[Path]) -> TnsSettings:
    if settings_path is None:
        return TnsSettings()

    try:
        return TnsSettings.from_yaml(settings_path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        sys.exit(1)


def _print_error(ctx: click.Context, error: Exception) -> None:
    console.print(f"[bold red]Error:[/bold red] {error}")
    if ctx.obj.get("verbose"):
        import traceback
        console.print(traceback.format_exc())


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Also write log output to this file",
)
@click.version_option(__version__, prog_name="tns-probe")
@click.pass_context
def cli(ctx: click.Context, verbose: bool, log_file: Optional[Path]) -> None:
    """NR5G time sync pulse probe.

    Waits for NR5G service, configures modem sync pulse generation and
    logs the resulting NAS and pulse indications.
    """
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose, log_file)


@cli.command()
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Pulse config file (key=value); defaults to the settings' config_path",
)
@click.option(
    "-i", "--interactive",
    is_flag=True,
    help="Prompt for pulse period, start SFN and report period",
)
@click.option(
    "-s", "--settings",
    "settings_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="YAML runtime settings file",
)
@click.option(
    "-t", "--transport",
    default=SIMULATED_TRANSPORT,
    show_default=True,
    help="'simulated' or module:Class of a ServiceProvider",
)
@click.option(
    "--no-stdin",
    is_flag=True,
    help="Do not stop on ENTER/EOF; only SIGINT/SIGTERM stop the probe",
)
@click.option(
    "--restart",
    is_flag=True,
    help="Restart after a failed run until shutdown is requested",
)
@click.pass_context
def run(
    ctx: click.Context,
    config_path: Optional[Path],
    interactive: bool,
    settings_path: Optional[Path],
    transport: str,
    no_stdin: bool,
    restart: bool,
) -> None:
    """Run the TNS probe.

    Configures NR5G sync pulse generation once 5G service is available and
    logs indications until ENTER, EOF, SIGINT or SIGTERM.
    """
    settings = _load_settings(settings_path)
    if not ctx.obj.get("verbose"):
        logging.getLogger().setLevel(settings.log_level.upper())

    factory = load_provider_factory(transport)

    if interactive:
        config = prompt_interactive()
    else:
        result = load_config_file(config_path or settings.config_path)
        config = result.config

    console.print("[bold]TNS Probe[/bold]")
    console.print(f"Transport: {transport}")
    console.print(f"Config: {config.summary()}")
    console.print()

    try:
        exit_code = run_supervisor(
            factory,
            config,
            settings,
            control=None if no_stdin else sys.stdin,
            restart=restart,
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except TnsProbeError as e:
        _print_error(ctx, e)
        sys.exit(1)

    if exit_code != 0:
        console.print(f"[red]TNS probe exited with code {exit_code}[/red]")
    ctx.exit(exit_code)


@cli.command("show-config")
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Pulse config file (key=value)",
)
@click.option("--json", "json_output", is_flag=True, help="Output as JSON")
def show_config(config_path: Optional[Path], json_output: bool) -> None:
    """Show the effective sync pulse configuration."""
    path = config_path or DEFAULT_CONFIG_PATH
    result = load_config_file(path)
    config = result.config

    if json_output:
        data = config.to_dict()
        data["source"] = str(path) if result.loaded else "defaults"
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(title="Sync Pulse Configuration")
    table.add_column("Parameter", style="cyan")
    table.add_column("Value", style="green")
    table.add_column("Unit", style="white")

    table.add_row("Pulse Period", str(config.pulse_period), "x10 ms")
    table.add_row("Start SFN", str(config.start_sfn), "1024 = next available")
    table.add_row("Report Period", str(config.report_period), "x10 ms, 0 = disabled")
    table.add_row("Align Type", config.pulse_align_type.name, "")
    table.add_row("Trigger Action", config.pulse_trigger_action.name, "")
    table.add_row("Get CXO Count", "yes" if config.pulse_get_cxo_count else "no", "")

    console.print(table)
    if result.loaded:
        console.print(f"\n[dim]Loaded from {path}[/dim]")
    else:
        console.print(f"\n[yellow]Config file not read ({result.error}), showing defaults[/yellow]")


@cli.command()
@click.option(
    "-c", "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Pulse config file (key=value); defaults are used otherwise",
)
@click.option(
    "--status-delay",
    type=float,
    default=SIMULATED_STATUS_DELAY,
    show_default=True,
    help="Seconds before the simulated modem reports NR5G service",
)
@click.option(
    "--duration",
    type=float,
    default=10.0,
    show_default=True,
    help="Seconds to run before stopping",
)
@click.option(
    "--report-interval",
    type=float,
    default=1.0,
    show_default=True,
    help="Seconds between simulated pulse reports",
)
@click.pass_context
def simulate(
    ctx: click.Context,
    config_path: Optional[Path],
    status_delay: float,
    duration: float,
    report_interval: float,
) -> None:
    """Run the probe against a simulated modem.

    The simulated modem reports NR5G service after --status-delay seconds
    and emits pulse reports once pulse generation is configured.
    """
    if config_path is not None:
        config = load_config_file(config_path).config
    else:
        config = load_defaults()

    provider = SimulatedServiceProvider(pulse_report_interval=report_interval)
    settings = TnsSettings(poll_interval=1.0)
    supervisor = Supervisor(provider, config, settings)

    provider.schedule_nr5g_status(ServiceStatus.SERVICE, delay=status_delay)
    timer = threading.Timer(duration, supervisor.stop)
    timer.daemon = True
    timer.start()

    console.print("[bold]TNS Probe (simulated modem)[/bold]")
    console.print(f"NR5G service after: {status_delay}s")
    console.print(f"Duration: {duration}s (Ctrl+C to stop early)")
    console.print()

    try:
        exit_code = supervisor.run()
    finally:
        timer.cancel()
        provider.close()

    console.print()
    console.print("[bold]Summary[/bold]")
    console.print(f"  Configurator: {supervisor.configurator.state.value}")
    console.print(f"  Configure attempts: {supervisor.configurator.attempts}")
    for name, count in sorted(supervisor.router.stats.items()):
        console.print(f"  {name}: {count}")

    ctx.exit(exit_code)


if __name__ == "__main__":
    cli()
