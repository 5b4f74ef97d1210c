#!/usr/bin/env python3
"""Register bridge CLI - publishes polled Modbus registers to MQTT.

Reads a YAML/JSON configuration describing the Modbus device, the MQTT broker
and the registers to poll, then publishes every polled value to
``<data_topic>/<register name>`` until ``quit`` is sent on the command topic.

Examples:
    # Run the bridge
    python bridge.py start wattnode.yaml

    # Validate a configuration (compiles every transform, no connections)
    python bridge.py check wattnode.yaml

    # Stop a running bridge
    mosquitto_pub -t wattnode/cmd -m quit
"""
from __future__ import annotations

import logging
import signal
import sys
from pathlib import Path

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

# Ensure the regbridge package is importable
if __name__ == "__main__":
    import os
    sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from regbridge import __version__
from regbridge.config import Configuration, load_config
from regbridge.core.catalog import build_catalog
from regbridge.core.service import BridgeService
from regbridge.exceptions import (
    ConfigError,
    RegistrationError,
    TransformError,
    TransportConnectionError,
)
from regbridge.transports.modbus_reader import ModbusReader
from regbridge.transports.mqtt import MqttConnector

EXIT_CONFIG_ERROR = 1
EXIT_CONNECTION_ERROR = 2

app = typer.Typer(
    name="bridge",
    help="Register Bridge - Modbus registers to MQTT topics",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)
logger = logging.getLogger("regbridge.cli")


def setup_logging(verbose: bool = False) -> None:
    """Configure logging with rich output."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, console=err_console)],
        force=True,
    )


def _load(config_path: Path) -> Configuration:
    try:
        return load_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(EXIT_CONFIG_ERROR)


def _config_table(config: Configuration) -> Table:
    table = Table(title="Bridge Configuration", show_header=True)
    table.add_column("Side", style="cyan")
    table.add_column("Connection", style="yellow")
    table.add_column("Details", style="green")
    modbus = config.modbus
    mqtt = config.mqtt
    table.add_row(
        "Device (Modbus)",
        modbus.describe(),
        f"unit {modbus.device_id}, {'zero' if modbus.zero_based else 'one'} based, "
        f"poll every {modbus.poll_interval:g}s",
    )
    table.add_row(
        "Broker (MQTT)",
        mqtt.broker.address,
        f"commands on {mqtt.command_topic}, data on {mqtt.data_topic}/<name>",
    )
    return table


def _register_table(config: Configuration) -> Table:
    table = Table(title="Registers", show_header=True)
    table.add_column("Name", style="cyan")
    table.add_column("Address", justify="right")
    table.add_column("Length", justify="right")
    table.add_column("Type")
    table.add_column("Table")
    table.add_column("Transform", style="green")
    for reg in config.registers:
        table.add_row(
            reg.name,
            str(reg.address),
            str(reg.length),
            reg.type.value,
            reg.table.value,
            reg.transform,
        )
    return table


@app.command()
def start(
    config_path: Path = typer.Argument(..., metavar="CONFIG", help="YAML or JSON configuration file"),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
) -> None:
    """Start the bridge and run until 'quit' arrives on the command topic."""
    setup_logging(verbose)
    config = _load(config_path)

    console.print(_config_table(config))
    console.print()

    source = ModbusReader(config.modbus)
    sink = MqttConnector.from_config(config.mqtt)
    service = BridgeService(config, source, sink)

    def signal_handler(signum, frame):
        console.print("\n[yellow]Shutting down...[/yellow]")
        service.request_stop()

    signal.signal(signal.SIGINT, signal_handler)
    try:
        signal.signal(signal.SIGTERM, signal_handler)
    except (AttributeError, ValueError):
        # SIGTERM is not available everywhere
        pass

    console.print(Panel.fit("[bold green]Starting bridge...[/bold green]"))
    try:
        service.start()
    except (ConfigError, TransformError) as e:
        service.close()
        logger.debug("Startup failed", exc_info=e)
        err_console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except (TransportConnectionError, RegistrationError) as e:
        service.close()
        logger.debug("Startup failed", exc_info=e)
        err_console.print(f"[red]Connection error: {e}[/red]")
        raise typer.Exit(EXIT_CONNECTION_ERROR)

    console.print(
        f"[bold green]Bridge running. Send 'quit' to {config.mqtt.command_topic} "
        f"or press Ctrl+C to stop.[/bold green]"
    )
    try:
        service.wait()
    finally:
        service.close()
    stats = service.get_stats()
    console.print(
        f"[green]Bridge stopped.[/green] [dim]{stats['published']} published, "
        f"{stats['dropped']} dropped, {stats['transport_errors']} poll errors[/dim]"
    )


@app.command()
def check(
    config_path: Path = typer.Argument(..., metavar="CONFIG", help="YAML or JSON configuration file"),
) -> None:
    """Validate a configuration file and compile every transform."""
    config = _load(config_path)
    try:
        build_catalog(config)
    except (ConfigError, TransformError) as e:
        err_console.print(f"[red]Configuration error: {e}[/red]")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    console.print(_config_table(config))
    console.print(_register_table(config))
    console.print(f"[green]Configuration OK: {len(config.registers)} register(s)[/green]")


@app.command()
def info() -> None:
    """Display bridge topics, commands and transform syntax."""
    console.print(
        Panel.fit(
            f"[bold]Register Bridge {__version__}[/bold]\n\n"
            "Polls registers from one Modbus device and publishes each value\n"
            "to MQTT after applying its configured transform.\n\n"
            "[bold]Topics:[/bold]\n"
            "  • <data_topic>/<register name> - decimal value per poll\n"
            "  • <command_topic> - control commands\n\n"
            "[bold]Commands:[/bold]\n"
            "  • quit - stop the bridge\n\n"
            "[bold]Transforms:[/bold]\n"
            "  Arithmetic over the raw value '_', e.g. '_ * 0.1', '(_ - 32) / 1.8'\n"
            "  Operators: + - * / // % ** ^   Constants: pi e\n"
            "  Functions: abs sqrt log log10 exp sin cos round min max ...\n\n"
            "[bold]Exit codes:[/bold]\n"
            "  0 clean stop, 1 configuration error, 2 connection error\n",
            title="About",
        )
    )


if __name__ == "__main__":
    app()
