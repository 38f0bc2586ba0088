"""
Main entry point for the evtcp command line client.

The ``connect`` command connects to a TCP server, writes the current time
every few seconds while connected and reconnects with backoff when the
connection drops.
"""

import sys
from datetime import datetime
from typing import Callable, Optional

import typer
from loguru import logger

from . import __version__
from .core.exceptions import AddressResolutionError, ConfigurationError
from .event.loop import EventLoop
from .event.timer import TimerID
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ClientAppConfig
from .infrastructure.logging.setup import setup_logging
from .net.buffer import Buffer
from .net.channel import Channel
from .net.tcp_client import TcpClient

# Create CLI application
cli = typer.Typer(
    name="evtcp",
    help="Reconnecting TCP client driven by a single-threaded event loop"
)


def format_datetime(dt: Optional[datetime] = None) -> str:
    """Format as ``YYYY-MM-DD HH:MM:SS.mmm``."""
    dt = dt or datetime.now()
    return dt.strftime("%Y-%m-%d %H:%M:%S.") + f"{dt.microsecond // 1000:03d}"


def build_client(
    loop: EventLoop,
    config: ClientAppConfig,
    echo: Callable[[str], None] = typer.echo
) -> TcpClient:
    """
    Create a client that writes the time periodically while connected.

    Args:
        loop: Event loop to run on
        config: Application configuration
        echo: Output function for connection and message lines

    Returns:
        Configured, not yet started client
    """
    client = TcpClient(
        loop,
        host=config.tcp.host,
        port=config.tcp.port,
        reconnect=config.reconnect.to_setting(),
        socket_options=config.tcp.to_socket_options(),
        name=config.name,
    )

    def on_connection(channel: Channel) -> None:
        peeraddr = channel.peeraddr()
        if channel.is_connected():
            echo(f"connected to {peeraddr}! connfd={channel.fd()}")

            def send_time(timer_id: TimerID) -> None:
                if channel.is_connected():
                    channel.write(format_datetime())
                else:
                    loop.kill_timer(timer_id)

            loop.set_interval(config.send_interval, send_time)
        else:
            echo(f"disconnected to {peeraddr}! connfd={channel.fd()}")

        setting = client.reconnect_setting
        if client.is_reconnect() and setting is not None:
            echo(f"reconnect cnt={setting.cur_retry_cnt}, delay={setting.cur_delay}")

    def on_message(channel: Channel, buf: Buffer) -> None:
        echo(f"< {buf.retrieve_all().decode('utf-8', errors='replace')}")

    client.on_connection = on_connection
    client.on_message = on_message
    return client


@cli.command()
def connect(
    port: int = typer.Argument(..., help="Server port"),
    host: Optional[str] = typer.Option(
        None, "--host", help="Server host address"
    ),
    config_file: Optional[str] = typer.Option(
        None, "--config", "-c", help="Configuration file path"
    ),
    interval: Optional[int] = typer.Option(
        None, "--interval", "-i", help="Time write interval in milliseconds"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    no_reconnect: bool = typer.Option(
        False, "--no-reconnect", help="Disable automatic reconnection"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug mode"
    )
) -> None:
    """Connect to a TCP server and write the current time periodically."""

    try:
        config = ConfigLoader().load_config(config_file)
        config.tcp.port = port
        if host:
            config.tcp.host = host
        if interval is not None:
            config.send_interval = interval
        if log_level:
            config.logging.level = log_level.upper()
        if no_reconnect:
            config.reconnect.enabled = False
        if debug:
            config.debug = True
            config.logging.level = "DEBUG"
        config.validate()
    except ConfigurationError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        sys.exit(1)

    setup_logging(config.logging)

    loop = EventLoop(name=config.name)
    client = build_client(loop, config)
    try:
        client.start()
    except AddressResolutionError as e:
        typer.echo(f"Cannot connect: {e}", err=True)
        loop.close()
        sys.exit(2)

    connfd = client.channel.fd() if client.channel else -1
    typer.echo(f"client connect to {client.target}, connfd={connfd} ...")

    try:
        loop.run()
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    finally:
        client.stop()
        loop.close()


@cli.command()
def init_config(
    output: str = typer.Option(
        "evtcp.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a default configuration file."""

    try:
        ConfigLoader().save_config(ClientAppConfig(), output, format)
        typer.echo(f"Default configuration saved to {output}")
    except ConfigurationError as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file."""

    try:
        config = ConfigLoader().load_config(config_file)
    except ConfigurationError as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)

    typer.echo(f"Configuration file {config_file} is valid")
    typer.echo(f"Target: {config.tcp.host}:{config.tcp.port}")
    reconnect = config.reconnect
    if reconnect.enabled:
        typer.echo(
            f"Reconnect: {reconnect.delay_policy} {reconnect.min_delay}-{reconnect.max_delay}ms")
    else:
        typer.echo("Reconnect: disabled")


@cli.command()
def version() -> None:
    """Show the version."""
    typer.echo(f"evtcp {__version__}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
