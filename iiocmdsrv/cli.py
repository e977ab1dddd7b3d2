"""Typer CLI entrypoint."""

from __future__ import annotations

import logging
import logging.handlers

import typer

from iiocmdsrv import __version__
from iiocmdsrv.core.config import load_config
from iiocmdsrv.core.discovery import SysfsDiscovery
from iiocmdsrv.core.dispatcher import Session
from iiocmdsrv.core.errors import IIOCmdError
from iiocmdsrv.core.model import ServerConfig
from iiocmdsrv.core.protocol import PROTOCOL_VERSION
from iiocmdsrv.transports.base import SessionTransport
from iiocmdsrv.transports.stdio import StdioTransport
from iiocmdsrv.transports.tcp import TCPTransport

app = typer.Typer(help="IIO command server: read/write IIO attributes and buffers over a line protocol")

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _configure_logging(level_name: str, use_syslog: bool) -> None:
    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        typer.echo(f"Error: unknown log level '{level_name}'", err=True)
        raise typer.Exit(code=1)

    if use_syslog:
        try:
            handler: logging.Handler = logging.handlers.SysLogHandler(address="/dev/log")
        except OSError as exc:
            typer.echo(f"Error: could not connect to syslog: {exc}", err=True)
            raise typer.Exit(code=1) from None
        handler.setFormatter(logging.Formatter("iiocmdsrv: %(name)s: %(message)s"))
    else:
        # stdout carries the protocol; logs go to stderr only.
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _build_config(config_path: str | None) -> ServerConfig:
    loaded = load_config(config_path)
    for warning in loaded.warnings:
        typer.echo(f"Warning: {warning}", err=True)
    return loaded.config


def _serve_sessions(transport: SessionTransport, server_config: ServerConfig) -> None:
    transport.serve(lambda reader, writer: Session.from_config(server_config, reader, writer).run())


@app.callback()
def main(
    log_level: str = typer.Option("WARNING", "--log-level", help="Logging level"),
    syslog: bool = typer.Option(False, "--syslog", help="Log to syslog instead of stderr"),
) -> None:
    _configure_logging(log_level, syslog)


@app.command("serve")
def serve(
    config: str | None = typer.Option(None, "--config", help="Path to a YAML config file"),
) -> None:
    """Serve one session on stdin/stdout (run behind nc or inetd)."""
    try:
        server_config = _build_config(config)
    except IIOCmdError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None

    _serve_sessions(StdioTransport(), server_config)


@app.command("listen")
def listen(
    host: str | None = typer.Option(None, "--host", help="Address to bind"),
    port: int | None = typer.Option(None, "--port", help="TCP port to bind"),
    config: str | None = typer.Option(None, "--config", help="Path to a YAML config file"),
) -> None:
    """Accept TCP connections, serving one session at a time."""
    try:
        server_config = _build_config(config)
        transport = TCPTransport(
            host if host is not None else server_config.listen.host,
            port if port is not None else server_config.listen.port,
        )
        _serve_sessions(transport, server_config)
    except IIOCmdError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None
    except KeyboardInterrupt:
        typer.echo("Stopped", err=True)


@app.command("devices")
def list_devices(
    config: str | None = typer.Option(None, "--config", help="Path to a YAML config file"),
) -> None:
    """List IIO device names found on this machine."""
    try:
        server_config = _build_config(config)
        names = SysfsDiscovery(server_config.layout).list_devices()
        if not names:
            typer.echo("No IIO devices found")
            return
        for name in names:
            typer.echo(name)
    except IIOCmdError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from None


@app.command("version")
def version() -> None:
    """Print the server and protocol versions."""
    typer.echo(f"iiocmdsrv {__version__} (protocol {PROTOCOL_VERSION})")


def run() -> None:
    app()


if __name__ == "__main__":
    run()
