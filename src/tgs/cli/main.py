"""TGS command-line interface.

Usage::

    tgs --help
    tgs monitor --port /dev/ttyACM0 --images ./images
    tgs replay capture.bin --record parquet --record-dir ./telemetry
    tgs tags
    tgs version
"""

from __future__ import annotations

import asyncio
import functools
import sys
from collections.abc import Callable
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from tgs.__version__ import __version__
from tgs.core.base import OutputSink, Severity
from tgs.models.reception import ImageArtifact
from tgs.observability.logging import configure_logging

if TYPE_CHECKING:
    from tgs.core.session import GroundStationSession, SessionConfig

console = Console()

_STYLES = {
    Severity.INFO: "white",
    Severity.COMMAND: "cyan",
    Severity.RESPONSE: "green",
    Severity.WARNING: "yellow",
    Severity.ERROR: "bold red",
}


class ConsoleOutputSink(OutputSink):
    """Operator terminal: coloured lines on the rich console, images handed on."""

    def __init__(self, out: Console, images: OutputSink | None = None) -> None:
        self._console = out
        self._images = images

    def log(self, message: str, severity: Severity = Severity.INFO) -> None:
        self._console.print(message, style=_STYLES[severity], markup=False, highlight=False)

    def artifact(self, artifact: ImageArtifact) -> None:
        if self._images is not None:
            self._images.artifact(artifact)


@click.group()
@click.option(
    "--log-level",
    default="WARNING",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    show_default=True,
    help="Log verbosity level.",
)
@click.option(
    "--log-format",
    default="console",
    type=click.Choice(["console", "json"], case_sensitive=False),
    show_default=True,
    help="Log output format.",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_format: str) -> None:
    """TEMPEST Ground Station (TGS) — satellite downlink decoder."""
    ctx.ensure_object(dict)
    configure_logging(level=log_level, fmt=log_format)  # type: ignore[arg-type]


# --------------------------------------------------------------------------- #
#  tgs version                                                                 #
# --------------------------------------------------------------------------- #


@cli.command()
def version() -> None:
    """Print the TGS version."""
    console.print(f"[bold cyan]TEMPEST Ground Station[/] v{__version__}")


# --------------------------------------------------------------------------- #
#  tgs tags                                                                    #
# --------------------------------------------------------------------------- #


@cli.command()
def tags() -> None:
    """List the frame tags the decoder understands."""
    from tgs.core.registry import registry  # noqa: PLC0415
    from tgs.protocol import IMAGE_SEND, tag_name  # noqa: PLC0415
    from tgs.telemetry import TelemetryDecoder  # noqa: F401, PLC0415

    table = Table(title="[bold]Frame tags[/]")
    table.add_column("Tag", style="cyan")
    table.add_column("Name")
    table.add_column("Size", justify="right")

    for layout in registry.all_layouts():
        size = f"≥{layout.min_size}" if layout.variable else str(layout.min_size)
        table.add_row(layout.tag, tag_name(layout.tag), size)
    send = IMAGE_SEND.decode()
    table.add_row(send, tag_name(send), "variable")
    console.print(table)


# --------------------------------------------------------------------------- #
#  tgs replay                                                                  #
# --------------------------------------------------------------------------- #


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="JSON file with session config.",
)
@click.option("--chunk-size", default=64, show_default=True, help="Bytes per simulated delivery.")
@click.option(
    "--images",
    "images_dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Write completed images to this directory.",
)
@click.option(
    "--record",
    "recorder_name",
    default=None,
    type=click.Choice(["csv", "parquet"]),
    help="Persist decoded telemetry.",
)
@click.option(
    "--record-dir",
    default=Path("telemetry"),
    show_default=True,
    type=click.Path(file_okay=False, path_type=Path),
)
def replay(
    file: Path,
    config_path: Optional[Path],
    chunk_size: int,
    images_dir: Optional[Path],
    recorder_name: Optional[str],
    record_dir: Path,
) -> None:
    """Decode a captured downlink byte stream offline."""
    from tgs.core.session import GroundStationSession  # noqa: PLC0415
    from tgs.loaders import RECORDERS  # noqa: PLC0415
    from tgs.models.dataset import TelemetryLog  # noqa: PLC0415
    from tgs.transport.memory import MemoryTransport  # noqa: PLC0415

    config = _load_config(config_path)
    if chunk_size <= 0:
        console.print("[red]Error:[/] --chunk-size must be positive")
        sys.exit(1)

    transport = MemoryTransport.from_bytes(file.read_bytes(), chunk_size=chunk_size)
    session = GroundStationSession(
        config=config,
        transport=transport,
        output=_output_sink(config, images_dir),
    )
    telemetry = TelemetryLog(metadata={"source": str(file)})
    session.hooks.register("telemetry.record", telemetry.add)

    asyncio.run(session.run())

    if recorder_name:
        recorder_cls, config_cls = RECORDERS[recorder_name]
        recorder_cls(config_cls(output_dir=record_dir)).record(telemetry)
        console.print(f"[dim]Recorded {len(telemetry)} record(s) to {record_dir}[/]")

    console.print(session.summary())


# --------------------------------------------------------------------------- #
#  tgs monitor                                                                 #
# --------------------------------------------------------------------------- #


@cli.command()
@click.option("--port", default=None, help="Serial device of the ground-station radio.")
@click.option("--baud", default=None, type=int, help="Serial baud rate.")
@click.option(
    "--config",
    "config_path",
    default=None,
    type=click.Path(exists=True, path_type=Path),
    help="JSON file with session config.",
)
@click.option(
    "--images",
    "images_dir",
    default=None,
    type=click.Path(file_okay=False, path_type=Path),
    help="Write completed images to this directory.",
)
def monitor(
    port: Optional[str],
    baud: Optional[int],
    config_path: Optional[Path],
    images_dir: Optional[Path],
) -> None:
    """Open a live session with an interactive command prompt."""
    from tgs.core.session import GroundStationSession  # noqa: PLC0415
    from tgs.errors import TransportError  # noqa: PLC0415
    from tgs.transport.serial import SerialTransport  # noqa: PLC0415

    config = _load_config(config_path)
    updates: dict[str, object] = {}
    if port is not None:
        updates["port"] = port
    if baud is not None:
        updates["baudrate"] = baud
    serial_config = config.serial.model_copy(update=updates)

    transport = SerialTransport(serial_config)
    try:
        transport.open()
    except TransportError as exc:
        console.print(f"[red]Error:[/] {exc}")
        sys.exit(1)

    session = GroundStationSession(
        config=config,
        transport=transport,
        output=_output_sink(config, images_dir),
    )
    console.print(
        f"[bold cyan]Connected[/] to {serial_config.port} @ {serial_config.baudrate} baud. "
        "Type [bold]help[/] for commands."
    )
    try:
        asyncio.run(_monitor(session))
    except KeyboardInterrupt:
        pass
    finally:
        transport.close()
    console.print(session.summary())


HELP_TEXT = """\
  status                                   show open image receptions
  retransmit [total]                       request missing chunks
  clear                                    drop all image receptions
  radio                                    query the radio configuration
  radio uplink|downlink <type> <freq> [node]  configure a radio link
  quit                                     close the session
  anything else is sent to the ground station as-is"""


async def _monitor(
    session: GroundStationSession, read_line: Optional[Callable[[], str]] = None
) -> None:
    """Race the operator prompt against the read loop until either ends."""
    if read_line is None:
        read_line = functools.partial(console.input, "[bold]> [/]")
    reader = asyncio.create_task(session.run())
    try:
        while not reader.done():
            prompt = asyncio.ensure_future(asyncio.to_thread(read_line))
            await asyncio.wait({reader, prompt}, return_when=asyncio.FIRST_COMPLETED)
            if not prompt.done():
                console.print("[yellow]Link closed.[/] Press Enter to exit.")
                break
            if not await operator_command(session, prompt.result()):
                break
    except EOFError:
        pass
    finally:
        if session.transport is not None:
            session.transport.close()
        reader.cancel()
        try:
            await reader
        except asyncio.CancelledError:
            pass


async def operator_command(session: GroundStationSession, line: str) -> bool:
    """Handle one prompt line; return False when the operator quits."""
    from tgs.models.radio import RadioLink  # noqa: PLC0415

    parts = line.split()
    if not parts:
        return True
    word = parts[0].lower()

    if word in ("quit", "exit"):
        return False
    if word == "help":
        console.print(HELP_TEXT, markup=False)
    elif word == "status":
        session.status()
        console.print(session.summary())
    elif word == "clear":
        session.clear_images()
    elif word == "retransmit":
        total: int | None = None
        if len(parts) > 1:
            try:
                total = int(parts[1])
            except ValueError:
                console.print(f"[red]Error:[/] not a chunk count: {parts[1]}")
                return True
        await session.request_retransmission(total)
    elif word == "radio":
        if len(parts) == 1:
            await session.query_radio_config()
        elif len(parts) in (4, 5) and parts[1] in ("uplink", "downlink"):
            try:
                link = RadioLink(
                    radio=parts[2],
                    frequency_mhz=float(parts[3]),
                    **({"node": int(parts[4])} if len(parts) == 5 else {}),
                )
            except (ValueError, ValidationError) as exc:
                console.print(f"[red]Error:[/] {exc}")
                return True
            await session.configure_radio(parts[1], link)  # type: ignore[arg-type]
        else:
            console.print("[yellow]Usage:[/] radio [uplink|downlink <type> <freq> [node]]")
    else:
        await session.send_command(line)
    return True


def _load_config(path: Optional[Path]) -> SessionConfig:
    from tgs.core.session import SessionConfig  # noqa: PLC0415

    if path is None:
        return SessionConfig()
    try:
        return SessionConfig.from_file(path)
    except ValidationError as exc:
        console.print(f"[red]Invalid config {path}:[/]\n{exc}")
        sys.exit(1)


def _output_sink(config: SessionConfig, images_dir: Optional[Path]) -> OutputSink:
    from tgs.loaders.images import ImageFileSink, ImageFileSinkConfig  # noqa: PLC0415

    images_config = config.images
    if images_dir is not None:
        images_config = ImageFileSinkConfig(output_dir=images_dir)
    images = ImageFileSink(images_config) if images_config is not None else None
    return ConsoleOutputSink(console, images=images)
