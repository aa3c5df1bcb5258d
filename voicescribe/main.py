"""Command line entry point for VoiceScribe."""

import asyncio
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set, Tuple

import click
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from . import __version__
from .config import VoiceScribeConfig
from .models.state import SessionState
from .services.transcriber_session import TranscriberSession
from .ui import KeyReader, SessionScreen, WaveformRenderer, render_history_table

logger = logging.getLogger(__name__)

console = Console()


@dataclass
class AppContext:
    config: VoiceScribeConfig
    token: Optional[str] = None


def setup_logging(config: VoiceScribeConfig, level: str = "INFO") -> None:
    """Set up logging configuration from YAML config."""
    log_file_path = config.get('logging.file_path', 'data/logs/voicescribe.log')
    console_output = config.get('logging.console_output', True)

    log_dir = Path(log_file_path).parent
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers = []

    # File handler - always write to file
    file_handler = logging.FileHandler(log_file_path)
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(funcName)s:%(lineno)d - %(message)s'
    )
    file_handler.setFormatter(file_formatter)
    handlers.append(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(logging.WARNING)  # Only show warnings and above on console
        console_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')
        console_handler.setFormatter(console_formatter)
        handlers.append(console_handler)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(getattr(logging, level.upper()))
    for handler in handlers:
        root_logger.addHandler(handler)

    logger.info("=" * 50)
    logger.info("VoiceScribe starting up")
    logger.info(f"Log file: {log_file_path}")
    logger.info(f"Log level set to: {level}")
    logger.info("=" * 50)


def print_outcome(state: SessionState) -> None:
    """Print the transcription and any error of a finished command."""
    if state.latest_transcription:
        console.print(Panel(Text(state.latest_transcription), title="📝 Transcription", border_style="blue"))
    if state.error_message:
        console.print(Text(f"❌ {state.error_message}", style="bold red"))


def _exit_code(state: SessionState) -> int:
    return 1 if state.error_message and not state.latest_transcription else 0


# -- commands --

async def _transcribe(app: AppContext, path: str) -> SessionState:
    session = TranscriberSession.from_config(app.config, app.token)
    try:
        if session.select_file(path) is not None:
            await session.upload_selected()
        return session.snapshot()
    finally:
        await session.close()


def _watch_enter(loop: asyncio.AbstractEventLoop, stopped: asyncio.Event) -> None:
    """Set ``stopped`` when a line arrives on stdin."""
    def read_line() -> None:
        sys.stdin.readline()
        if not loop.is_closed():
            loop.call_soon_threadsafe(stopped.set)

    threading.Thread(target=read_line, name="EnterReaderThread", daemon=True).start()


async def _record(app: AppContext, duration: Optional[float]) -> SessionState:
    waveform = WaveformRenderer(bar_count=app.config.get('visualization.bar_count', 40))
    session = TranscriberSession.from_config(app.config, app.token, renderer=waveform)
    loop = asyncio.get_running_loop()
    stopped = asyncio.Event()
    sigint_handled = False
    try:
        with Live(waveform.renderable, console=console, refresh_per_second=15, transient=True) as live:
            waveform.live = live
            if not await session.start_recording():
                return session.snapshot()

            try:
                loop.add_signal_handler(signal.SIGINT, stopped.set)
                sigint_handled = True
            except (NotImplementedError, RuntimeError):
                logger.debug("SIGINT handler not supported on this platform")
            _watch_enter(loop, stopped)
            console.print("🔴 Recording... press Enter to stop")

            try:
                await asyncio.wait_for(stopped.wait(), timeout=duration)
            except asyncio.TimeoutError:
                logger.info(f"Recording duration of {duration}s reached")

            console.print("⏳ Transcribing...")
            await session.stop_recording()
        return session.snapshot()
    finally:
        if sigint_handled:
            loop.remove_signal_handler(signal.SIGINT)
        await session.close()


async def _history(app: AppContext, download: Optional[int] = None) -> Tuple[SessionState, Optional[Path]]:
    session = TranscriberSession.from_config(app.config, app.token)
    try:
        saved = None
        if await session.refresh_history() and download is not None:
            saved = await session.download_history_entry(download)
        return session.snapshot(), saved
    finally:
        await session.close()


class InteractiveApp:
    """Keyboard driven session screen."""

    def __init__(self, app: AppContext):
        self.config = app.config
        self.waveform = WaveformRenderer(bar_count=app.config.get('visualization.bar_count', 40))
        self.screen = SessionScreen(self.waveform)
        self.session = TranscriberSession.from_config(app.config, app.token, renderer=self.waveform)
        self.keys = KeyReader()
        self.tasks: Set["asyncio.Future[object]"] = set()
        self.live: Optional[Live] = None

    def spawn(self, coro) -> None:
        task = asyncio.ensure_future(coro)
        self.tasks.add(task)
        task.add_done_callback(self.tasks.discard)

    async def toggle_recording(self) -> None:
        if self.session.state.is_recording:
            await self.session.stop_recording()
        else:
            await self.session.start_recording()

    async def download(self, position: Optional[int] = None) -> None:
        """Save the latest recording, or the audio of history row ``position``."""
        if position is None:
            path = await self.session.download()
        else:
            path = await self.session.download_history_entry(position)
        if path is not None and self.live is not None:
            self.live.console.print(f"💾 Saved audio to {path}")

    async def prompt_for_file(self) -> None:
        """Suspend the screen to read a file path."""
        loop = asyncio.get_running_loop()
        self.keys.pause()
        self.screen.live = None
        if self.live is not None:
            self.live.stop()
        try:
            path = await loop.run_in_executor(None, console.input, "Audio file path: ")
        finally:
            if self.live is not None:
                self.live.start()
                self.screen.attach(self.live)
            self.keys.resume()
        self.session.select_file(path)

    def handle_key(self, key: str) -> bool:
        """Dispatch one keypress. Returns False when the app should quit."""
        if key == "q":
            return False
        if key == "r":
            self.spawn(self.toggle_recording())
        elif key == "u":
            self.spawn(self.session.upload_selected())
        elif key == "c":
            self.spawn(self.session.copy(self.session.state.latest_transcription))
        elif key == "d":
            self.spawn(self.download())
        elif key == "h":
            self.spawn(self.session.refresh_history())
        elif key == "o":
            self.spawn(self.prompt_for_file())
        elif len(key) == 1 and key in "123456789":
            self.spawn(self.download(int(key)))
        else:
            logger.debug(f"Ignored key '{key}'")
        return True

    async def run(self) -> None:
        try:
            with Live(self.screen, console=console, refresh_per_second=15, screen=False) as live:
                self.live = live
                self.screen.attach(live)
                self.keys.start()
                self.spawn(self.session.refresh_history())
                while self.handle_key(await self.keys.get()):
                    pass
        finally:
            await self.shutdown()

    async def shutdown(self) -> None:
        self.keys.stop()
        for task in list(self.tasks):
            task.cancel()
        await self.session.close()
        if self.tasks:
            await asyncio.gather(*self.tasks, return_exceptions=True)
        self.screen.close()
        self.live = None


async def _interactive(app: AppContext) -> None:
    await InteractiveApp(app).run()


# -- click wiring --

@click.group()
@click.option("--config", "config_path", type=click.Path(dir_okay=False),
              help="Path to configuration YAML file")
@click.option("--log-level", type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
              default=None, help="Set logging level (default: from config, INFO)")
@click.option("--token", envvar="VOICESCRIBE_TOKEN", default=None,
              help="Bearer token sent to the backend (env: VOICESCRIBE_TOKEN)")
@click.option("--backend-url", default=None, help="Backend base URL (overrides config)")
@click.version_option(__version__, prog_name="VoiceScribe")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], log_level: Optional[str],
        token: Optional[str], backend_url: Optional[str]) -> None:
    """VoiceScribe - record or upload audio and get a transcription."""
    try:
        config = VoiceScribeConfig(config_path)
    except (FileNotFoundError, ValueError) as e:
        raise click.ClickException(str(e))

    if backend_url:
        config.set('backend.base_url', backend_url)
    setup_logging(config, log_level or config.get('logging.level', 'INFO'))
    ctx.obj = AppContext(config=config, token=token or None)


@cli.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.pass_obj
def transcribe(app: AppContext, file: str) -> None:
    """Upload an audio FILE and print its transcription."""
    with console.status("⏳ Transcribing..."):
        state = asyncio.run(_transcribe(app, file))
    print_outcome(state)
    sys.exit(_exit_code(state))


@cli.command()
@click.option("--duration", type=float, default=None,
              help="Stop automatically after this many seconds")
@click.pass_obj
def record(app: AppContext, duration: Optional[float]) -> None:
    """Record from the microphone, then upload the recording."""
    state = asyncio.run(_record(app, duration))
    print_outcome(state)
    sys.exit(_exit_code(state))


@cli.command()
@click.option("--download", type=click.IntRange(min=1), default=None, metavar="N",
              help="Save the audio of history entry N (the # column)")
@click.pass_obj
def history(app: AppContext, download: Optional[int]) -> None:
    """Print the transcription history."""
    state, saved = asyncio.run(_history(app, download))
    if state.history:
        console.print(render_history_table(state.history))
    elif not state.error_message:
        console.print("No transcriptions yet.")
    if saved is not None:
        console.print(f"💾 Saved audio to {saved}")
    if state.error_message:
        console.print(Text(f"❌ {state.error_message}", style="bold red"))
        sys.exit(1)


@cli.command(name="app")
@click.pass_obj
def run_app(app: AppContext) -> None:
    """Interactive screen: R record/stop, O open, U upload, C copy, D download, 1-9 history audio, H history, Q quit."""
    asyncio.run(_interactive(app))
    console.print("\n👋 Goodbye!")


def main() -> None:
    """Main entry point for VoiceScribe."""
    cli()


if __name__ == "__main__":
    main()
