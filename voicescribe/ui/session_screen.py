"""Rich rendering of the transcriber session state."""

import logging
import threading
from typing import List, Optional

from pubsub import pub
from rich.align import Align
from rich.console import Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..models.records import TranscriptionRecord
from ..models.state import SessionState
from .waveform import WaveformRenderer

logger = logging.getLogger(__name__)


def render_history_table(records: List[TranscriptionRecord], limit: Optional[int] = None) -> Table:
    """Table of history records, in the order the server returned them."""
    table = Table(title="📜 Transcription History", show_header=True, header_style="bold magenta",
                  expand=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("File", style="cyan", no_wrap=True)
    table.add_column("Transcription", style="white", ratio=1)
    table.add_column("Created", style="green", no_wrap=True)
    table.add_column("Audio", justify="center", width=5)

    shown = records if limit is None else records[:limit]
    for i, record in enumerate(shown, 1):
        table.add_row(
            str(i),
            record.filename or "-",
            record.text or "",
            record.created_at or "",
            "✓" if record.audio_url else "",
        )
    return table


class SessionScreen:
    """Redraws the session on every published state snapshot."""

    def __init__(self, waveform: WaveformRenderer, state_topic: str = "session.state",
                 history_rows: int = 8):
        """Initialize the screen.

        Args:
            waveform: Renderer whose latest frame is embedded in the screen
            state_topic: Pub/sub topic carrying SessionState snapshots
            history_rows: Maximum history rows shown
        """
        self.waveform = waveform
        self.state_topic = state_topic
        self.history_rows = history_rows
        self.state = SessionState()
        self.live: Optional[Live] = None
        self.lock = threading.Lock()

        pub.subscribe(self.on_state, state_topic)

    def attach(self, live: Live) -> None:
        """Redraw through ``live``, which must display this screen."""
        self.live = live
        self.refresh()

    def on_state(self, state: SessionState) -> None:
        """Pub/sub listener for session snapshots."""
        with self.lock:
            self.state = state
        self.refresh()

    def refresh(self) -> None:
        if self.live is not None:
            self.live.refresh()

    def __rich__(self) -> RenderableType:
        return self.render()

    def render(self) -> RenderableType:
        with self.lock:
            state = self.state

        if state.is_recording:
            status = Text("🔴 RECORDING", style="bold red")
        elif state.is_uploading:
            status = Text("⏳ TRANSCRIBING...", style="bold yellow")
        else:
            status = Text("⏹️  READY", style="bold green")

        selected = state.selected.filename if state.selected else "none"
        header = Panel(
            Align.center(Text.assemble(("🎤 VoiceScribe", "bold blue"), "  |  ", status,
                                       "  |  ", f"File: {selected}")),
            style="bright_blue",
        )

        parts: List[RenderableType] = [header, self.waveform.renderable]
        if state.error_message:
            parts.append(Text(state.error_message, style="bold red"))
        if state.latest_transcription:
            subtitle = Text(f"🔊 {state.audio_preview_url}") if state.audio_preview_url else None
            parts.append(Panel(Text(state.latest_transcription), title="📝 Latest transcription",
                               subtitle=subtitle, border_style="blue"))
        if state.history:
            parts.append(render_history_table(state.history, self.history_rows))

        parts.append(Align.center(Text.assemble(
            ("R", "bold green"), " Record/Stop  ",
            ("O", "bold cyan"), " Open file  ",
            ("U", "bold yellow"), " Upload  ",
            ("C", "bold"), " Copy  ",
            ("D", "bold"), " Download audio  ",
            ("1-9", "bold"), " History audio  ",
            ("H", "bold blue"), " History  ",
            ("Q", "bold red"), " Quit",
        )))
        return Group(*parts)

    def close(self) -> None:
        pub.unsubscribe(self.on_state, self.state_topic)
        self.live = None
        logger.debug("Session screen detached")
