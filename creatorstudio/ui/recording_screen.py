"""Terminal recording screen with a live level meter and transcript."""

import logging
from typing import Optional

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from ..audio.waveform import render_meter
from ..models.session import SessionState, SessionInfo
from ..services.session_controller import SessionController

logger = logging.getLogger(__name__)

STATE_LABELS = {
    SessionState.IDLE: ("⏹️  READY", "bold yellow"),
    SessionState.RECORDING: ("🔴 RECORDING", "bold red"),
    SessionState.PAUSED: ("⏸️  PAUSED", "bold cyan"),
    SessionState.FINALIZING: ("💾 SAVING", "bold magenta"),
    SessionState.ERROR: ("❌ ERROR", "bold red"),
}

HELP_TEXT = "[bold green]r[/bold green] record   [bold cyan]p[/bold cyan] pause/resume   " \
            "[bold yellow]s[/bold yellow] stop & save   [bold red]q[/bold red] quit"


def format_duration(seconds: int) -> str:
    minutes, seconds = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{seconds:02d}"


class RecordingScreen:
    """Builds the rich renderable for the current controller state."""

    def __init__(self, controller: SessionController, meter_width: int = 64, transcript_tail: int = 400):
        """Initialize recording screen.

        Args:
            controller: Session controller to display
            meter_width: Characters in the level meter
            transcript_tail: Show at most this many trailing transcript characters
        """
        self.controller = controller
        self.meter_width = meter_width
        self.transcript_tail = transcript_tail
        self.last_saved: Optional[SessionInfo] = None
        self.message: Optional[str] = None

    def render(self) -> Panel:
        controller = self.controller
        label, style = STATE_LABELS[controller.state]

        status = Table.grid(padding=(0, 2))
        status.add_column(style="cyan")
        status.add_column()
        status.add_row("State", Text(label, style=style))
        status.add_row("Duration", format_duration(controller.duration))
        if controller.session:
            status.add_row("Session", controller.session.session_id)
        if self.last_saved:
            status.add_row("Last saved", f"{self.last_saved.session_id} "
                                         f"({self.last_saved.file_size_bytes} bytes)")

        meter = Text(
            render_meter(controller.analyser, width=self.meter_width, paused=controller.is_paused),
            style="green" if controller.state is SessionState.RECORDING else "dim",
        )

        transcript = controller.live_transcript
        if len(transcript) > self.transcript_tail:
            transcript = "…" + transcript[-self.transcript_tail:]
        transcript_text = Text(transcript) if transcript else Text(
            "Start recording and speak your content idea...", style="dim white italic")

        parts = [status, Text(""), meter, Text(""), Panel(transcript_text, title="📝 Transcript")]
        if controller.error:
            parts.append(Text(controller.error, style="bold red"))
        if controller.warning:
            parts.append(Text(controller.warning, style="yellow"))
        if self.message:
            parts.append(Text(self.message, style="green"))
        parts.append(Text.from_markup(HELP_TEXT))

        return Panel(Group(*parts), title="🎙️  creatorstudio", border_style="bright_blue")
