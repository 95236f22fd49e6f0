import threading
from typing import Optional
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.progress_bar import ProgressBar
from rich.table import Table
from vcomp.domain.models import JobState, SourceVideo, format_size
from vcomp.ui.state import UIState

STATE_COLORS = {
    JobState.IDLE: "white",
    JobState.PREPARING: "yellow",
    JobState.ENCODING: "green",
    JobState.COMPLETED: "cyan",
    JobState.FAILED: "bright_red",
    JobState.CANCELLED: "yellow",
}

class Dashboard:
    """Renders the live compression display."""

    def __init__(self, state: UIState, console: Optional[Console] = None, refresh_interval: float = 0.2):
        self.state = state
        self.console = console or Console()
        self.refresh_interval = refresh_interval
        self._live: Optional[Live] = None
        self._refresh_thread: Optional[threading.Thread] = None
        self._stop_refresh = threading.Event()
        self._ui_lock = threading.Lock()

    def format_resolution(self, source: Optional[SourceVideo]) -> str:
        if source and source.metadata:
            return f"{source.metadata.display_width}×{source.metadata.display_height}"
        return "Unknown"

    def format_orientation(self, source: Optional[SourceVideo]) -> str:
        if source and source.metadata:
            return source.metadata.orientation.label
        return "Unknown"

    def _generate_menu_panel(self) -> Panel:
        return Panel(
            "[bright_red]C[/bright_red] cancel compression | [bright_red]Ctrl+C[/bright_red] cancel and quit",
            title="MENU",
            border_style="white"
        )

    def _generate_source_panel(self) -> Panel:
        source = self.state.source
        if source is None:
            return Panel("No video selected", title="VIDEO", border_style="blue")

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Key", style="dim")
        table.add_column("Value", style="cyan")
        table.add_row("File", source.path.name)
        table.add_row("Size", source.formatted_size)
        table.add_row("Resolution", self.format_resolution(source))
        table.add_row("Orientation", self.format_orientation(source))
        table.add_row("Duration", source.formatted_duration)
        if self.state.tier is not None:
            table.add_row("Quality", self.state.tier.label)
        return Panel(table, title="VIDEO", border_style="blue")

    def _generate_progress_panel(self) -> Panel:
        snapshot = self.state.snapshot()
        color = STATE_COLORS[snapshot.state]
        bar = ProgressBar(total=1.0, completed=snapshot.progress, width=50)
        status = f"[bold {color}]{snapshot.status_text}[/]"
        last_action = self.state.get_last_action()
        lines = [bar, status]
        if last_action:
            lines.append(f"[bright_red]{last_action}[/bright_red]" if snapshot.last_error else last_action)
        return Panel(Group(*lines), title="COMPRESSION", border_style=color)

    def _generate_result_panel(self) -> Panel:
        result = self.state.result
        if result is None:
            return Panel("No compressed output yet", title="RESULT", border_style="green")

        table = Table(show_header=False, box=None, padding=(0, 1))
        table.add_column("Input", justify="right", style="cyan")
        table.add_column("→", width=1, justify="center", style="dim")
        table.add_column("Output", justify="right", style="cyan")
        table.add_column("Saved", justify="right", style="green")
        table.add_row(
            format_size(result.source_size_bytes),
            "→",
            format_size(result.output_size_bytes),
            f"{result.savings_percent:.1f}%",
        )
        table.add_row(str(result.output_path), "", "", "")
        return Panel(table, title="RESULT", border_style="green")

    def create_display(self) -> Group:
        return Group(
            self._generate_menu_panel(),
            self._generate_source_panel(),
            self._generate_progress_panel(),
            self._generate_result_panel(),
        )

    def _refresh_loop(self):
        """Background thread to update Live display."""
        while not self._stop_refresh.is_set():
            if self._live:
                display = self.create_display()
                with self._ui_lock:
                    self._live.update(display)
            self._stop_refresh.wait(self.refresh_interval)

    def start(self):
        """Starts the Live display and refresh thread."""
        self._live = Live(self.create_display(), console=self.console, refresh_per_second=10)
        self._live.start()
        self._stop_refresh.clear()
        self._refresh_thread = threading.Thread(target=self._refresh_loop, daemon=True)
        self._refresh_thread.start()
        return self

    def stop(self):
        """Stops the Live display and refresh thread."""
        self._stop_refresh.set()
        if self._refresh_thread:
            self._refresh_thread.join(timeout=1.0)
        if self._live:
            with self._ui_lock:
                self._live.update(self.create_display())
            self._live.stop()

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.stop()
