"""TextUI - Textual-based terminal UI for NoteFlow."""

import threading
from typing import Callable, Optional

from textual.app import App, ComposeResult
from textual.containers import Horizontal, Vertical
from textual.widgets import Header, Footer, Static, RichLog, ProgressBar, Label
from textual.binding import Binding

from noteflow import NoteFlow, __version__


class HeaderInfo(Static):
    """Header widget listing watched sources and destinations."""

    def __init__(self, sources: str = "", destinations: str = "", **kwargs) -> None:
        super().__init__(**kwargs)
        self.sources = sources
        self.destinations = destinations

    def compose(self) -> ComposeResult:
        yield Static(f"Watching: {self.sources}", id="sources-line")
        yield Static(f"Publishing to: {self.destinations}", id="destinations-line")


class NoteFlowApp(App):
    """Dashboard with published pages on the left and activity on the right."""

    CSS = """
    Screen {
        layout: vertical;
    }

    #header-info {
        height: 2;
        padding: 0 2;
        background: $boost;
    }

    #main-content {
        height: 1fr;
        border-top: heavy $accent;
    }

    #pages-pane {
        width: 3fr;
    }

    #activity-pane {
        width: 2fr;
        border-left: tall $accent;
    }

    .pane-heading {
        height: 1;
        padding: 0 1;
        background: $accent;
        color: $text;
        text-style: bold;
    }

    .pane-log {
        height: 1fr;
        scrollbar-size-vertical: 1;
    }

    #status-bar {
        height: 1;
        padding: 0 2;
        background: $boost;
    }

    #status-label {
        width: 1fr;
    }

    #budget-bar {
        width: 30;
    }

    #budget-label {
        width: 18;
        text-align: right;
    }
    """

    BINDINGS = [
        Binding("q", "quit", "Quit"),
        Binding("ctrl+c", "quit", "Quit"),
    ]

    def __init__(self, sources: str = "", destinations: str = "",
                 process_func: Optional[Callable[[], None]] = None,
                 stop_func: Optional[Callable[[], None]] = None) -> None:
        super().__init__()
        self.sources = sources
        self.destinations = destinations
        self._process_func = process_func
        self._stop_func = stop_func

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield HeaderInfo(self.sources, self.destinations, id="header-info")

        with Horizontal(id="main-content"):
            with Vertical(id="pages-pane"):
                yield Static("Published pages", classes="pane-heading")
                yield RichLog(id="pages-log", classes="pane-log", highlight=True, markup=True)

            with Vertical(id="activity-pane"):
                yield Static("Activity", classes="pane-heading")
                yield RichLog(id="debug-log", classes="pane-log", highlight=True, markup=True)

        with Horizontal(id="status-bar"):
            yield Label("Idle", id="status-label")
            yield ProgressBar(id="budget-bar", show_eta=False, show_percentage=False)
            yield Label("budget -/-", id="budget-label")

        yield Footer()

    def on_mount(self) -> None:
        self.title = f"NoteFlow v{__version__}"
        self.theme = "textual-light"

        # Route NoteFlow output into this app (thread-safe via call_from_thread)
        NoteFlow.set_app(self)

        # Pipeline runs on its own thread with its own event loop
        if self._process_func:
            thread = threading.Thread(target=self._process_func, daemon=True)
            thread.start()

    def on_unmount(self) -> None:
        if self._stop_func:
            self._stop_func()
        NoteFlow.set_app(None)

    def add_page(self, line1: str, line2: str) -> None:
        """Add a published page to the left log."""
        log = self.query_one("#pages-log", RichLog)
        log.write(f"{line1}\n{line2}\n")

    def add_debug(self, message: str) -> None:
        """Add a message to the right log."""
        log = self.query_one("#debug-log", RichLog)
        log.write(message)

    def set_status(self, in_flight: int, recent: int,
                   budget_remaining: int, budget_limit: int) -> None:
        """Update the footer with guard and budget state."""
        self.query_one("#status-label", Label).update(
            f"{in_flight} in flight, {recent} recently done"
        )
        used = max(0, budget_limit - budget_remaining)
        self.query_one("#budget-bar", ProgressBar).update(total=max(budget_limit, 1), progress=used)
        self.query_one("#budget-label", Label).update(f"budget {used}/{budget_limit}")
