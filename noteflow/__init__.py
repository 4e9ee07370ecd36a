"""NoteFlow - Application state and output routing."""

import re
from typing import Optional, Any, TYPE_CHECKING

if TYPE_CHECKING:
    import argparse
    from noteflow.settings import Settings

__version__ = "0.3.0"


def _strip_rich_markup(text: str) -> str:
    """Remove Rich markup tags like [red], [/red], [bold], etc."""
    return re.sub(r'\[/?[a-zA-Z_ ]+\]', '', text)


class NoteFlow:
    """Central configuration and state for NoteFlow."""

    # CLI config options
    verbose: bool = False
    force_update: bool = False

    # Loaded settings (see noteflow.settings)
    settings: Optional["Settings"] = None

    # UI app reference (None = CLI mode)
    _app: Optional[Any] = None

    @classmethod
    def configure(cls, args: "argparse.Namespace",
                  settings: Optional["Settings"] = None) -> None:
        """Initialize configuration from parsed CLI args and the environment."""
        from noteflow.settings import Settings
        cls.settings = settings or Settings.from_env()
        cls.verbose = getattr(args, 'verbose', False) or cls.settings.verbose
        cls.force_update = getattr(args, 'force_update', False)

    @classmethod
    def set_app(cls, app: Any) -> None:
        """Set the Textual app reference for UI updates."""
        cls._app = app

    @classmethod
    def print_left(cls, line1: str, line2: str) -> None:
        """Add entry to the published pages log (left panel in TUI, stdout in CLI)."""
        if cls._app is not None:
            cls._app.call_from_thread(cls._app.add_page, line1, line2)
        else:
            print(_strip_rich_markup(line1))
            print(_strip_rich_markup(line2))

    @classmethod
    def print_right(cls, message: str) -> None:
        """Add line to debug log (right panel in TUI, stdout in CLI)."""
        if cls._app is not None:
            cls._app.call_from_thread(cls._app.add_debug, message)
        else:
            print(_strip_rich_markup(message))

    @classmethod
    def print_debug(cls, message: str) -> None:
        """Like print_right, but only when verbose output is enabled."""
        if cls.verbose:
            cls.print_right(f"[dim]{message}[/dim]")

    @classmethod
    def update_status(cls, in_flight: int, recent: int,
                      budget_remaining: int, budget_limit: int) -> None:
        """Refresh the status footer (TUI only)."""
        if cls._app is not None:
            cls._app.call_from_thread(
                cls._app.set_status, in_flight, recent, budget_remaining, budget_limit
            )
