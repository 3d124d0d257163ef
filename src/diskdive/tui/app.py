"""Main TUI application for diskdive."""

from queue import SimpleQueue
from typing import Optional

from textual.app import App
from textual.binding import Binding

from diskdive.deleter import DeletionExecutor
from diskdive.navigation import NavigationModel
from diskdive.scanner import Scanner
from diskdive.settings import Settings, load_settings
from diskdive.tui.screens import DashboardScreen


class DiskDiveApp(App):
    """Interactive disk usage analyzer."""

    TITLE = "diskdive"
    SUB_TITLE = "Disk Usage Analyzer"

    CSS_PATH = "styles.tcss"

    BINDINGS = [
        Binding("ctrl+c", "quit", "Quit", show=False),
    ]

    def __init__(self, start_path: Optional[str] = None, settings: Optional[Settings] = None):
        super().__init__()
        self.settings = settings or load_settings()
        self.mailbox: SimpleQueue = SimpleQueue()
        self.model = NavigationModel(
            scanner=Scanner(self.mailbox, self.settings),
            deleter=DeletionExecutor(self.mailbox),
            mailbox=self.mailbox,
            settings=self.settings,
            start_path=start_path,
        )

    def on_mount(self) -> None:
        """Called when the app is mounted."""
        self.push_screen(DashboardScreen(self.model))

    def on_unmount(self) -> None:
        """Stop background scans and deletions."""
        self.model.shutdown()


def run_tui(start_path: Optional[str] = None, settings: Optional[Settings] = None) -> None:
    """Run the interactive dashboard.

    Args:
        start_path: Directory to open, or None for the overview
        settings: Settings to use instead of the environment-derived ones
    """
    app = DiskDiveApp(start_path=start_path, settings=settings)
    app.run()
