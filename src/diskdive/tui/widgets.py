"""Custom widgets for the diskdive dashboard."""

from rich.text import Text
from textual.reactive import reactive
from textual.widgets import Static


class DashboardView(Static):
    """Shows the markup produced by the renderer."""

    # Row count changes with the listing, so a new body must re-layout
    body: reactive[str] = reactive("", layout=True)

    def show(self, markup: str) -> None:
        """Replace the displayed text; unchanged text skips the repaint."""
        if markup != self.body:
            self.body = markup

    def render(self) -> Text:
        if not self.body:
            return Text("Starting...", style="dim")
        return Text.from_markup(self.body)
