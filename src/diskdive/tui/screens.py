"""TUI screens for diskdive."""

from textual import events
from textual.app import ComposeResult
from textual.binding import Binding
from textual.screen import Screen

from diskdive.messages import KeyPressed, Resized, Tick
from diskdive.navigation import NavigationModel
from diskdive.render import render
from diskdive.tui.widgets import DashboardView


class DashboardScreen(Screen):
    """Single-screen disk usage browser driven by a NavigationModel."""

    BINDINGS = [
        Binding("up", "press('up')", "Up", show=False),
        Binding("down", "press('down')", "Down", show=False),
        Binding("left", "press('left')", "Back", show=False),
        Binding("right", "press('right')", "Open dir", show=False),
        Binding("enter", "press('enter')", "Enter", show=False),
        Binding("r,R", "press('r')", "Refresh", show=False),
        Binding("o,O", "press('o')", "Open", show=False),
        Binding("f,F", "press('f')", "File", show=False),
        Binding("t,T", "press('t')", "Top files", show=False),
        Binding("backspace,delete", "press('backspace')", "Delete", show=False),
        Binding("escape", "press('escape')", "Cancel", show=False),
        Binding("q,Q", "press('q')", "Quit", show=False),
    ]

    def __init__(self, model: NavigationModel) -> None:
        super().__init__()
        self.model = model

    def compose(self) -> ComposeResult:
        yield DashboardView(id="dashboard")

    def on_mount(self) -> None:
        """Size the model, start the first scan and the redraw ticker."""
        size = self.app.size
        self.model.dispatch(Resized(size.width, size.height))
        self.model.start()
        self.set_interval(self.model.settings.tick_interval, self._tick)
        self._redraw()

    def on_resize(self, event: events.Resize) -> None:
        self.model.dispatch(Resized(event.size.width, event.size.height))
        self._redraw()

    def action_press(self, key: str) -> None:
        """Forward a key to the model."""
        self.model.dispatch(KeyPressed(key))
        if self.model.quit_requested:
            self.app.exit()
            return
        self._redraw()

    def _tick(self) -> None:
        """Apply worker messages, advance the spinner and redraw."""
        self.model.pump()
        self.model.dispatch(Tick())
        self._redraw()

    def _redraw(self) -> None:
        self.query_one("#dashboard", DashboardView).show(render(self.model))
