"""
Krader TUI using Textual.

Displays:
- Top: status bar with clock, watched symbols, tracked pair
- Middle: watchlist table (symbol, price, last update, error)
- Bottom: order book table (bid size/price, ask price/size)

Each table is three panes (header, body, footer) rendered from its
TableViewModel. Panes are plain Static widgets; horizontal scrolling is
done by cropping each rendered line at the model's pane offset, so all
three panes of a table always line up.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

from rich.console import RenderableType
from rich.style import Style
from rich.text import Text

from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Footer, Static

from ..engine.state import (
    BOOK_TABLE,
    WATCH_TABLE,
    RefreshRequested,
    ResizeBegin,
    ResizeCommit,
    ScrollChanged,
)
from .table_model import Pane, TableViewModel, format_price, format_timestamp

if TYPE_CHECKING:
    from ..engine.runtime import Runtime
    from ..engine.state import AppState, Effect

# Color scheme (dark theme)
BID_COLOR = "#22c55e"      # Green
ASK_COLOR = "#ef4444"      # Red
ERROR_COLOR = "#ef4444"
PRICE_COLOR = "#f8fafc"
HEADER_COLOR = "#94a3b8"
SELECTED_BG = "#1e40af"

TITLE = "\U0001f991 Krader"

SCROLL_STEP = 4.0
RESIZE_STEP = 2.0


def render_line(
    cells: Sequence[str],
    widths: Sequence[float],
    offset_x: float = 0.0,
    styles: Sequence[str | Style | None] | None = None,
) -> Text:
    """
    Lay cells out at fixed widths and crop the line at `offset_x`.

    Cells longer than their column are truncated; a zero-width column
    disappears.
    """
    line = Text(no_wrap=True, overflow="crop")
    for i, (value, width) in enumerate(zip(cells, widths)):
        w = max(0, int(round(width)))
        if w == 0:
            continue
        chunk = value[: w - 1].ljust(w) if w > 1 else value[:1]
        style = styles[i] if styles is not None and i < len(styles) else None
        line.append(chunk, style=style or "")
    start = max(0, int(offset_x))
    return line[start:]


class TablePane(Static):
    """One pane (header, body or footer) of a table view model."""

    DEFAULT_CSS = """
    TablePane {
        width: 100%;
        height: auto;
    }
    """

    def __init__(self, app_state: AppState, table: str, pane: Pane) -> None:
        super().__init__(classes=f"pane-{pane.value}")
        self.app_state = app_state
        self.table = table
        self.pane = pane
        self.selected_column: int | None = None

    @property
    def model(self) -> TableViewModel:
        return self.app_state.table(self.table)

    def render(self) -> RenderableType:
        model = self.model
        offset = model.offsets[self.pane]
        if self.pane is Pane.HEADER:
            return self._render_header(model, offset.x)
        if self.pane is Pane.BODY:
            return self._render_body(model, offset.x, offset.y)
        return self._render_footer(offset.x)

    def _render_header(self, model: TableViewModel, offset_x: float) -> Text:
        styles: list[str | Style | None] = []
        for i, column in enumerate(model.columns):
            style = Style(color=HEADER_COLOR, bold=True)
            if i == self.selected_column:
                style += Style(bgcolor=SELECTED_BG)
            if column.resizing:
                style += Style(italic=True)
            styles.append(style)
        return render_line(model.headers(), model.widths, offset_x, styles)

    def _render_body(self, model: TableViewModel, offset_x: float, offset_y: float) -> Text:
        all_rows = list(model.rows())
        if not all_rows:
            return Text("Waiting for data...", style="dim")
        rows = all_rows[max(0, int(offset_y)):]
        widths = model.widths
        if self.table == BOOK_TABLE:
            styles = [BID_COLOR, BID_COLOR, ASK_COLOR, ASK_COLOR]
        else:
            styles = [PRICE_COLOR, PRICE_COLOR, "dim", ERROR_COLOR]
        lines = [render_line(model.cells(row), widths, offset_x, styles) for row in rows]
        return Text("\n", no_wrap=True).join(lines)

    def _render_footer(self, offset_x: float) -> Text:
        state = self.app_state
        if self.table == WATCH_TABLE:
            stamps = [item.last_update for item in state.watch.items if item.last_update is not None]
            errors = {item.error for item in state.watch.items if item.error}
            text = Text(no_wrap=True, overflow="crop")
            if stamps:
                text.append(f"Last update: {format_timestamp(max(stamps))}", style="dim")
            if errors:
                text.append(f"  Error: {'; '.join(sorted(errors))}", style=ERROR_COLOR)
        else:
            book = state.book
            text = Text(no_wrap=True, overflow="crop")
            text.append(f"{book.pair}  ", style="bold")
            spread = book.spread
            text.append(f"Spread: {format_price(spread) if spread is not None else state.settings.placeholder}",
                        style="yellow")
            if book.last_error:
                text.append(f"  Error: {book.last_error}", style=ERROR_COLOR)
        return text[max(0, int(offset_x)):]


class StatusBar(Static):
    """Status bar showing title, clock and the tracked pair."""

    DEFAULT_CSS = """
    StatusBar {
        dock: top;
        height: 3;
        padding: 0 2;
        background: #0f172a;
    }
    """

    def __init__(self, app_state: AppState) -> None:
        super().__init__()
        self.app_state = app_state

    def render(self) -> RenderableType:
        state = self.app_state
        result = Text()
        result.append(f" {TITLE} ", style="bold white on #1e40af")
        result.append("  ")
        result.append(format_timestamp(state.clock), style="cyan")
        result.append("  │  ", style="dim")
        result.append("Watching: ", style="dim")
        result.append(", ".join(state.watch.symbols))
        result.append("  │  ", style="dim")
        result.append("Book: ", style="dim")
        result.append(state.book.pair)
        return result


class KraderApp(App):
    """Main Krader application."""

    CSS = """
    Screen {
        background: #0f172a;
    }

    .table-box {
        height: auto;
        padding: 1 2;
    }

    .pane-footer {
        color: #94a3b8;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
        ("t", "switch_table", "Switch Table"),
        ("left", "scroll_columns(-1)", "Scroll Left"),
        ("right", "scroll_columns(1)", "Scroll Right"),
        ("up", "scroll_rows(-1)", "Up"),
        ("down", "scroll_rows(1)", "Down"),
        ("comma", "select_column(-1)", "Prev Column"),
        ("full_stop", "select_column(1)", "Next Column"),
        ("left_square_bracket", "resize(-1)", "Narrower"),
        ("right_square_bracket", "resize(1)", "Wider"),
        ("enter", "commit_resize", "Commit Resize"),
    ]

    def __init__(self, runtime: Runtime, initial_effects: Sequence[Effect] = ()) -> None:
        super().__init__()
        self.runtime = runtime
        self.initial_effects = list(initial_effects)
        self.active_table = WATCH_TABLE
        self.selected_column = 0
        self._table_panes: list[TablePane] = []
        self._status_widget: StatusBar | None = None

    @property
    def app_state(self) -> AppState:
        return self.runtime.state

    def compose(self) -> ComposeResult:
        self._status_widget = StatusBar(self.app_state)
        yield self._status_widget
        for table in (WATCH_TABLE, BOOK_TABLE):
            panes = [TablePane(self.app_state, table, pane) for pane in Pane]
            self._table_panes.extend(panes)
            yield Vertical(*panes, classes="table-box")
        yield Footer()

    def on_mount(self) -> None:
        """Hook the runtime up to the widgets and start fetching."""
        self.runtime.subscribe(self._on_state_change)
        self._mark_selection()
        self.runtime.start(self.initial_effects)

    def _on_state_change(self, state: AppState) -> None:
        if self._status_widget:
            self._status_widget.refresh()
        for pane in self._table_panes:
            pane.refresh()

    def _mark_selection(self) -> None:
        for pane in self._table_panes:
            pane.selected_column = self.selected_column if pane.table == self.active_table else None
            pane.refresh()

    @property
    def _model(self) -> TableViewModel:
        return self.app_state.table(self.active_table)

    def action_refresh(self) -> None:
        self.runtime.dispatch(RefreshRequested())

    def action_switch_table(self) -> None:
        self.active_table = BOOK_TABLE if self.active_table == WATCH_TABLE else WATCH_TABLE
        self.selected_column = min(self.selected_column, len(self._model.columns) - 1)
        self._mark_selection()

    def action_scroll_columns(self, direction: int) -> None:
        offset = self._model.offset_by(direction * SCROLL_STEP)
        self.runtime.dispatch(ScrollChanged(self.active_table, offset))

    def action_scroll_rows(self, direction: int) -> None:
        offset = self._model.offset_by(0.0, float(direction))
        self.runtime.dispatch(ScrollChanged(self.active_table, offset))

    def action_select_column(self, direction: int) -> None:
        count = len(self._model.columns)
        self.selected_column = (self.selected_column + direction) % count
        self._mark_selection()

    def action_resize(self, direction: int) -> None:
        column = self._model.columns[self.selected_column]
        delta = (column.pending_resize_offset or 0.0) + direction * RESIZE_STEP
        self.runtime.dispatch(ResizeBegin(self.active_table, self.selected_column, delta))

    def action_commit_resize(self) -> None:
        self.runtime.dispatch(ResizeCommit(self.active_table))


async def run_ui(runtime: Runtime, initial_effects: Sequence[Effect] = ()) -> None:
    """Run the TUI application until the user quits."""
    app = KraderApp(runtime, initial_effects)
    await app.run_async()
