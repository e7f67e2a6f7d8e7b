"""
Framework-agnostic table view model.

Holds column layout only: which fields are shown, how wide, any resize
in progress, and the scroll offsets of the header/body/footer panes.
Row data is read through a row source callable on every request; the
model never keeps its own copy.

Adding a field means one ColumnKind member and one COLUMNS entry.
"""

from __future__ import annotations

import enum
import logging
from datetime import datetime
from typing import Any, Callable, Iterable, NamedTuple, Sequence

from ..types import ScrollOffset

logger = logging.getLogger(__name__)


class ColumnKind(enum.Enum):
    # Watchlist
    SYMBOL = "symbol"
    PRICE = "price"
    LAST_UPDATE = "last_update"
    ERROR = "error"
    # Order book
    BID_SIZE = "bid_size"
    BID_PRICE = "bid_price"
    ASK_PRICE = "ask_price"
    ASK_SIZE = "ask_size"


class Pane(enum.Enum):
    HEADER = "header"
    BODY = "body"
    FOOTER = "footer"


def format_price(value: float) -> str:
    return f"{value:.2f}"


def format_size(value: float) -> str:
    return f"{value:.4f}"


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def _optional(value: Any, fmt: Callable[[Any], str], placeholder: str) -> str:
    return placeholder if value is None else fmt(value)


def _level_field(side: str, field: str, fmt: Callable[[float], str]) -> Callable[[Any, str], str]:
    def extract(row: Any, placeholder: str) -> str:
        level = getattr(row, side)
        return placeholder if level is None else fmt(getattr(level, field))
    return extract


class ColumnSpec(NamedTuple):
    header: str
    width: float
    extract: Callable[[Any, str], str]  # (row, placeholder) -> display text


COLUMNS: dict[ColumnKind, ColumnSpec] = {
    ColumnKind.SYMBOL: ColumnSpec("Symbol", 12, lambda row, ph: row.symbol),
    ColumnKind.PRICE: ColumnSpec("Price", 14, lambda row, ph: _optional(row.price, format_price, ph)),
    ColumnKind.LAST_UPDATE: ColumnSpec(
        "Last Update", 27, lambda row, ph: _optional(row.last_update, format_timestamp, ph)),
    ColumnKind.ERROR: ColumnSpec("Error", 40, lambda row, ph: row.error or ph),
    ColumnKind.BID_SIZE: ColumnSpec("Bid Size", 12, _level_field("bid", "size", format_size)),
    ColumnKind.BID_PRICE: ColumnSpec("Bid", 12, _level_field("bid", "price", format_price)),
    ColumnKind.ASK_PRICE: ColumnSpec("Ask", 12, _level_field("ask", "price", format_price)),
    ColumnKind.ASK_SIZE: ColumnSpec("Ask Size", 12, _level_field("ask", "size", format_size)),
}

WATCH_COLUMNS = (ColumnKind.SYMBOL, ColumnKind.PRICE, ColumnKind.LAST_UPDATE, ColumnKind.ERROR)
BOOK_COLUMNS = (ColumnKind.BID_SIZE, ColumnKind.BID_PRICE, ColumnKind.ASK_PRICE, ColumnKind.ASK_SIZE)


def cell(kind: ColumnKind, row: Any, placeholder: str = "N/A") -> str:
    """Display value of one field of one row. Pure."""
    return COLUMNS[kind].extract(row, placeholder)


class ColumnDescriptor:
    """
    Layout of one column.

    Stable while pending_resize_offset is None, Resizing otherwise.
    """

    __slots__ = ('kind', 'width', 'pending_resize_offset')

    def __init__(self, kind: ColumnKind, width: float | None = None) -> None:
        self.kind = kind
        self.width: float = float(COLUMNS[kind].width if width is None else width)
        if self.width < 0:
            raise ValueError(f"column width must be >= 0, got {self.width}")
        self.pending_resize_offset: float | None = None

    @property
    def resizing(self) -> bool:
        return self.pending_resize_offset is not None

    def __repr__(self) -> str:
        return (f"ColumnDescriptor({self.kind.name}, width={self.width}, "
                f"pending={self.pending_resize_offset})")


class TableViewModel:
    """
    Columns + pane offsets for one table.

    Thread-safety: NOT thread-safe. Mutated only from the runtime's
    dispatch; the UI reads between dispatches.
    """

    def __init__(
        self,
        kinds: Iterable[ColumnKind],
        row_source: Callable[[], Sequence[Any]],
        placeholder: str = "N/A",
    ) -> None:
        self.columns: list[ColumnDescriptor] = [ColumnDescriptor(kind) for kind in kinds]
        if len({c.kind for c in self.columns}) != len(self.columns):
            raise ValueError("duplicate column kinds")
        self.row_source = row_source
        self.placeholder = placeholder
        self.offsets: dict[Pane, ScrollOffset] = {pane: ScrollOffset() for pane in Pane}

    # --- rows -------------------------------------------------------------

    def rows(self) -> Sequence[Any]:
        return self.row_source()

    def headers(self) -> list[str]:
        return [COLUMNS[c.kind].header for c in self.columns]

    def cell(self, kind: ColumnKind, row: Any) -> str:
        return cell(kind, row, self.placeholder)

    def cells(self, row: Any) -> list[str]:
        return [self.cell(c.kind, row) for c in self.columns]

    @property
    def widths(self) -> list[float]:
        return [c.width for c in self.columns]

    @property
    def total_width(self) -> float:
        return sum(self.widths)

    # --- resize -----------------------------------------------------------

    def begin_resize(self, index: int, delta: float) -> None:
        """
        Put column `index` into Resizing(delta).

        The delta is measured from the start of the drag, so a second
        begin on the same column replaces the pending offset.
        """
        if not 0 <= index < len(self.columns):
            raise IndexError(f"column index {index} out of range (0..{len(self.columns) - 1})")
        self.columns[index].pending_resize_offset = float(delta)

    def commit_resize(self) -> bool:
        """
        Fold every pending offset into its column width at once.

        Widths never go below zero. Returns False when nothing was pending.
        """
        changed = False
        for column in self.columns:
            if column.pending_resize_offset is None:
                continue
            column.width = max(0.0, column.width + column.pending_resize_offset)
            column.pending_resize_offset = None
            changed = True
        if changed:
            logger.debug("Committed resize: %s", self.widths)
        return changed

    # --- scroll -----------------------------------------------------------

    def scroll(self, offset: ScrollOffset) -> None:
        """Body scrolled to `offset`; header and footer follow horizontally."""
        self.offsets[Pane.BODY] = offset
        self.offsets[Pane.HEADER] = ScrollOffset(offset.x, 0.0)
        self.offsets[Pane.FOOTER] = ScrollOffset(offset.x, 0.0)

    def offset_by(self, dx: float, dy: float = 0.0) -> ScrollOffset:
        """Offset one step from the current body offset, clamped to the origin and the last row."""
        body = self.offsets[Pane.BODY]
        last_row = max(0, len(self.rows()) - 1)
        return ScrollOffset(max(0.0, body.x + dx), min(float(last_row), max(0.0, body.y + dy)))

    @property
    def header_offset(self) -> ScrollOffset:
        return self.offsets[Pane.HEADER]

    @property
    def body_offset(self) -> ScrollOffset:
        return self.offsets[Pane.BODY]

    @property
    def footer_offset(self) -> ScrollOffset:
        return self.offsets[Pane.FOOTER]
