"""
Runtime settings.

Defaults live here as module constants; the CLI in main.py overrides them
and freezes the result into a Settings tuple handed to every component.
"""

from __future__ import annotations

from typing import NamedTuple

# Kraken public REST endpoint
REST_BASE = "https://api.kraken.com"

# Kraken canonical pair names; the ticker result is keyed by exactly these
DEFAULT_SYMBOLS = ("XXBTZUSD", "XETHZUSD", "DOTUSD")
DEFAULT_PAIR = "XXBTZUSD"
DEFAULT_DEPTH = 25

PRICE_INTERVAL_SEC = 5.0
BOOK_INTERVAL_SEC = 5.0
CLOCK_INTERVAL_SEC = 1.0
REQUEST_TIMEOUT_SEC = 10.0

PLACEHOLDER = "N/A"
LOG_FILE = "krader.log"


class Settings(NamedTuple):
    symbols: tuple[str, ...] = DEFAULT_SYMBOLS
    pair: str = DEFAULT_PAIR
    depth: int = DEFAULT_DEPTH
    price_interval: float = PRICE_INTERVAL_SEC
    book_interval: float = BOOK_INTERVAL_SEC
    clock_interval: float = CLOCK_INTERVAL_SEC
    timeout: float = REQUEST_TIMEOUT_SEC
    base_url: str = REST_BASE
    placeholder: str = PLACEHOLDER

    def validate(self) -> "Settings":
        """Reject settings the engine cannot run with. Returns self."""
        if not self.symbols:
            raise ValueError("at least one symbol is required")
        if len(set(self.symbols)) != len(self.symbols):
            raise ValueError(f"duplicate symbols in watchlist: {list(self.symbols)}")
        if self.depth <= 0:
            raise ValueError(f"depth must be positive, got {self.depth}")
        for name in ("price_interval", "book_interval", "clock_interval", "timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")
        if not isinstance(self.placeholder, str) or not self.placeholder:
            raise ValueError(f"placeholder must be a non-empty string, got {self.placeholder!r}")
        return self
