"""
Krader - Kraken market watcher for the terminal.

Architecture:
- datafeed/: Kraken REST client, watchlist and order book state
- engine/: Fan-out aggregation, scheduling, application state + update loop
- ui/: Table view model + Textual TUI
"""

__version__ = "0.1.0"
