"""
Kraken public REST client.

Handles:
1. Ticker fetch -> last traded price (result.<symbol>.c[0])
2. Depth fetch -> parsed bids/asks (result.<pair>.bids / asks)
3. Mapping every failure onto the FetchError taxonomy

Notes:
- One request per call, no retries; the scheduler's next tick is the retry
- Uses orjson for JSON parsing
- All I/O is non-blocking (pure asyncio)
"""

from __future__ import annotations

import asyncio
import logging
import math
from typing import Any

import aiohttp
import orjson

from .orderbook import parse_levels
from ..config import DEFAULT_DEPTH, REQUEST_TIMEOUT_SEC, REST_BASE
from ..errors import DecodeError, MissingFieldError, NumericParseError, TransportError
from ..types import BookSnapshot

logger = logging.getLogger(__name__)

TICKER_PATH = "/0/public/Ticker"
DEPTH_PATH = "/0/public/Depth"


def parse_decimal(literal: Any) -> float:
    """Parse a string-encoded decimal. Raises NumericParseError if not finite."""
    try:
        value = float(literal)
    except (TypeError, ValueError):
        raise NumericParseError(literal) from None
    if not math.isfinite(value):
        raise NumericParseError(literal)
    return value


def _result_entry(doc: Any, key: str, field: str) -> dict:
    """Return doc["result"][key], raising MissingFieldError on any shape mismatch."""
    if not isinstance(doc, dict):
        raise MissingFieldError(field)

    # Kraken prefixes errors with "E" and warnings with "W"; warnings ride along with a valid result
    raw = doc.get("error") or ()
    if isinstance(raw, str):
        raw = (raw,)
    messages = [str(m) for m in raw]
    errors = [m for m in messages if not m.startswith("W")]
    if errors:
        raise MissingFieldError(field, detail=errors[0])
    for warning in messages:
        if warning.startswith("W"):
            logger.warning("Kraken warning for %s: %s", key, warning)

    result = doc.get("result")
    if not isinstance(result, dict):
        raise MissingFieldError(field)

    entry = result.get(key)
    if not isinstance(entry, dict):
        raise MissingFieldError(field)
    return entry


def parse_ticker(doc: Any, symbol: str) -> float:
    """Extract the last trade price for `symbol` from a Ticker response."""
    entry = _result_entry(doc, symbol, "Price")
    close = entry.get("c")
    if not isinstance(close, list) or not close or not isinstance(close[0], str):
        raise MissingFieldError("Price")
    return parse_decimal(close[0])


def parse_depth(doc: Any, pair: str) -> BookSnapshot:
    """
    Extract both book sides for `pair` from a Depth response.

    A missing side fails the fetch; malformed levels inside a side are
    dropped by parse_levels.
    """
    entry = _result_entry(doc, pair, "Depth")

    raw_bids = entry.get("bids")
    if not isinstance(raw_bids, list):
        raise MissingFieldError("Bids")
    raw_asks = entry.get("asks")
    if not isinstance(raw_asks, list):
        raise MissingFieldError("Asks")

    return BookSnapshot(pair=pair, bids=parse_levels(raw_bids), asks=parse_levels(raw_asks))


class KrakenClient:
    """
    Async Kraken REST client.

    Usage:
        async with KrakenClient() as client:
            price = await client.fetch_price("XXBTZUSD")
            book = await client.fetch_depth("XXBTZUSD")

    A session passed in by the caller is borrowed and left open on close().
    """

    def __init__(
        self,
        base_url: str = REST_BASE,
        depth: int = DEFAULT_DEPTH,
        timeout: float = REQUEST_TIMEOUT_SEC,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.depth = depth
        self.timeout = timeout
        self._session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "KrakenClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout),
            )
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _get_json(self, path: str, params: dict[str, str]) -> Any:
        """GET a public endpoint and decode the body. Transport and decode failures only."""
        url = f"{self.base_url}{path}"
        session = self._get_session()
        try:
            async with session.get(url, params=params) as resp:
                resp.raise_for_status()
                data = await resp.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise TransportError(str(e) or type(e).__name__) from e

        try:
            return orjson.loads(data)
        except orjson.JSONDecodeError as e:
            raise DecodeError(e) from e

    async def fetch_price(self, symbol: str) -> float:
        """Fetch the last traded price for one symbol."""
        doc = await self._get_json(TICKER_PATH, {"pair": symbol})
        price = parse_ticker(doc, symbol)
        logger.debug("Ticker %s: %s", symbol, price)
        return price

    async def fetch_depth(self, pair: str) -> BookSnapshot:
        """Fetch the top `depth` levels of each side of one pair's book."""
        doc = await self._get_json(DEPTH_PATH, {"pair": pair, "count": str(self.depth)})
        book = parse_depth(doc, pair)
        logger.debug("Depth %s: %d bids, %d asks", pair, len(book.bids), len(book.asks))
        return book

    # Generic single-target capability used by the aggregator
    fetch = fetch_price
