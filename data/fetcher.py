"""
Crypto price loader: CSV snapshots and the yfinance API.
Both paths return the long price table (symbol, date, open, high, low,
close, volume) consumed by the pipeline.
"""

import logging
from pathlib import Path
from typing import Optional

import pandas as pd
import yfinance as yf

import config
from models.entities import PRICE_COLUMNS, REQUIRED_COLUMNS

logger = logging.getLogger(__name__)


# Header spellings seen in public crypto dumps
_COLUMN_ALIASES: dict[str, str] = {
    "ticker": "symbol",
    "name": "symbol",
    "timestamp": "date",
    "datetime": "date",
    "vol": "volume",
}


def load_price_csv(path) -> pd.DataFrame:
    """
    Read a long price table from CSV.

    Accepts capitalized headers (Symbol, Date, Open, ...) and ignores
    extra columns such as Marketcap or an unnamed index column. Column
    presence is checked later by the pipeline's validation step.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Price file not found: {path}")

    df = pd.read_csv(path)
    df.columns = [str(c).strip().lower() for c in df.columns]
    df = df.rename(columns={k: v for k, v in _COLUMN_ALIASES.items() if v not in df.columns})

    # Two aliases of the same field → keep the first
    df = df.loc[:, ~df.columns.duplicated()]
    keep = [c for c in REQUIRED_COLUMNS if c in df.columns]
    dropped = [c for c in df.columns if c not in keep]
    if dropped:
        logger.debug(f"Ignoring columns: {', '.join(dropped)}")

    logger.info(f"Read {len(df):,} rows from {path.name}")
    return df[keep]


class CryptoDataFetcher:
    """Fetches daily OHLCV histories for a crypto universe via yfinance."""

    def __init__(self, start: str = None, end: Optional[str] = None):
        self.start = start or config.DEFAULT_START
        self.end = end if end is not None else config.DEFAULT_END

    # ── public API ────────────────────────────────────────

    def fetch(self, symbol: str) -> pd.DataFrame:
        """
        Download one symbol's daily history.

        Returns
        -------
        pd.DataFrame in the long price-table schema.
        """
        df = yf.Ticker(symbol).history(
            start=self.start, end=self.end, interval="1d", auto_adjust=True
        )
        if df.empty:
            raise ValueError(
                f"No data returned for {symbol} (start={self.start}, end={self.end}). "
                "Check the ticker symbol and the date range."
            )

        # Keep only OHLCV columns and drop timezone info for simplicity
        df = df[["Open", "High", "Low", "Close", "Volume"]].copy()
        if df.index.tz is not None:
            df.index = df.index.tz_localize(None)

        df.columns = PRICE_COLUMNS
        df.index.name = "date"
        df = df.reset_index()
        df.insert(0, "symbol", symbol)
        return df[REQUIRED_COLUMNS]

    def fetch_universe(self, symbols: list[str] = None) -> pd.DataFrame:
        """
        Download every symbol and stack them into one long table.

        Symbols with no data are skipped with a warning; if none return
        data a ValueError is raised.
        """
        symbols = symbols or config.DEFAULT_SYMBOLS
        frames = []
        for symbol in symbols:
            try:
                frames.append(self.fetch(symbol))
            except ValueError as e:
                logger.warning(str(e))
                continue
            logger.info(f"Fetched {symbol}: {len(frames[-1])} days")

        if not frames:
            raise ValueError(f"No data returned for any of {len(symbols)} symbols")
        return pd.concat(frames, ignore_index=True)
