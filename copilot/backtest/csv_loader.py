"""Candle CSV loader — strict, all-or-nothing parsing of OHLC tables.

The table must carry ``timestamp, open, high, low, close`` columns (extra
columns are ignored).  The first problem found aborts the whole parse with a
``CandleParseError`` naming the row and column, so a partially-read file can
never reach the simulator.
"""

import io
import logging
import pathlib

import numpy as np
import pandas as pd

from copilot.backtest.models import Candle
from copilot.errors import CandleParseError

logger = logging.getLogger("copilot")

REQUIRED_COLUMNS = ("timestamp", "open", "high", "low", "close")

# Timestamps below this are epoch seconds.
_MILLIS_THRESHOLD = 1_000_000_000_000


def to_millis(raw_timestamp: float) -> int:
    """Normalise an epoch timestamp in seconds or milliseconds to milliseconds."""
    if raw_timestamp < _MILLIS_THRESHOLD:
        return int(round(raw_timestamp * 1000))
    return int(round(raw_timestamp))


def parse_candles_csv(text: str, delimiter: str = ",") -> list[Candle]:
    """Parse CSV *text* into candles.

    Blank lines are ignored, but error rows are always reported as physical
    file lines (header is line 1 after any leading blank lines).

    Raises:
        CandleParseError: on tokenizer errors, missing columns, empty rows,
            non-numeric or non-finite required values, or when no rows remain.
    """
    body = text.lstrip("\r\n")
    first_line = text[: len(text) - len(body)].count("\n") + 1
    try:
        raw = pd.read_csv(
            io.StringIO(body),
            sep=delimiter,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=False,
        )
    except pd.errors.EmptyDataError:
        raise CandleParseError("no columns to parse") from None
    except pd.errors.ParserError as exc:
        raise CandleParseError(str(exc).strip()) from None

    raw.columns = [str(c).strip() for c in raw.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in raw.columns]
    if missing:
        raise CandleParseError(f"missing columns {', '.join(missing)}")

    # The index is the line offset below the header; keep it when dropping blank lines.
    lines = body.splitlines()
    blank_lines = pd.Series(
        [label + 1 < len(lines) and not lines[label + 1].strip() for label in raw.index],
        index=raw.index,
        dtype=bool,
    )
    raw = raw[~(raw.isna().all(axis=1) | blank_lines)]
    if raw.empty:
        raise CandleParseError("no valid rows found.")

    text_values = raw[list(REQUIRED_COLUMNS)].fillna("").apply(
        lambda col: col.astype(str).str.strip()
    )
    numeric = text_values.apply(pd.to_numeric, errors="coerce").astype(float)
    empty_rows = (text_values == "").all(axis=1)
    invalid = numeric.isna() | ~np.isfinite(numeric)

    offending = empty_rows | invalid.any(axis=1)
    if offending.any():
        label = offending.idxmax()
        line = first_line + 1 + int(label)
        if empty_rows[label]:
            raise CandleParseError("empty row encountered", row=line)
        bad_columns = invalid.loc[label]
        column = next(c for c in REQUIRED_COLUMNS if bad_columns[c])
        raise CandleParseError("numeric values required", row=line, column=column)

    return [
        Candle(t=to_millis(ts), o=o, h=h, l=low, c=c)
        for ts, o, h, low, c in numeric.itertuples(index=False, name=None)
    ]


def load_candles_csv(path: str | pathlib.Path, delimiter: str = ",") -> list[Candle]:
    """Read and parse a candle CSV file from disk."""
    text = pathlib.Path(path).read_text(encoding="utf-8")
    candles = parse_candles_csv(text, delimiter=delimiter)
    logger.info("Loaded %d candles from %s", len(candles), path)
    return candles
