"""
Turn raw upstream kline rows into canonical, time-ordered candles.

Overlapping pages can return the same bar twice; the occurrence appended
last wins. Output is sorted ascending by open time, and the whole
operation is idempotent.
"""
from __future__ import annotations

import csv
import io
from typing import Any, Callable, Iterable, Optional, Sequence, TypeVar

from candle_gateway.errors import UpstreamFetchError
from candle_gateway.exchanges.base import ExchangeAdapter, RowField
from candle_gateway.schemas.candle import Candle
from candle_gateway.utils.date_range import ms_to_iso
from candle_gateway.utils.exchange_mapper import Market
from candle_gateway.utils.validators import iso_to_ms, to_native_float, to_native_int

T = TypeVar("T")

CSV_COLUMNS: tuple[tuple[str, str], ...] = (
    ("Open time (UTC)", "open_time"),
    ("Open", "open"),
    ("High", "high"),
    ("Low", "low"),
    ("Close", "close"),
    ("Volume", "volume"),
    ("Close time (UTC)", "close_time"),
    ("Quote asset volume", "quote_volume"),
    ("Trades", "trade_count"),
    ("Taker buy base", "taker_buy_base_volume"),
    ("Taker buy quote", "taker_buy_quote_volume"),
)
_TIME_FIELDS = {"open_time", "close_time"}
_INT_FIELDS = {"trade_count"}


def _row_open_time(row: Sequence[Any]) -> int:
    return int(row[0])


def dedupe_and_sort(items: Iterable[T], open_time: Callable[[T], int] = _row_open_time) -> list[T]:
    by_time: dict[int, T] = {}
    for item in items:
        by_time[open_time(item)] = item
    return [by_time[ts] for ts in sorted(by_time)]


def _cast_required(value: Any, kind: type) -> Any:
    if value is None or value == "":
        raise ValueError("missing value")
    if kind is int:
        return int(float(value)) if isinstance(value, str) and "." in value else int(value)
    casted = float(value)
    if casted != casted:
        raise ValueError("NaN")
    return casted


def row_to_candle(row: Sequence[Any], fields: Sequence[RowField], upstream: str = "upstream") -> Candle:
    values: dict[str, Any] = {}
    for field in fields:
        present = field.index < len(row)
        raw = row[field.index] if present else None
        if field.required:
            try:
                values[field.name] = _cast_required(raw, field.kind)
            except (TypeError, ValueError) as exc:
                raise UpstreamFetchError(upstream, f"malformed row {list(row)!r}: {field.name} {exc}") from exc
        elif present:
            values[field.name] = to_native_int(raw) if field.kind is int else to_native_float(raw)
    return Candle(**values)


def normalize(rows: Iterable[Sequence[Any]], adapter: ExchangeAdapter, market: Market) -> list[Candle]:
    fields = adapter.fields_for(market)
    clean = dedupe_and_sort(rows, adapter.open_time)
    return [row_to_candle(row, fields, adapter.name) for row in clean]


def _format_cell(name: str, value: Any) -> str:
    if value is None:
        return ""
    if name in _TIME_FIELDS:
        return ms_to_iso(value)
    return repr(value) if isinstance(value, float) else str(value)


def candles_to_csv(candles: Iterable[Candle]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow([header for header, _ in CSV_COLUMNS])
    for candle in candles:
        writer.writerow([_format_cell(name, getattr(candle, name)) for _, name in CSV_COLUMNS])
    return buffer.getvalue()


def _parse_cell(name: str, cell: str) -> Optional[Any]:
    if cell == "":
        return None
    if name in _TIME_FIELDS:
        return iso_to_ms(cell)
    if name in _INT_FIELDS:
        return int(cell)
    return float(cell)


def csv_to_candles(text: str) -> list[Candle]:
    reader = csv.reader(io.StringIO(text))
    header = next(reader, None)
    if header is None:
        return []
    names = dict(CSV_COLUMNS)
    columns = [names[h] for h in header]
    candles = []
    for row in reader:
        if not row:
            continue
        values = {name: _parse_cell(name, cell) for name, cell in zip(columns, row)}
        candles.append(Candle(**{k: v for k, v in values.items() if v is not None}))
    return candles
