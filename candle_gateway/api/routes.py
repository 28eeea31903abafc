from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from candle_gateway.config.settings import settings
from candle_gateway.errors import CandleGatewayError, MissingParameterError, UpstreamFetchError
from candle_gateway.exchanges.base import ExchangeAdapter
from candle_gateway.exchanges.registry import get_adapter
from candle_gateway.internal_metrics import metrics
from candle_gateway.observability import RequestTimer, observability
from candle_gateway.schemas.candle import Candle
from candle_gateway.schemas.common import ErrorResponse, HealthResponse
from candle_gateway.schemas.ticker import TickerSchema
from candle_gateway.services.candle_service import CandleService
from candle_gateway.services.normalizer import candles_to_csv
from candle_gateway.services.synthetic_service import SYNTHETIC_SOURCE, SyntheticCandleService
from candle_gateway.services.ticker_service import TickerService
from candle_gateway.utils.date_range import FetchRange, ms_to_iso, resolve_date_range, resolve_timestamp_range
from candle_gateway.utils.exchange_mapper import Exchange, Market
from candle_gateway.utils.intervals import IntervalSpec, resolve_interval
from candle_gateway.utils.symbol_normalizer import normalize_exchange, normalize_market, normalize_symbol

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api")

candle_service = CandleService()
ticker_service = TickerService()
synthetic_service = SyntheticCandleService()

UPSTREAM_SOURCE = "upstream"
NO_DATA_DETAILS = "No candle data returned for the selected range. Try a smaller/recent range (e.g., last 24 hours)"


@dataclass(frozen=True)
class CandleQuery:
    adapter: ExchangeAdapter
    exchange: Exchange
    market: Market
    symbol: str
    interval: IntervalSpec
    fetch_range: FetchRange
    range_start_label: str
    range_end_label: str


def error_response(error: str, details: str, status_code: int = 400) -> JSONResponse:
    payload = ErrorResponse(error=error, details=details, status=status_code)
    return JSONResponse(status_code=status_code, content=payload.model_dump())


def _resolve_query(
    instrument_name: Optional[str],
    symbol: Optional[str],
    start_date: Optional[str],
    end_date: Optional[str],
    start_ts: Optional[str],
    end_ts: Optional[str],
    resolution: str,
    market: str,
    exchange: Optional[str],
) -> CandleQuery:
    clean_exchange = normalize_exchange(exchange or settings.default_exchange)
    clean_market = normalize_market(market)
    clean_symbol = normalize_symbol(instrument_name, symbol)
    interval = resolve_interval(resolution)

    if start_ts:
        fetch_range = resolve_timestamp_range(start_ts, end_ts)
        start_label, end_label = str(fetch_range.start_utc_ms), str(fetch_range.end_utc_ms)
    elif start_date:
        fetch_range = resolve_date_range(start_date, end_date, settings.local_utc_offset_hours)
        start_label, end_label = start_date, end_date or start_date
    else:
        raise MissingParameterError("start_date (YYYY-MM-DD, local) or start_ts (ms) required")

    return CandleQuery(
        adapter=get_adapter(clean_exchange),
        exchange=clean_exchange,
        market=clean_market,
        symbol=clean_symbol,
        interval=interval,
        fetch_range=fetch_range,
        range_start_label=start_label,
        range_end_label=end_label,
    )


def _load_candles(query: CandleQuery) -> tuple[list[Candle], str]:
    logger.info(
        "candles_request",
        extra={
            "exchange": query.exchange.value,
            "market": query.market.value,
            "symbol": query.symbol,
            "interval": query.interval.code,
            "start": ms_to_iso(query.fetch_range.start_utc_ms),
            "end": ms_to_iso(query.fetch_range.end_utc_ms),
        },
    )
    try:
        candles = candle_service.get_candles(query.adapter, query.symbol, query.market, query.fetch_range, query.interval)
    except UpstreamFetchError as exc:
        if not settings.synthetic_fallback_enabled:
            raise
        logger.warning(f"Serving synthetic candles after upstream failure: {exc}", extra={"exchange": query.exchange.value, "symbol": query.symbol})
        return synthetic_service.generate(query.fetch_range, query.interval), SYNTHETIC_SOURCE
    return candles, UPSTREAM_SOURCE


async def gateway_error_handler(_: Request, exc: CandleGatewayError):
    if isinstance(exc, UpstreamFetchError):
        logger.error(f"Upstream fetch failed: {exc}", extra={"upstream": exc.upstream})
        return error_response("Failed to fetch data", str(exc), status_code=500)
    logger.info(f"Rejected request: {exc}")
    return error_response("invalid_request", str(exc), status_code=400)


async def http_exception_handler(_: Request, exc: StarletteHTTPException):
    details = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response("request_failed", details, status_code=exc.status_code)


def _flatten_validation_errors(exc: RequestValidationError) -> str:
    """Return a concise, stable validation message string."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(i) for i in err.get("loc", []))
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}")
    return "; ".join(parts)


async def validation_exception_handler(_: Request, exc: RequestValidationError):
    return error_response("validation_error", _flatten_validation_errors(exc), status_code=400)


async def unhandled_exception_handler(_: Request, exc: Exception):
    logger.error(f"Unhandled API exception: {exc}", exc_info=True)
    return error_response("internal_server_error", "Unexpected server error", status_code=500)


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, version=settings.app_version)

    @app.middleware("http")
    async def request_context(request: Request, call_next):
        request_id = request.headers.get("x-request-id", str(uuid.uuid4()))
        timer = RequestTimer()
        response = None
        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            latency_ms = round(timer.elapsed_ms(), 2)
            observability.record_request(request.url.path, response.status_code if response else 500, latency_ms)
            logger.info(
                "request_complete",
                extra={
                    "request_id": request_id,
                    "path": request.url.path,
                    "exchange": request.query_params.get("exchange", ""),
                    "symbol": request.query_params.get("symbol") or request.query_params.get("instrument_name", ""),
                    "status_code": response.status_code if response else 500,
                    "latency_ms": latency_ms,
                    "data_source": response.headers.get("x-data-source") if response else None,
                },
            )

    app.add_exception_handler(CandleGatewayError, gateway_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
    app.include_router(router)
    return app


@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(
        status="OK",
        service=settings.app_name,
        version=settings.app_version,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )


@router.get("/metrics")
def all_metrics():
    return {
        "service": settings.app_name,
        "uptime_seconds": round(observability.uptime_seconds(), 3),
        "upstreams": metrics.global_metrics(),
        "request_count": observability.request_count(),
        "routes": observability.snapshot(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/candles", response_model=list[Candle], response_model_exclude_none=True)
def candles(
    response: Response,
    instrument_name: Optional[str] = Query("BTC", description="Loose asset name, e.g. BTC or ETH"),
    symbol: Optional[str] = Query(None, description="Exchange symbol, overrides instrument_name"),
    start_date: Optional[str] = Query(None, description="Local calendar date YYYY-MM-DD"),
    end_date: Optional[str] = Query(None, description="Local calendar date YYYY-MM-DD, defaults to start_date"),
    start_ts: Optional[str] = Query(None, description="Inclusive start, UTC milliseconds"),
    end_ts: Optional[str] = Query(None, description="Inclusive end, UTC milliseconds"),
    resolution: str = Query("1m"),
    market: str = Query("spot", description="spot or futures"),
    exchange: Optional[str] = Query(None, description="binance, bybit or okx"),
):
    query = _resolve_query(instrument_name, symbol, start_date, end_date, start_ts, end_ts, resolution, market, exchange)
    data, source = _load_candles(query)
    if not data:
        return error_response("no_data", NO_DATA_DETAILS, status_code=404)
    response.headers["X-Data-Source"] = source
    return data


@router.get("/candles.csv")
def candles_csv(
    instrument_name: Optional[str] = Query("BTC"),
    symbol: Optional[str] = Query(None),
    start_date: Optional[str] = Query(None),
    end_date: Optional[str] = Query(None),
    start_ts: Optional[str] = Query(None),
    end_ts: Optional[str] = Query(None),
    resolution: str = Query("1m"),
    market: str = Query("spot"),
    exchange: Optional[str] = Query(None),
):
    query = _resolve_query(instrument_name, symbol, start_date, end_date, start_ts, end_ts, resolution, market, exchange)
    data, source = _load_candles(query)
    if not data:
        return error_response("no_data", NO_DATA_DETAILS, status_code=404)

    file_name = f"{query.symbol}_{query.interval.code}_{query.range_start_label}_to_{query.range_end_label}.csv"
    return Response(
        content=candles_to_csv(data),
        media_type="text/csv",
        headers={
            "Content-Disposition": f'attachment; filename="{file_name}"',
            "X-Data-Source": source,
        },
    )


@router.get("/ticker", response_model=TickerSchema)
def ticker(
    instrument_name: Optional[str] = Query("BTC"),
    symbol: Optional[str] = Query(None),
    market: str = Query("spot"),
    exchange: Optional[str] = Query(None),
):
    clean_exchange = normalize_exchange(exchange or settings.default_exchange)
    clean_market = normalize_market(market)
    clean_symbol = normalize_symbol(instrument_name, symbol)
    data = ticker_service.get_ticker(get_adapter(clean_exchange), clean_symbol, clean_market)
    return TickerSchema(**data)
