"""
Error taxonomy for the candle fetch path.
HTTP status translation happens only in the API layer.
"""
from __future__ import annotations

from typing import Any


class CandleGatewayError(Exception):
    """Base class for errors raised while serving a candle request."""


class InvalidParameterError(CandleGatewayError):
    pass


class MissingParameterError(InvalidParameterError):
    pass


class MalformedDateError(CandleGatewayError):
    pass


class UnsupportedIntervalError(CandleGatewayError):
    pass


class UnsupportedMarketError(CandleGatewayError):
    pass


class RangeTooLargeError(CandleGatewayError):
    pass


class UpstreamFetchError(CandleGatewayError):
    """Transport failure, timeout, or error response from an exchange API."""

    def __init__(self, upstream: str, payload: Any):
        self.upstream = upstream
        self.payload = payload
        super().__init__(f"{upstream} fetch error: {payload}")
