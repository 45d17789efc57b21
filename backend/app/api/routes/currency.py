import logging
import re
from datetime import datetime, timezone
from typing import Any, Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from app.api.dependencies import get_fx_client
from app.core.database import get_db
from app.core.errors import (
    AppException,
    InternalException,
    UpstreamException,
    UpstreamRateLimitedException,
    ValidationException,
)
from app.services.currency_catalog import list_currencies
from app.services.fx_client import (
    SERIES_KEY,
    SPOT_KEY,
    AlphaVantageClient,
    FxMalformed,
    FxProviderError,
    FxRateLimited,
    FxResult,
    HistoricalSeries,
    SpotRate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/currency", tags=["currency"])

RATE_LIMIT_MESSAGE = "API rate limit exceeded. Please try again later."
INVALID_RATE_MESSAGE = "Failed to fetch valid exchange rate from provider."
INVALID_HISTORY_MESSAGE = "Failed to fetch valid historical rates from provider."
NO_HISTORY_MESSAGE = (
    "No historical data available for this currency pair. "
    "This might be due to API limitations or invalid currency codes."
)

_CURRENCY_CODE = re.compile(r"^[A-Z]{3}$")


def parse_pair(from_code: Optional[str], to_code: Optional[str]) -> tuple[str, str]:
    """Check both codes are present and look like ISO 4217; returns them uppercased"""
    from_code = (from_code or "").strip().upper()
    to_code = (to_code or "").strip().upper()
    if not from_code or not to_code:
        raise ValidationException("Missing from or to currency")
    for code in (from_code, to_code):
        if not _CURRENCY_CODE.match(code):
            raise ValidationException(f"Invalid currency code: {code}")
    return from_code, to_code


def unwrap(result: FxResult, malformed_message: str, missing_message: Optional[str] = None):
    """Turn a soft-failure variant into the matching API error; return the data otherwise"""
    if isinstance(result, FxProviderError):
        raise UpstreamException(result.message)
    if isinstance(result, FxRateLimited):
        raise UpstreamRateLimitedException(RATE_LIMIT_MESSAGE, details={"notice": result.notice})
    if isinstance(result, FxMalformed):
        if result.missing and missing_message:
            raise UpstreamException(missing_message)
        raise UpstreamException(malformed_message, details={"reason": result.reason})
    return result.data


def rate_payload(spot: SpotRate) -> dict[str, Any]:
    return {
        "from": spot.from_code,
        "from_name": spot.from_name,
        "to": spot.to_code,
        "to_name": spot.to_name,
        "rate": spot.rate,
        "bid": spot.bid,
        "ask": spot.ask,
        "last_refreshed": spot.last_refreshed,
        "time_zone": spot.time_zone,
        # Provider block kept as-is for clients reading "5. Exchange Rate"
        SPOT_KEY: spot.raw,
    }


def history_payload(series: HistoricalSeries) -> dict[str, Any]:
    return {
        "from": series.from_code,
        "to": series.to_code,
        "last_refreshed": series.last_refreshed,
        "time_zone": series.time_zone,
        "series": [
            {
                "date": point.date,
                "open": point.open,
                "high": point.high,
                "low": point.low,
                "close": point.close,
            }
            for point in series.points
        ],
        SERIES_KEY: series.raw,
    }


@router.get("/test")
async def test_api(fx_client: AlphaVantageClient = Depends(get_fx_client)):
    """Smoke test against the provider with USD to EUR"""
    try:
        result = await fx_client.get_spot_rate("USD", "EUR")
        spot = unwrap(result, "No exchange rate found in response")
    except AppException:
        raise
    except Exception as e:
        logger.exception("API test error")
        raise InternalException("API Test Failed", details={"reason": str(e)})

    return {
        "success": True,
        "message": "API is working correctly",
        "test_rate": f"USD to EUR: {spot.rate}",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/rate")
async def fetch_exchange_rate(
    from_code: Optional[str] = Query(None, alias="from"),
    to_code: Optional[str] = Query(None, alias="to"),
    fx_client: AlphaVantageClient = Depends(get_fx_client),
):
    """Current exchange rate between two currencies"""
    from_code, to_code = parse_pair(from_code, to_code)
    result = await fx_client.get_spot_rate(from_code, to_code)
    return rate_payload(unwrap(result, INVALID_RATE_MESSAGE))


@router.get("/history")
async def fetch_historical_rates(
    from_code: Optional[str] = Query(None, alias="from"),
    to_code: Optional[str] = Query(None, alias="to"),
    fx_client: AlphaVantageClient = Depends(get_fx_client),
):
    """Recent daily open/high/low/close quotes, oldest first"""
    from_code, to_code = parse_pair(from_code, to_code)
    result = await fx_client.get_historical_series(from_code, to_code)
    return history_payload(unwrap(result, INVALID_HISTORY_MESSAGE, NO_HISTORY_MESSAGE))


@router.get("/supported")
def get_supported_currencies(db: Session = Depends(get_db)):
    """Supported-currency catalog; an empty catalog is an empty list"""
    return list_currencies(db)
