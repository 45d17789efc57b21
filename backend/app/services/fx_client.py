"""
Alpha Vantage client.
Owns: Spot-rate and daily-series requests and decoding of the provider's replies.

Alpha Vantage answers HTTP 200 for rate limits and bad requests too; the
body is classified here, once, into one of the result variants below so no
caller has to probe payload keys itself.
"""

import logging
import math
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

import httpx

from app.core.errors import UpstreamException, UpstreamNotConfiguredException

logger = logging.getLogger(__name__)

SPOT_KEY = "Realtime Currency Exchange Rate"
SERIES_KEY = "Time Series FX (Daily)"
SERIES_META_KEY = "Meta Data"
ERROR_KEY = "Error Message"
# Rate limits arrive under "Note" (older) or "Information" (newer); the latter
# also carries premium-endpoint and demo-key notices, told apart by wording
NOTE_KEY = "Note"
INFORMATION_KEY = "Information"
_RATE_LIMIT_WORDING = re.compile(
    r"rate limit|call frequency|(calls|requests) per (minute|day)", re.IGNORECASE
)


@dataclass
class SpotRate:
    from_code: str
    to_code: str
    rate: float
    from_name: Optional[str] = None
    to_name: Optional[str] = None
    bid: Optional[float] = None
    ask: Optional[float] = None
    last_refreshed: Optional[str] = None
    time_zone: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class DailyQuote:
    date: str
    open: float
    high: float
    low: float
    close: float


@dataclass
class HistoricalSeries:
    from_code: str
    to_code: str
    points: list[DailyQuote]
    last_refreshed: Optional[str] = None
    time_zone: Optional[str] = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class FxSuccess:
    data: Union[SpotRate, HistoricalSeries]


@dataclass
class FxRateLimited:
    notice: str


@dataclass
class FxProviderError:
    message: str


@dataclass
class FxMalformed:
    reason: str
    # True when the data block is absent altogether rather than unreadable
    missing: bool = False


FxResult = Union[FxSuccess, FxRateLimited, FxProviderError, FxMalformed]


def _to_float(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    # "NaN" and "inf" parse but cannot be rendered as JSON
    return number if math.isfinite(number) else None


def _soft_failure(payload: dict[str, Any]) -> Optional[FxResult]:
    # An explicit error wins over a rate-limit notice when both are present
    if payload.get(ERROR_KEY):
        return FxProviderError(message=str(payload[ERROR_KEY]))
    if payload.get(NOTE_KEY):
        return FxRateLimited(notice=str(payload[NOTE_KEY]))
    information = payload.get(INFORMATION_KEY)
    if information:
        if _RATE_LIMIT_WORDING.search(str(information)):
            return FxRateLimited(notice=str(information))
        # Premium-endpoint and demo-key notices: retrying will not help
        return FxProviderError(message=str(information))
    return None


def decode_spot_payload(payload: Any, from_code: str, to_code: str) -> FxResult:
    """Classify a CURRENCY_EXCHANGE_RATE body"""
    if not isinstance(payload, dict):
        return FxMalformed(reason="Response body is not a JSON object")

    failure = _soft_failure(payload)
    if failure is not None:
        return failure

    block = payload.get(SPOT_KEY)
    if not isinstance(block, dict):
        return FxMalformed(reason="No exchange rate found in response", missing=True)

    rate = _to_float(block.get("5. Exchange Rate"))
    if rate is None:
        return FxMalformed(reason="No exchange rate found in response")

    return FxSuccess(
        data=SpotRate(
            from_code=block.get("1. From_Currency Code") or from_code,
            from_name=block.get("2. From_Currency Name"),
            to_code=block.get("3. To_Currency Code") or to_code,
            to_name=block.get("4. To_Currency Name"),
            rate=rate,
            last_refreshed=block.get("6. Last Refreshed"),
            time_zone=block.get("7. Time Zone"),
            bid=_to_float(block.get("8. Bid Price")),
            ask=_to_float(block.get("9. Ask Price")),
            raw=block,
        )
    )


def decode_series_payload(payload: Any, from_code: str, to_code: str) -> FxResult:
    """Classify an FX_DAILY body"""
    if not isinstance(payload, dict):
        return FxMalformed(reason="Response body is not a JSON object")

    failure = _soft_failure(payload)
    if failure is not None:
        return failure

    series = payload.get(SERIES_KEY)
    if not isinstance(series, dict):
        return FxMalformed(reason="No time series found in response", missing=True)

    points = []
    for day, quote in series.items():
        if not isinstance(quote, dict):
            return FxMalformed(reason=f"Unreadable quote for {day}")
        values = [_to_float(quote.get(key)) for key in ("1. open", "2. high", "3. low", "4. close")]
        if any(value is None for value in values):
            return FxMalformed(reason=f"Unreadable quote for {day}")
        points.append(DailyQuote(day, *values))
    # ISO dates sort chronologically as strings
    points.sort(key=lambda point: point.date)

    meta = payload.get(SERIES_META_KEY) or {}
    return FxSuccess(
        data=HistoricalSeries(
            from_code=meta.get("2. From Symbol") or from_code,
            to_code=meta.get("3. To Symbol") or to_code,
            points=points,
            last_refreshed=meta.get("5. Last Refreshed"),
            time_zone=meta.get("6. Time Zone"),
            raw=series,
        )
    )


class AlphaVantageClient:
    """
    Async client for the Alpha Vantage query API.

    One instance lives for the whole process (see create_app); the underlying
    httpx client is created lazily and closed on shutdown.
    """

    def __init__(
        self,
        api_key: Optional[str],
        base_url: str = "https://www.alphavantage.co/query",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._base_url = base_url
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()

    async def get_spot_rate(self, from_code: str, to_code: str) -> FxResult:
        logger.info(f"Fetching exchange rate: {from_code} to {to_code}")
        payload = await self._query(
            {
                "function": "CURRENCY_EXCHANGE_RATE",
                "from_currency": from_code,
                "to_currency": to_code,
            }
        )
        result = decode_spot_payload(payload, from_code, to_code)
        self._log_soft_failure(result, from_code, to_code)
        return result

    async def get_historical_series(self, from_code: str, to_code: str) -> FxResult:
        logger.info(f"Fetching historical rates: {from_code} to {to_code}")
        payload = await self._query(
            {
                "function": "FX_DAILY",
                "from_symbol": from_code,
                "to_symbol": to_code,
                "outputsize": "compact",
            }
        )
        result = decode_series_payload(payload, from_code, to_code)
        self._log_soft_failure(result, from_code, to_code)
        return result

    async def _query(self, params: dict[str, str]) -> Any:
        """
        Run one GET against the query endpoint and return the parsed JSON.

        Raises:
            UpstreamNotConfiguredException: no API key
            UpstreamException: timeout, connection failure, HTTP error, non-JSON body
        """
        if not self.is_configured:
            raise UpstreamNotConfiguredException("Alpha Vantage API key is not configured")

        client = self._get_client()
        try:
            response = await client.get(self._base_url, params={**params, "apikey": self._api_key})
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error(f"Alpha Vantage request timed out: {e}")
            raise UpstreamException("Exchange rate provider timed out")
        except httpx.HTTPStatusError as e:
            logger.error(f"Alpha Vantage returned HTTP {e.response.status_code}")
            raise UpstreamException(
                f"Exchange rate provider error: {e.response.status_code}",
                details={"status_code": e.response.status_code},
            )
        except httpx.RequestError as e:
            logger.error(f"Alpha Vantage request failed: {e}")
            raise UpstreamException("Failed to connect to exchange rate provider")
        except ValueError:
            logger.error("Alpha Vantage returned a non-JSON body")
            raise UpstreamException("Exchange rate provider returned an unreadable response")

    @staticmethod
    def _log_soft_failure(result: FxResult, from_code: str, to_code: str) -> None:
        if isinstance(result, FxRateLimited):
            logger.warning(f"Alpha Vantage rate limit hit for {from_code}/{to_code}: {result.notice}")
        elif isinstance(result, FxProviderError):
            logger.warning(f"Alpha Vantage error for {from_code}/{to_code}: {result.message}")
        elif isinstance(result, FxMalformed):
            logger.warning(f"Alpha Vantage response for {from_code}/{to_code} unusable: {result.reason}")
