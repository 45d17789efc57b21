import os

# app.main builds a module-level app at import time, which needs these
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENABLE_SCHEDULER", "false")

import httpx
import pytest
from fastapi.testclient import TestClient

from app.core.config import Settings
from app.main import create_app
from app.services.fun_fact_service import FunFactGenerator
from app.services.fx_client import AlphaVantageClient


@pytest.fixture
def settings() -> Settings:
    return Settings(
        DATABASE_URL="sqlite://",
        SECRET_KEY="test-secret-key",
        BCRYPT_ROUNDS=4,
        ENABLE_SCHEDULER=False,
        ALPHA_VANTAGE_API_KEY="test-av-key",
        GEMINI_API_KEY=None,
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def db(app):
    session = app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def fx_upstream(app):
    """
    Point the app's Alpha Vantage client at a fake transport.

    Call the returned function with a JSON body (or an exception to raise)
    before making a request; every upstream request is recorded.
    """
    state = {"body": None, "status": 200, "error": None, "requests": []}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        if state["error"] is not None:
            raise state["error"]
        return httpx.Response(state["status"], json=state["body"])

    app.state.fx_client = AlphaVantageClient(
        api_key="test-av-key",
        base_url="https://av.test/query",
        transport=httpx.MockTransport(handler),
    )

    def respond(body=None, status=200, error=None):
        state.update(body=body, status=status, error=error)
        return state

    return respond


@pytest.fixture
def gemini_upstream(app):
    state = {"body": None, "status": 200, "error": None, "requests": []}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        if state["error"] is not None:
            raise state["error"]
        return httpx.Response(state["status"], json=state["body"])

    app.state.fun_fact_generator = FunFactGenerator(
        api_key="test-gemini-key",
        base_url="https://gemini.test/v1beta",
        transport=httpx.MockTransport(handler),
    )

    def respond(body=None, status=200, error=None):
        state.update(body=body, status=status, error=error)
        return state

    return respond


def spot_payload(rate="0.9215", from_code="USD", to_code="EUR"):
    return {
        "Realtime Currency Exchange Rate": {
            "1. From_Currency Code": from_code,
            "2. From_Currency Name": "United States Dollar",
            "3. To_Currency Code": to_code,
            "4. To_Currency Name": "Euro",
            "5. Exchange Rate": rate,
            "6. Last Refreshed": "2024-05-03 14:05:01",
            "7. Time Zone": "UTC",
            "8. Bid Price": "0.9214",
            "9. Ask Price": "0.9216",
        }
    }


def series_payload():
    return {
        "Meta Data": {
            "1. Information": "Forex Daily Prices (open, high, low, close)",
            "2. From Symbol": "USD",
            "3. To Symbol": "EUR",
            "4. Output Size": "Compact",
            "5. Last Refreshed": "2024-05-03 14:00:00",
            "6. Time Zone": "UTC",
        },
        "Time Series FX (Daily)": {
            "2024-05-03": {"1. open": "0.9330", "2. high": "0.9340", "3. low": "0.9290", "4. close": "0.9300"},
            "2024-05-01": {"1. open": "0.9370", "2. high": "0.9380", "3. low": "0.9320", "4. close": "0.9350"},
            "2024-05-02": {"1. open": "0.9350", "2. high": "0.9360", "3. low": "0.9310", "4. close": "0.9330"},
        },
    }


RATE_LIMIT_PAYLOAD = {
    "Note": "Thank you for using Alpha Vantage! Our standard API call frequency is 5 calls per minute."
}
ERROR_PAYLOAD = {"Error Message": "Invalid API call. Please retry or visit the documentation."}
