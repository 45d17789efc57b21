"""
Currency fun facts from Gemini.

Best effort by contract: generate() reports provider trouble as a
ProviderFailure value, and get_fun_fact() turns any failure into a
templated fact. Callers always get a FunFact back.
"""

import json
import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional, Union

import httpx

logger = logging.getLogger(__name__)

FALLBACK_EMOJI = "💱"

PROMPT_TEMPLATE = """
Generate a fun fact about the relationship between {from_code} and {to_code} currencies.
Return the response in this exact JSON format:

{{
  "title": "A catchy title about the currencies",
  "fact": "An interesting fact about the relationship between these currencies",
  "historical_note": "A brief historical context or interesting historical fact",
  "emoji": "A relevant emoji for the currencies"
}}

Keep the fact concise, interesting, and educational. Focus on economic, historical, or cultural aspects.
"""

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_FIELDS = ("title", "fact", "historical_note", "emoji")


@dataclass
class FunFact:
    title: str
    fact: str
    historical_note: str
    emoji: str

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


@dataclass
class ProviderFailure:
    reason: str
    # What the model said, when it answered but not in the expected shape
    text: Optional[str] = None


FunFactResult = Union[FunFact, ProviderFailure]


def parse_fun_fact(text: str) -> Optional[FunFact]:
    """Pull the first {...} block out of free-form model output"""
    match = _JSON_OBJECT.search(text or "")
    if not match:
        return None
    try:
        parsed = json.loads(match.group(0))
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    values = [parsed.get(name) for name in _FIELDS]
    if not all(isinstance(value, str) and value.strip() for value in values):
        return None
    return FunFact(*(value.strip() for value in values))


def fallback_fun_fact(from_code: str, to_code: str, failure: ProviderFailure) -> FunFact:
    if failure.text is not None:
        return FunFact(
            title=f"Fun Fact: {from_code} & {to_code}",
            fact=failure.text.strip()
            or f"Interesting relationship between {from_code} and {to_code} currencies",
            historical_note="Currency exchange has fascinating historical roots.",
            emoji=FALLBACK_EMOJI,
        )
    return FunFact(
        title=f"Currency Insight: {from_code} & {to_code}",
        fact=f"The exchange rate between {from_code} and {to_code} reflects global economic dynamics.",
        historical_note="Currency exchange rates have evolved significantly over time.",
        emoji=FALLBACK_EMOJI,
    )


def _response_text(body: Any) -> str:
    parts = body["candidates"][0]["content"]["parts"]
    return "".join(part.get("text", "") for part in parts).strip()


class FunFactGenerator:
    def __init__(
        self,
        api_key: Optional[str],
        model: str = "gemini-1.5-flash",
        base_url: str = "https://generativelanguage.googleapis.com/v1beta",
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

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

    async def generate(self, from_code: str, to_code: str) -> FunFactResult:
        if not self._api_key:
            return ProviderFailure(reason="Gemini API key not configured")

        client = self._get_client()
        url = f"{self._base_url}/models/{self._model}:generateContent"
        request_body = {
            "contents": [
                {"parts": [{"text": PROMPT_TEMPLATE.format(from_code=from_code, to_code=to_code)}]}
            ]
        }
        try:
            response = await client.post(
                url,
                json=request_body,
                headers={"x-goog-api-key": self._api_key},
            )
            response.raise_for_status()
            text = _response_text(response.json())
        except httpx.HTTPError as e:
            return ProviderFailure(reason=f"Gemini request failed: {e}")
        except (ValueError, KeyError, IndexError, TypeError, AttributeError) as e:
            return ProviderFailure(reason=f"Unexpected Gemini response: {e!r}")

        fact = parse_fun_fact(text)
        if fact is None:
            return ProviderFailure(reason="Gemini reply had no usable JSON", text=text)
        return fact

    async def get_fun_fact(self, from_code: str, to_code: str) -> FunFact:
        try:
            result = await self.generate(from_code, to_code)
        except Exception:
            # Fun facts are decoration; nothing here may fail the request
            logger.exception(f"Fun fact generation crashed for {from_code}/{to_code}")
            result = ProviderFailure(reason="unexpected error")

        if isinstance(result, FunFact):
            return result

        logger.warning(f"Using fallback fun fact for {from_code}/{to_code}: {result.reason}")
        return fallback_fun_fact(from_code, to_code, result)
