from typing import Any, List, Optional

import httpx
import pytest

from models import Config, ProviderConfig, ServerConfig
from payloads import AIR_QUALITY_URL, ATTRACTIONS_URL, GEOCODING_URL, WEATHER_URL


def _base_url(url: httpx.URL) -> str:
    return f"{url.scheme}://{url.host}{url.path}"


class ProviderMock:
    """Answer httpx requests by URL (query string ignored), like requests_mock."""

    def __init__(self) -> None:
        self._routes: dict = {}
        self.requests: List[httpx.Request] = []

    def get(
        self,
        url: str,
        json: Any = None,
        status_code: int = 200,
        text: Optional[str] = None,
        exc: Optional[Exception] = None,
    ) -> None:
        self._routes[url] = (json, status_code, text, exc)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = _base_url(request.url)
        if url not in self._routes:
            raise httpx.ConnectError(f"No mock registered for {url}", request=request)
        json, status_code, text, exc = self._routes[url]
        if exc is not None:
            raise exc
        if text is not None:
            return httpx.Response(status_code, text=text)
        return httpx.Response(status_code, json=json)

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def calls_to(self, url: str) -> List[httpx.Request]:
        return [r for r in self.requests if _base_url(r.url) == url]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self._handle))


@pytest.fixture
def provider_mock():
    return ProviderMock()


@pytest.fixture
def config():
    return Config(
        server=ServerConfig(refresh_interval_minutes=1),
        provider=ProviderConfig(
            api_key="test-key",
            weather_url=WEATHER_URL,
            air_quality_url=AIR_QUALITY_URL,
            geocoding_url=GEOCODING_URL,
            attractions_url=ATTRACTIONS_URL,
        ),
    )
