import logging
from typing import Any, Dict, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from errors import DecodeError, InvalidEndpoint, TransportError

logger = logging.getLogger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


def decode_error_from(exc: ValidationError, provider: Optional[str] = None) -> DecodeError:
    """Build a DecodeError naming the first offending field and value."""
    first = exc.errors()[0]
    field = ".".join(str(part) for part in first["loc"]) or "<root>"
    value = None if first["type"] == "missing" else first.get("input")
    return DecodeError(field, value, provider, reason=first["msg"])


class ProviderClient:
    """Base class for the JSON providers consumed by the service.

    A shared ``httpx.AsyncClient`` can be injected; otherwise a short-lived
    client is opened per request. No retries are made here.
    """

    name = "provider"

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    async def _get_json(self, params: Dict[str, Any]) -> Any:
        params = dict(params)
        if self.api_key:
            params["appid"] = self.api_key

        try:
            if self._client is not None:
                response = await self._client.get(
                    self.base_url, params=params, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(self.base_url, params=params)
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            raise InvalidEndpoint(
                f"Cannot build {self.name} request for {self.base_url}: {e}", self.name
            ) from e
        except httpx.TransportError as e:
            logger.warning(f"{self.name} request failed: {e!r}")
            raise TransportError(f"{self.name} request failed: {e!r}", self.name) from e
        except httpx.DecodingError as e:
            raise DecodeError("<body>", None, self.name, reason=f"undecodable content: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"{self.name} request failed: {e!r}")
            raise TransportError(f"{self.name} request failed: {e!r}", self.name) from e

        if response.status_code == 400:
            raise InvalidEndpoint(
                f"{self.name} rejected the request: {response.text[:200]}", self.name
            )
        if response.is_error:
            logger.warning(
                f"{self.name} returned HTTP {response.status_code}: {response.text[:200]}"
            )
            raise TransportError(
                f"{self.name} returned HTTP {response.status_code}",
                self.name,
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise DecodeError(
                "<body>", response.text[:200], self.name, reason="response is not JSON"
            ) from e

    def _decode(self, model: Type[ModelT], payload: Any) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            error = decode_error_from(e, self.name)
            logger.error(f"Could not decode {self.name} response: {error}")
            raise error from e
