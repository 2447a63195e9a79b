"""HTTP transport used to execute dispatched tool calls."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, Protocol, runtime_checkable

import httpx

from .errors import TransportError
from .models import HTTPResponse, RequestConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class HTTPClient(Protocol):
    async def request(self, config: RequestConfig) -> HTTPResponse:
        ...


def join_url(base_url: Optional[str], url: str) -> str:
    """Join ``base_url`` and ``url`` with exactly one slash between them."""
    if not base_url or url.startswith(("http://", "https://")):
        return url
    if not url:
        return base_url
    return f"{base_url.rstrip('/')}/{url.lstrip('/')}"


def stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (dict, list)):
        return json.dumps(value)
    return str(value)


class HttpxClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout_seconds: float = 30,
        verify_ssl: bool = True,
        default_headers: Optional[Dict[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url
        self.timeout_seconds = timeout_seconds
        self.verify_ssl = verify_ssl
        self.default_headers = dict(default_headers or {})
        self.transport = transport

    def build_url(self, url: str) -> str:
        return join_url(self.base_url, url)

    async def request(self, config: RequestConfig) -> HTTPResponse:
        method = config.method.upper()
        url = self.build_url(config.url)
        supplied = {k: stringify(v) for k, v in config.headers.items() if v is not None}
        headers = {**self.default_headers, **supplied}
        params = {k: v for k, v in config.params.items() if v is not None}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds,
                verify=self.verify_ssl,
                transport=self.transport,
            ) as client:
                response = await client.request(
                    method,
                    url,
                    headers=headers,
                    params=params,
                    json=config.data or None,
                )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise TransportError(
                f"{exc.response.status_code} {exc.response.reason_phrase} for {method} {url}", exc
            ) from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{type(exc).__name__} for {method} {url}: {exc}", exc) from exc

        logger.debug("%s %s -> %s", method, url, response.status_code)
        return HTTPResponse(data=self._parse(response), status_code=response.status_code)

    def _parse(self, response: httpx.Response) -> Any:
        if not response.content:
            return {"status": "ok"}
        try:
            return response.json()
        except ValueError:
            return response.text
