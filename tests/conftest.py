"""Pytest fixtures and helpers for openapi-mcp-adapter tests."""
from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any, Dict, List

import pytest

from openapi_adapter.models import HTTPResponse, RequestConfig

FIXTURES = Path(__file__).resolve().parent / "fixtures"

_PETSTORE = json.loads((FIXTURES / "petstore.json").read_text(encoding="utf-8"))


class RecordingHTTPClient:
    """HTTPClient double that records every request and replies with ``data``."""

    def __init__(self, data: Any = None) -> None:
        self.data = {} if data is None else data
        self.requests: List[RequestConfig] = []

    @property
    def last(self) -> RequestConfig:
        return self.requests[-1]

    async def request(self, config: RequestConfig) -> HTTPResponse:
        self.requests.append(config)
        return HTTPResponse(data=self.data)


@pytest.fixture
def petstore() -> Dict[str, Any]:
    """A fresh copy of the pet store document for each test."""
    return copy.deepcopy(_PETSTORE)


@pytest.fixture
def http_client() -> RecordingHTTPClient:
    return RecordingHTTPClient()
