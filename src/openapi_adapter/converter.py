"""OpenAPI to tool converter."""

from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from .dispatcher import RequestDispatcher
from .http_client import HTTPClient
from .indexer import APIIndexer, CollisionPolicy
from .models import OperationDescriptor, ToolCallResult, ToolDescriptor
from .openapi import SpecResolver
from .schema import ToolSchemaBuilder

logger = logging.getLogger(__name__)

ToolsCaller = Callable[[Mapping[str, Any]], Awaitable[ToolCallResult]]


class Converter:
    """
    Expose the operations of an OpenAPI document as callable tools.

    Usage:
        converter = Converter(HttpxClient(base_url="https://api.example.com"))
        converter.load(document)
        tools = converter.get_tools_list()
        call = converter.get_tools_caller()
        result = await call({"params": {"name": "ListPets", "arguments": {"limit": 10}}})

    When ``tool_allowlist`` is set, operations outside it are neither listed
    nor callable.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        resolver: Optional[SpecResolver] = None,
        collision_policy: CollisionPolicy = CollisionPolicy.ERROR,
        tool_allowlist: Optional[Iterable[str]] = None,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.http_client = http_client
        self.resolver = resolver or SpecResolver()
        self.indexer = APIIndexer(collision_policy)
        self.schema_builder = ToolSchemaBuilder()
        self.tool_allowlist = set(tool_allowlist or ())
        self.max_concurrency = max_concurrency
        self.document: Optional[Dict[str, Any]] = None
        self._operations: Optional[Mapping[str, OperationDescriptor]] = None

    def load(self, document: Dict[str, Any]) -> None:
        resolved = self.resolver.resolve(document)
        operations = self.indexer.index(resolved)
        if self.tool_allowlist:
            operations = MappingProxyType(
                {name: op for name, op in operations.items() if name in self.tool_allowlist}
            )
        self._operations = operations
        self.document = resolved
        logger.info("Loaded %s tools", len(operations))

    @property
    def operations(self) -> Mapping[str, OperationDescriptor]:
        if self._operations is None:
            raise RuntimeError("Converter.load() must be called before use")
        return self._operations

    def get_tools_list(self) -> List[ToolDescriptor]:
        return self.schema_builder.build_list(self.operations)

    def get_tools_caller(self) -> ToolsCaller:
        dispatcher = RequestDispatcher(
            self.operations, self.http_client, max_concurrency=self.max_concurrency
        )
        return dispatcher.dispatch
