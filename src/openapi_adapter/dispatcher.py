"""Turn tool invocations back into HTTP requests."""

from __future__ import annotations

import asyncio
import logging
import re
from typing import Any, Dict, Mapping, Optional, Tuple
from urllib.parse import quote

from .errors import (
    AdapterError,
    ErrorKind,
    InvalidRequestError,
    SubstitutionError,
    UnknownToolError,
)
from .http_client import HTTPClient, stringify
from .logging import redact_payload
from .models import OperationDescriptor, ParameterLocation, RequestConfig, ToolCallResult

logger = logging.getLogger(__name__)

# each argument lands in exactly one bucket, first match wins
BUCKET_PRECEDENCE = (
    ParameterLocation.PATH,
    ParameterLocation.HEADER,
    ParameterLocation.QUERY,
    ParameterLocation.BODY,
)

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


class RequestDispatcher:
    def __init__(
        self,
        operations: Mapping[str, OperationDescriptor],
        http_client: HTTPClient,
        max_concurrency: Optional[int] = None,
    ) -> None:
        self.operations = operations
        self.http_client = http_client
        self.semaphore = asyncio.Semaphore(max_concurrency) if max_concurrency else None

    async def dispatch(self, request: Mapping[str, Any]) -> ToolCallResult:
        """Execute a ``{"params": {"name": ..., "arguments": {...}}}`` invocation.

        Never raises: every failure is returned as an error result tagged
        with its ErrorKind.
        """
        try:
            name, arguments = self._unpack(request)
        except AdapterError as exc:
            logger.warning("Rejected tool invocation: %s", exc)
            return ToolCallResult.failure(exc.kind, exc.message)
        return await self.call(name, arguments)

    async def call(self, name: str, arguments: Optional[Mapping[str, Any]] = None) -> ToolCallResult:
        try:
            if arguments is not None and not isinstance(arguments, Mapping):
                raise InvalidRequestError("Tool arguments must be an object")
            arguments = dict(arguments or {})
            logger.info("Dispatching tool=%s arguments=%s", name, redact_payload(arguments))
            config = self.build_request(name, arguments)
            if self.semaphore is None:
                response = await self.http_client.request(config)
            else:
                async with self.semaphore:
                    response = await self.http_client.request(config)
            return ToolCallResult.success(response.data)
        except AdapterError as exc:
            logger.error("Tool call failed: tool=%s kind=%s error=%s", name, exc.kind.value, exc)
            return ToolCallResult.failure(exc.kind, exc.message)
        except Exception as exc:
            logger.exception("Unexpected error while calling tool=%s", name)
            return ToolCallResult.failure(ErrorKind.INTERNAL, str(exc) or type(exc).__name__)

    def build_request(self, name: str, arguments: Dict[str, Any]) -> RequestConfig:
        descriptor = self.operations.get(name)
        if descriptor is None:
            raise UnknownToolError(f"Unknown tool {name!r}")

        buckets: Dict[ParameterLocation, Dict[str, Any]] = {
            location: {} for location in ParameterLocation
        }
        for arg_name, value in arguments.items():
            location = self._bucket_for(descriptor, arg_name)
            if location is None:
                logger.debug("Ignoring undeclared argument %s for tool=%s", arg_name, name)
                continue
            buckets[location][arg_name] = value

        return RequestConfig(
            method=descriptor.method,
            url=self._substitute_path(descriptor.path, buckets[ParameterLocation.PATH]),
            headers=buckets[ParameterLocation.HEADER],
            params=buckets[ParameterLocation.QUERY],
            data=buckets[ParameterLocation.BODY],
        )

    def _unpack(self, request: Mapping[str, Any]) -> Tuple[str, Any]:
        params = request.get("params") if isinstance(request, Mapping) else None
        if not isinstance(params, Mapping):
            raise InvalidRequestError("Tool invocation is missing 'params'")
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise InvalidRequestError("Tool invocation is missing a tool name")
        return name, params.get("arguments")

    def _bucket_for(
        self, descriptor: OperationDescriptor, arg_name: str
    ) -> Optional[ParameterLocation]:
        for location in BUCKET_PRECEDENCE:
            if arg_name in descriptor.partition(location):
                return location
        return None

    def _substitute_path(self, template: str, path_args: Dict[str, Any]) -> str:
        path = template
        for arg_name, value in path_args.items():
            if value is None:
                continue
            path = path.replace(f"{{{arg_name}}}", quote(stringify(value), safe=""))
        missing = _PLACEHOLDER.findall(path)
        if missing:
            raise SubstitutionError(
                f"Missing path parameter(s) {', '.join(missing)} for {template}"
            )
        return path
