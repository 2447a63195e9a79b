"""MCP server setup for the OpenAPI adapter."""

import copy
import logging
from typing import Any, Dict, List
from urllib.parse import urljoin

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from fastmcp.tools import Tool, ToolResult

from .config import Settings
from .converter import Converter, ToolsCaller
from .http_client import HttpxClient
from .models import ToolDescriptor
from .openapi import OpenAPILoader, server_url

logger = logging.getLogger(__name__)


class OpenAPITool(Tool):
    """Tool that forwards its raw arguments to the converter's caller."""

    def __init__(self, caller: ToolsCaller, descriptor: ToolDescriptor):
        super().__init__(
            name=descriptor.name,
            description=descriptor.description,
            parameters=tool_parameters(descriptor),
        )
        self._caller = caller

    async def run(self, arguments: Dict[str, Any]) -> ToolResult:
        result = await self._caller({"params": {"name": self.name, "arguments": arguments}})
        if result.is_error:
            raise ToolError(f"Error: {result.message}")
        data = result.tool_result
        if isinstance(data, str):
            return ToolResult(content=data)
        if not isinstance(data, dict):
            data = {"result": data}
        return ToolResult(structured_content=data)


async def build_server(settings: Settings) -> tuple[FastMCP, object | None]:
    loader = OpenAPILoader(
        cache_seconds=settings.adapter_openapi_cache_seconds,
        timeout_seconds=settings.api_timeout_seconds,
    )
    document = await loader.load(settings.openapi_spec_source)
    converter = build_converter(settings, document)

    mcp = FastMCP(settings.service_name, instructions=_instructions(document))
    app = _get_http_app(mcp, settings)
    _attach_healthcheck(app)

    caller = converter.get_tools_caller()
    for tool in converter.get_tools_list():
        mcp.add_tool(OpenAPITool(caller, tool))
        logger.info("Registered tool: %s", tool.name)

    return mcp, app


def build_converter(settings: Settings, document: Dict[str, Any]) -> Converter:
    base_url = settings.api_base_url or server_url(document)
    source = settings.openapi_spec_source
    if base_url and "://" not in base_url and source.startswith(("http://", "https://")):
        base_url = urljoin(source, base_url)
    if not base_url:
        logger.warning("No API base URL configured and the spec declares no servers")

    http_client = HttpxClient(
        base_url=base_url,
        timeout_seconds=settings.api_timeout_seconds,
        verify_ssl=settings.api_verify_ssl,
    )
    converter = Converter(
        http_client,
        collision_policy=settings.adapter_tool_name_collision,
        tool_allowlist=settings.tool_allowlist(),
        max_concurrency=settings.adapter_max_concurrency,
    )
    converter.load(document)
    return converter


def tool_parameters(tool: ToolDescriptor) -> Dict[str, Any]:
    """Return the tool's input schema with a JSON Schema ``required`` list.

    Property fragments are passed through as-is, so formats, enums and
    nested items survive.
    """
    parameters = copy.deepcopy(tool.input_schema)
    properties = parameters.get("properties") or {}
    required: List[str] = [
        name
        for name, prop in properties.items()
        if isinstance(prop, dict) and prop.get("required") is True
    ]
    if required:
        parameters["required"] = required
    return parameters


def _attach_healthcheck(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return

    async def healthcheck(_request):  # type: ignore[no-untyped-def]
        from starlette.responses import JSONResponse

        return JSONResponse({"status": "ok"})

    app.add_route("/health", healthcheck, methods=["GET"])


def _instructions(document: Dict[str, Any]) -> str:
    info = document.get("info") or {}
    title = info.get("title") or "the upstream API"
    return (
        f"Tools generated from the OpenAPI description of {title}. "
        "Each tool issues one HTTP request and returns the decoded response."
    )


def _get_http_app(mcp: FastMCP, settings: Settings):  # type: ignore[no-untyped-def]
    transport = settings.adapter_transport.lower()
    if transport in {"http"}:
        app = mcp.http_app(transport="http", stateless_http=True, json_response=True)
        _attach_cors(app)
        return app
    if transport in {"streamable-http", "streamablehttp"}:
        app = mcp.http_app(
            transport="streamable-http", stateless_http=True, json_response=True
        )
        _attach_cors(app)
        return app
    if transport in {"sse"}:
        app = mcp.http_app(transport="sse")
        _attach_cors(app)
        return app
    return None


def _attach_cors(app) -> None:  # type: ignore[no-untyped-def]
    if not app:
        return
    from starlette.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
