"""OpenAPI spec loader and reference resolver."""

from __future__ import annotations

import copy
import json
import logging
import time
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
import yaml

from .errors import ResolutionError


logger = logging.getLogger(__name__)

HTTP_METHODS = frozenset({"get", "put", "post", "delete", "options", "head", "patch", "trace"})

# parameter keywords that Swagger 2.0 puts beside the parameter instead of in a schema
_SWAGGER2_SCHEMA_KEYS = (
    "type",
    "format",
    "items",
    "enum",
    "default",
    "minimum",
    "maximum",
    "exclusiveMinimum",
    "exclusiveMaximum",
    "minLength",
    "maxLength",
    "pattern",
    "minItems",
    "maxItems",
    "uniqueItems",
    "multipleOf",
)


class OpenAPILoader:
    def __init__(self, cache_seconds: int = 3600, timeout_seconds: float = 30) -> None:
        self.cache_seconds = cache_seconds
        self.timeout_seconds = timeout_seconds
        self._cache: Dict[str, Tuple[float, Dict[str, Any]]] = {}

    async def load(self, source: str) -> Dict[str, Any]:
        if source.startswith(("http://", "https://")):
            return await self.load_spec(source)
        return self.load_file(source)

    async def load_spec(self, url: str) -> Dict[str, Any]:
        cached = self._cache.get(url)
        if cached and time.time() - cached[0] < self.cache_seconds:
            return cached[1]

        try:
            async with httpx.AsyncClient(timeout=self.timeout_seconds) as client:
                response = await client.get(url)
        except httpx.HTTPError as exc:
            raise ResolutionError(f"Failed to fetch OpenAPI spec {url}: {exc}", exc) from exc
        if response.status_code != 200:
            logger.warning("Failed to fetch OpenAPI spec: %s (%s)", url, response.status_code)
            raise ResolutionError(
                f"Failed to fetch OpenAPI spec {url}: HTTP {response.status_code}"
            )
        data = self.parse_document(response.text)

        self._cache[url] = (time.time(), data)
        return data

    def load_file(self, path: str) -> Dict[str, Any]:
        try:
            text = Path(path).read_text(encoding="utf-8")
        except OSError as exc:
            raise ResolutionError(f"Failed to read OpenAPI spec {path}: {exc}", exc) from exc
        return self.parse_document(text)

    def parse_document(self, text: str) -> Dict[str, Any]:
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            try:
                data = yaml.safe_load(text)
            except yaml.YAMLError as exc:
                raise ResolutionError(f"Invalid OpenAPI document: {exc}", exc) from exc
        if not isinstance(data, dict):
            raise ResolutionError("OpenAPI document must be a mapping")
        return data


class SpecResolver:
    """Turn a raw OpenAPI document into a resolved one.

    Swagger 2.0 documents are upgraded to the OpenAPI 3 layout first, then
    every local JSON-pointer ``$ref`` is replaced by a copy of its target,
    with sibling keys of the reference merged on top. External and dangling
    references are rejected.
    """

    def resolve(self, document: Dict[str, Any]) -> Dict[str, Any]:
        if not isinstance(document, dict):
            raise ResolutionError("OpenAPI document must be a mapping")
        resolved = copy.deepcopy(document)
        if str(resolved.get("swagger", "")).startswith("2"):
            resolved = self.upgrade(resolved)
        resolved = self._dereference(resolved)
        ensure_resolved(resolved)
        return resolved

    def upgrade(self, document: Dict[str, Any]) -> Dict[str, Any]:
        upgraded = {
            key: value
            for key, value in document.items()
            if key not in {"swagger", "host", "basePath", "schemes", "definitions", "consumes"}
        }
        upgraded["openapi"] = "3.0.0"

        servers = _swagger2_servers(document)
        if servers and "servers" not in upgraded:
            upgraded["servers"] = servers
        components = dict(upgraded.get("components") or {})
        if document.get("definitions"):
            components["schemas"] = document["definitions"]
        if components:
            upgraded["components"] = components

        paths: Dict[str, Any] = {}
        for path, path_item in (document.get("paths") or {}).items():
            new_item: Dict[str, Any] = {}
            for key, value in (path_item or {}).items():
                if key == "parameters":
                    new_item[key] = _upgrade_parameters(value or [])[0]
                elif key.lower() in HTTP_METHODS and isinstance(value, dict):
                    new_item[key] = _upgrade_operation(value)
                else:
                    new_item[key] = value
            paths[path] = new_item
        upgraded["paths"] = paths
        return _rewrite_refs(upgraded)

    def _dereference(self, root: Dict[str, Any]) -> Dict[str, Any]:
        def walk(node: Any, stack: Tuple[str, ...]) -> Any:
            if isinstance(node, list):
                return [walk(item, stack) for item in node]
            if not isinstance(node, dict):
                return node

            ref = node.get("$ref")
            if isinstance(ref, str):
                target = _resolve_pointer(root, ref)
                if ref in stack:
                    logger.debug("Cutting reference cycle at %s", ref)
                    return _cycle_stub(target, node)
                replacement = copy.deepcopy(target)
                if isinstance(replacement, dict):
                    replacement.update({k: v for k, v in node.items() if k != "$ref"})
                return walk(replacement, stack + (ref,))

            return {key: walk(value, stack) for key, value in node.items()}

        return walk(root, ())


def ensure_resolved(document: Any) -> None:
    """Raise ResolutionError if any ``$ref`` is left in the document."""
    pending: List[Tuple[str, Any]] = [("#", document)]
    while pending:
        location, node = pending.pop()
        if isinstance(node, dict):
            if "$ref" in node:
                raise ResolutionError(f"Unresolved reference {node['$ref']!r} at {location}")
            pending.extend((f"{location}/{key}", value) for key, value in node.items())
        elif isinstance(node, list):
            pending.extend((f"{location}/{index}", value) for index, value in enumerate(node))


def server_url(document: Dict[str, Any]) -> Optional[str]:
    servers = document.get("servers") or []
    if not servers:
        return None
    server = servers[0]
    if isinstance(server, dict):
        return server.get("url")
    return None


def _resolve_pointer(root: Dict[str, Any], ref: str) -> Any:
    if not ref.startswith("#/"):
        raise ResolutionError(f"External reference {ref!r} is not supported")
    current: Any = root
    for part in ref[2:].split("/"):
        part = part.replace("~1", "/").replace("~0", "~")
        if isinstance(current, dict) and part in current:
            current = current[part]
        elif isinstance(current, list) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            raise ResolutionError(f"Reference {ref!r} does not point into the document")
    return current


def _cycle_stub(target: Any, node: Dict[str, Any]) -> Dict[str, Any]:
    stub: Dict[str, Any] = {"type": "object"}
    if isinstance(target, dict):
        stub["type"] = target.get("type", "object")
        if target.get("description"):
            stub["description"] = target["description"]
    stub.update({k: v for k, v in node.items() if k != "$ref"})
    return stub


def _swagger2_servers(document: Dict[str, Any]) -> List[Dict[str, str]]:
    host = document.get("host")
    base_path = document.get("basePath") or ""
    if not host:
        return [{"url": base_path}] if base_path else []
    schemes = document.get("schemes") or ["https"]
    return [{"url": f"{scheme}://{host}{base_path}"} for scheme in schemes]


def _upgrade_operation(operation: Dict[str, Any]) -> Dict[str, Any]:
    upgraded = {k: v for k, v in operation.items() if k not in {"parameters", "consumes", "produces"}}
    parameters, body = _upgrade_parameters(operation.get("parameters") or [])
    if parameters:
        upgraded["parameters"] = parameters
    if body is not None:
        upgraded["requestBody"] = body
    return upgraded


def _upgrade_parameters(
    parameters: List[Dict[str, Any]]
) -> Tuple[List[Dict[str, Any]], Optional[Dict[str, Any]]]:
    upgraded: List[Dict[str, Any]] = []
    body: Optional[Dict[str, Any]] = None
    for parameter in parameters:
        location = parameter.get("in")
        if location == "body":
            body = {
                "required": bool(parameter.get("required")),
                "content": {"application/json": {"schema": parameter.get("schema") or {}}},
            }
            if parameter.get("description"):
                body["description"] = parameter["description"]
            continue
        if location == "formData":
            logger.debug("Dropping formData parameter %s", parameter.get("name"))
            continue
        if "$ref" in parameter or "schema" in parameter:
            upgraded.append(parameter)
            continue
        converted = {k: v for k, v in parameter.items() if k not in _SWAGGER2_SCHEMA_KEYS}
        converted["schema"] = {k: parameter[k] for k in _SWAGGER2_SCHEMA_KEYS if k in parameter}
        converted.pop("collectionFormat", None)
        upgraded.append(converted)
    return upgraded, body


def _rewrite_refs(node: Any) -> Any:
    if isinstance(node, list):
        return [_rewrite_refs(item) for item in node]
    if not isinstance(node, dict):
        return node
    rewritten = {key: _rewrite_refs(value) for key, value in node.items()}
    ref = rewritten.get("$ref")
    if isinstance(ref, str) and ref.startswith("#/definitions/"):
        rewritten["$ref"] = "#/components/schemas/" + ref[len("#/definitions/"):]
    return rewritten
