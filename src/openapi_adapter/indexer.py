"""Index resolved OpenAPI operations by tool name."""

from __future__ import annotations

import logging
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import ToolNameCollisionError
from .models import OperationDescriptor, ParameterLocation
from .naming import disambiguate, resolve_tool_name
from .openapi import HTTP_METHODS, ensure_resolved


logger = logging.getLogger(__name__)


class CollisionPolicy(str, Enum):
    ERROR = "error"
    SUFFIX = "suffix"
    OVERWRITE = "overwrite"


class APIIndexer:
    def __init__(self, collision_policy: CollisionPolicy = CollisionPolicy.ERROR) -> None:
        self.collision_policy = CollisionPolicy(collision_policy)

    def index(self, document: Dict[str, Any]) -> Mapping[str, OperationDescriptor]:
        ensure_resolved(document)
        operations: Dict[str, OperationDescriptor] = {}
        paths = document.get("paths") or {}

        for path, methods in paths.items():
            shared_parameters = (methods or {}).get("parameters") or []
            for method, operation in (methods or {}).items():
                if method.lower() not in HTTP_METHODS or not isinstance(operation, dict):
                    continue
                descriptor = self._build_descriptor(path, method.lower(), operation, shared_parameters)
                tool_name = resolve_tool_name(descriptor.operation_id, path, descriptor.method)
                self._register(operations, tool_name, descriptor)

        logger.info("Indexed %s operations", len(operations))
        return MappingProxyType(operations)

    def _register(
        self,
        operations: Dict[str, OperationDescriptor],
        tool_name: str,
        descriptor: OperationDescriptor,
    ) -> None:
        existing = operations.get(tool_name)
        if existing is None:
            operations[tool_name] = descriptor
            return

        clash = (
            f"Tool name {tool_name!r} is shared by {existing.method.upper()} {existing.path} "
            f"and {descriptor.method.upper()} {descriptor.path}"
        )
        if self.collision_policy is CollisionPolicy.OVERWRITE:
            logger.warning("%s; keeping the latter", clash)
            operations[tool_name] = descriptor
            return
        if self.collision_policy is CollisionPolicy.SUFFIX:
            renamed = disambiguate(tool_name, descriptor.method, descriptor.path)
            if renamed in operations:
                raise ToolNameCollisionError(f"{clash}; suffixed name {renamed!r} is taken too")
            logger.info("%s; renaming the latter to %s", clash, renamed)
            operations[renamed] = descriptor
            return
        raise ToolNameCollisionError(clash)

    def _build_descriptor(
        self,
        path: str,
        method: str,
        operation: Dict[str, Any],
        shared_parameters: List[Dict[str, Any]],
    ) -> OperationDescriptor:
        partitions: Dict[ParameterLocation, Dict[str, Dict[str, Any]]] = {
            location: {} for location in ParameterLocation
        }

        for location, name, parameter in self._merge_parameters(
            [*shared_parameters, *(operation.get("parameters") or [])]
        ):
            partitions[location][name] = self._parameter_property(parameter)

        body_schema = self._extract_body_schema(operation.get("requestBody") or {})
        if body_schema:
            required_names = set(body_schema.get("required") or [])
            for name, prop in body_schema["properties"].items():
                partitions[ParameterLocation.BODY][name] = self._body_property(
                    name, prop, required_names
                )

        return OperationDescriptor(
            path=path,
            method=method,
            operation_id=operation.get("operationId"),
            summary=operation.get("summary"),
            description=operation.get("description"),
            headers=MappingProxyType(partitions[ParameterLocation.HEADER]),
            path_params=MappingProxyType(partitions[ParameterLocation.PATH]),
            query_params=MappingProxyType(partitions[ParameterLocation.QUERY]),
            request_body=MappingProxyType(partitions[ParameterLocation.BODY]),
        )

    def _merge_parameters(
        self, parameters: Iterable[Dict[str, Any]]
    ) -> List[Tuple[ParameterLocation, str, Dict[str, Any]]]:
        # operation-level entries replace path-level ones with the same name and location
        merged: Dict[Tuple[ParameterLocation, str], Dict[str, Any]] = {}
        for parameter in parameters:
            name = (parameter or {}).get("name")
            if not name:
                continue
            location = ParameterLocation.from_openapi(parameter.get("in"))
            merged[(location, name)] = parameter
        return [(location, name, parameter) for (location, name), parameter in merged.items()]

    def _parameter_property(self, parameter: Dict[str, Any]) -> Dict[str, Any]:
        # a description inside the schema wins over the parameter's own
        prop: Dict[str, Any] = {}
        if parameter.get("description") is not None:
            prop["description"] = parameter["description"]
        schema = parameter.get("schema")
        if isinstance(schema, dict):
            prop.update(schema)
        prop["required"] = bool(parameter.get("required", False))
        return prop

    def _body_property(self, name: str, prop: Any, required_names: set[str]) -> Dict[str, Any]:
        # boolean subschemas (`true`/`false`) carry no keywords to copy
        entry = dict(prop) if isinstance(prop, dict) else {}
        entry["required"] = entry.get("required") is True or name in required_names
        return entry

    def _extract_body_schema(self, request_body: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        content = request_body.get("content") or {}
        if not isinstance(content, dict):
            return None
        for media_type in self._json_media_types(content):
            media = content.get(media_type)
            schema = media.get("schema") if isinstance(media, dict) else None
            if isinstance(schema, dict) and isinstance(schema.get("properties"), dict):
                return schema
        return None

    def _json_media_types(self, content: Dict[str, Any]) -> List[str]:
        ranked: List[Tuple[int, str]] = []
        for media_type in content:
            base = media_type.split(";", 1)[0].strip().lower()
            if media_type == "application/json":
                ranked.append((0, media_type))
            elif base == "application/json":
                ranked.append((1, media_type))
            elif base.startswith("application/") and base.endswith("+json"):
                ranked.append((2, media_type))
        return [media_type for _, media_type in sorted(ranked, key=lambda item: item[0])]
