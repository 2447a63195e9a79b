"""Internal models for operations, tools and dispatch results."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from .errors import ErrorKind


class ParameterLocation(str, Enum):
    HEADER = "header"
    PATH = "path"
    QUERY = "query"
    BODY = "body"

    @classmethod
    def from_openapi(cls, value: Optional[str]) -> "ParameterLocation":
        if value == "header":
            return cls.HEADER
        if value == "path":
            return cls.PATH
        # query, cookie and anything undeclared travel in the query string
        return cls.QUERY


Partition = Mapping[str, Dict[str, Any]]


def _empty_partition() -> Partition:
    return MappingProxyType({})


@dataclass(frozen=True)
class OperationDescriptor:
    path: str
    method: str
    operation_id: Optional[str] = None
    summary: Optional[str] = None
    description: Optional[str] = None
    headers: Partition = field(default_factory=_empty_partition)
    path_params: Partition = field(default_factory=_empty_partition)
    query_params: Partition = field(default_factory=_empty_partition)
    request_body: Partition = field(default_factory=_empty_partition)

    def partition(self, location: ParameterLocation) -> Partition:
        if location is ParameterLocation.HEADER:
            return self.headers
        if location is ParameterLocation.PATH:
            return self.path_params
        if location is ParameterLocation.QUERY:
            return self.query_params
        return self.request_body


@dataclass(frozen=True)
class ToolDescriptor:
    name: str
    description: Optional[str]
    input_schema: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"name": self.name}
        if self.description is not None:
            payload["description"] = self.description
        payload["inputSchema"] = self.input_schema
        return payload


@dataclass(frozen=True)
class RequestConfig:
    method: str
    url: str
    headers: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class HTTPResponse:
    data: Any
    status_code: int = 200


@dataclass(frozen=True)
class ToolCallResult:
    tool_result: Any = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @classmethod
    def success(cls, tool_result: Any) -> "ToolCallResult":
        return cls(tool_result=tool_result)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ToolCallResult":
        return cls(error_kind=kind, message=message)

    @property
    def is_error(self) -> bool:
        return self.error_kind is not None

    def to_dict(self) -> Dict[str, Any]:
        if not self.is_error:
            return {"toolResult": self.tool_result}
        return {
            "isError": True,
            "content": [{"type": "text", "text": f"Error: {self.message}"}],
            "errorKind": self.error_kind.value,
        }
