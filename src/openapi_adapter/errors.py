"""Error kinds raised while loading specs and dispatching tool calls."""

from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    RESOLUTION = "resolution"
    NAME_COLLISION = "name_collision"
    INVALID_REQUEST = "invalid_request"
    UNKNOWN_TOOL = "unknown_tool"
    SUBSTITUTION = "substitution"
    TRANSPORT = "transport"
    INTERNAL = "internal"


class AdapterError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ResolutionError(AdapterError):
    """The document could not be loaded or still holds unresolved references."""

    kind = ErrorKind.RESOLUTION


class ToolNameCollisionError(AdapterError):
    kind = ErrorKind.NAME_COLLISION


class InvalidRequestError(AdapterError):
    kind = ErrorKind.INVALID_REQUEST


class UnknownToolError(AdapterError):
    kind = ErrorKind.UNKNOWN_TOOL


class SubstitutionError(AdapterError):
    kind = ErrorKind.SUBSTITUTION


class TransportError(AdapterError):
    kind = ErrorKind.TRANSPORT
