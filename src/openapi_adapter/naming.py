"""Tool name derivation.

Tool hosts only accept names matching ``^[0-9A-Za-z_-]{1,64}$``, while
operationIds and paths may contain anything. Valid operationIds are kept
(capitalized); everything else is split on the forbidden characters and
rejoined in CamelCase, so ``get /pets/{petId}`` becomes ``GetPetsPetId``.
"""

from __future__ import annotations

import hashlib
import re
from typing import Optional

MAX_TOOL_NAME_LENGTH = 64

_VALID_NAME = re.compile(r"[0-9A-Za-z_-]{1,64}")
_SEPARATORS = re.compile(r"[^0-9A-Za-z_-]+")
_SUFFIX_LENGTH = 8


def is_valid_tool_name(name: Optional[str]) -> bool:
    return bool(name) and _VALID_NAME.fullmatch(name) is not None


def resolve_tool_name(operation_id: Optional[str], path: str, method: str) -> str:
    if is_valid_tool_name(operation_id):
        return _capitalize(operation_id)

    name = _camel_case(operation_id or f"{method}/{path}")
    if not name:
        name = _camel_case(f"{method}/{path}")
    return name[:MAX_TOOL_NAME_LENGTH]


def disambiguate(name: str, method: str, path: str) -> str:
    digest = hashlib.sha1(f"{method.upper()} {path}".encode("utf-8")).hexdigest()
    base = name[: MAX_TOOL_NAME_LENGTH - _SUFFIX_LENGTH - 1]
    return f"{base}_{digest[:_SUFFIX_LENGTH]}"


def _camel_case(key: str) -> str:
    return "".join(_capitalize(word) for word in _SEPARATORS.split(key) if word)


def _capitalize(word: str) -> str:
    return word[:1].upper() + word[1:]
