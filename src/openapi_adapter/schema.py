"""Build host-facing tool descriptors from indexed operations."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Mapping

from .models import OperationDescriptor, ParameterLocation, ToolDescriptor

# later partitions replace earlier entries of the same name
PARTITION_PRECEDENCE = (
    ParameterLocation.HEADER,
    ParameterLocation.PATH,
    ParameterLocation.QUERY,
    ParameterLocation.BODY,
)


def build_input_schema(descriptor: OperationDescriptor) -> Dict[str, Any]:
    properties: Dict[str, Any] = {}
    for location in PARTITION_PRECEDENCE:
        for name, fragment in descriptor.partition(location).items():
            properties[name] = copy.deepcopy(fragment)
    return {"type": "object", "properties": properties}


class ToolSchemaBuilder:
    def build_list(self, operations: Mapping[str, OperationDescriptor]) -> List[ToolDescriptor]:
        return [
            ToolDescriptor(
                name=name,
                description=descriptor.summary,
                input_schema=build_input_schema(descriptor),
            )
            for name, descriptor in operations.items()
        ]
