"""Print the tool list generated from an OpenAPI document."""

from __future__ import annotations

import argparse
import asyncio
import json
import os
from typing import Any, Dict, List

from openapi_adapter.converter import Converter
from openapi_adapter.http_client import HttpxClient
from openapi_adapter.indexer import CollisionPolicy
from openapi_adapter.openapi import OpenAPILoader, server_url


def _dump(document: Dict[str, Any], collision: str, allowlist: List[str]) -> List[Dict[str, Any]]:
    converter = Converter(
        HttpxClient(base_url=server_url(document)),
        collision_policy=CollisionPolicy(collision),
        tool_allowlist=allowlist,
    )
    converter.load(document)
    return [tool.to_dict() for tool in converter.get_tools_list()]


def main() -> None:
    parser = argparse.ArgumentParser(description="Print tools generated from an OpenAPI spec")
    parser.add_argument(
        "--spec",
        default=os.getenv("OPENAPI_SPEC_SOURCE", ""),
        help="Path or URL of the OpenAPI document (JSON or YAML)",
    )
    parser.add_argument(
        "--collision",
        default="error",
        choices=[policy.value for policy in CollisionPolicy],
        help="How to handle operations that resolve to the same tool name",
    )
    parser.add_argument(
        "--only",
        action="append",
        default=[],
        help="Only print this tool (repeatable)",
    )
    parser.add_argument(
        "--names",
        action="store_true",
        help="Print tool names only, one per line",
    )

    args = parser.parse_args()
    if not args.spec:
        raise SystemExit("Spec source missing. Set --spec or OPENAPI_SPEC_SOURCE.")

    document = asyncio.run(OpenAPILoader().load(args.spec))
    tools = _dump(document, args.collision, args.only)

    if args.names:
        for tool in tools:
            print(tool["name"])
        return
    print(json.dumps(tools, indent=2))


if __name__ == "__main__":
    main()
