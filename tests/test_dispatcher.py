"""Tests for RequestDispatcher request reconstruction and error reporting."""
from __future__ import annotations

import asyncio
from types import MappingProxyType

import pytest

from openapi_adapter.dispatcher import RequestDispatcher
from openapi_adapter.errors import ErrorKind, TransportError
from openapi_adapter.models import HTTPResponse, OperationDescriptor, RequestConfig


def _operations() -> MappingProxyType:
    return MappingProxyType({
        "GetFile": OperationDescriptor(
            path="/repos/{owner}/{repo}/contents/{path}",
            method="get",
            headers=MappingProxyType({"X-Api-Version": {"type": "string"}}),
            path_params=MappingProxyType({
                "owner": {"type": "string", "required": True},
                "repo": {"type": "string", "required": True},
                "path": {"type": "string", "required": True},
            }),
            query_params=MappingProxyType({"ref": {"type": "string"}, "owner": {"type": "string"}}),
        ),
        "UpdateNote": OperationDescriptor(
            path="/notes/{id}",
            method="patch",
            path_params=MappingProxyType({"id": {"type": "integer", "required": True}}),
            query_params=MappingProxyType({"dryRun": {"type": "boolean"}, "text": {"type": "string"}}),
            request_body=MappingProxyType({"text": {"type": "string"}, "pinned": {"type": "boolean"}}),
        ),
    })


def _invocation(name, arguments=None) -> dict:
    params = {"name": name}
    if arguments is not None:
        params["arguments"] = arguments
    return {"params": params}


@pytest.mark.asyncio
async def test_path_header_and_query_are_reconstructed(http_client):
    dispatcher = RequestDispatcher(_operations(), http_client)
    result = await dispatcher.dispatch(_invocation("GetFile", {
        "owner": "octo",
        "repo": "hello",
        "path": "docs/readme.md",
        "ref": "main",
        "X-Api-Version": "2022-11-28",
    }))
    assert not result.is_error
    assert http_client.last == RequestConfig(
        method="get",
        url="/repos/octo/hello/contents/docs%2Freadme.md",
        headers={"X-Api-Version": "2022-11-28"},
        params={"ref": "main"},
        data={},
    )


@pytest.mark.asyncio
async def test_arguments_land_in_exactly_one_bucket(http_client):
    dispatcher = RequestDispatcher(_operations(), http_client)
    await dispatcher.dispatch(_invocation("UpdateNote", {"id": 7, "text": "hi", "pinned": True, "dryRun": False}))
    request = http_client.last
    assert request.url == "/notes/7"
    # query outranks body for a name declared in both
    assert request.params == {"text": "hi", "dryRun": False}
    assert request.data == {"pinned": True}


@pytest.mark.asyncio
async def test_path_argument_is_not_duplicated_into_query(http_client):
    dispatcher = RequestDispatcher(_operations(), http_client)
    await dispatcher.dispatch(_invocation("GetFile", {"owner": "a", "repo": "b", "path": "c"}))
    assert http_client.last.url == "/repos/a/b/contents/c"
    assert http_client.last.params == {}


@pytest.mark.asyncio
async def test_undeclared_arguments_are_ignored(http_client):
    dispatcher = RequestDispatcher(_operations(), http_client)
    await dispatcher.dispatch(_invocation("UpdateNote", {"id": 1, "unknown": "x"}))
    request = http_client.last
    assert "unknown" not in request.params
    assert "unknown" not in request.data
    assert "unknown" not in request.headers


@pytest.mark.asyncio
async def test_boolean_path_values_are_lowercase(http_client):
    operations = MappingProxyType({
        "Flag": OperationDescriptor(
            path="/flags/{on}", method="put", path_params=MappingProxyType({"on": {"type": "boolean"}})
        )
    })
    await RequestDispatcher(operations, http_client).dispatch(_invocation("Flag", {"on": True}))
    assert http_client.last.url == "/flags/true"


@pytest.mark.asyncio
async def test_success_wraps_response_data(http_client):
    http_client.data = {"id": 7, "text": "hi"}
    result = await RequestDispatcher(_operations(), http_client).call("UpdateNote", {"id": 7})
    assert result.tool_result == {"id": 7, "text": "hi"}
    assert result.to_dict() == {"toolResult": {"id": 7, "text": "hi"}}


@pytest.mark.asyncio
async def test_unknown_tool_is_reported_not_raised(http_client):
    result = await RequestDispatcher(_operations(), http_client).dispatch(_invocation("Nope", {}))
    assert result.is_error
    assert result.error_kind is ErrorKind.UNKNOWN_TOOL
    payload = result.to_dict()
    assert payload["isError"] is True
    assert payload["content"][0]["type"] == "text"
    assert payload["content"][0]["text"].startswith("Error: ")
    assert "Nope" in payload["content"][0]["text"]
    assert http_client.requests == []


@pytest.mark.asyncio
async def test_missing_path_argument_is_a_substitution_error(http_client):
    result = await RequestDispatcher(_operations(), http_client).call("GetFile", {"owner": "a"})
    assert result.error_kind is ErrorKind.SUBSTITUTION
    assert "repo" in result.message and "path" in result.message
    assert http_client.requests == []


@pytest.mark.parametrize(
    "invocation",
    [{}, {"params": None}, {"params": {}}, {"params": {"name": ""}}, "not a mapping"],
)
@pytest.mark.asyncio
async def test_malformed_invocations_are_invalid_requests(http_client, invocation):
    result = await RequestDispatcher(_operations(), http_client).dispatch(invocation)
    assert result.error_kind is ErrorKind.INVALID_REQUEST


@pytest.mark.asyncio
async def test_non_mapping_arguments_are_invalid(http_client):
    result = await RequestDispatcher(_operations(), http_client).dispatch(_invocation("UpdateNote", [1, 2]))
    assert result.error_kind is ErrorKind.INVALID_REQUEST


@pytest.mark.asyncio
async def test_missing_arguments_default_to_empty(http_client):
    operations = MappingProxyType({"Ping": OperationDescriptor(path="/ping", method="get")})
    result = await RequestDispatcher(operations, http_client).dispatch(_invocation("Ping"))
    assert not result.is_error
    assert http_client.last.url == "/ping"


class _FailingClient:
    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def request(self, config: RequestConfig) -> HTTPResponse:
        raise self.exc


@pytest.mark.asyncio
async def test_transport_error_keeps_its_kind():
    client = _FailingClient(TransportError("503 Service Unavailable for GET /ping"))
    operations = MappingProxyType({"Ping": OperationDescriptor(path="/ping", method="get")})
    result = await RequestDispatcher(operations, client).call("Ping")
    assert result.to_dict() == {
        "isError": True,
        "content": [{"type": "text", "text": "Error: 503 Service Unavailable for GET /ping"}],
        "errorKind": "transport",
    }


@pytest.mark.asyncio
async def test_unexpected_exception_is_internal():
    operations = MappingProxyType({"Ping": OperationDescriptor(path="/ping", method="get")})
    result = await RequestDispatcher(operations, _FailingClient(RuntimeError("boom"))).call("Ping")
    assert result.error_kind is ErrorKind.INTERNAL
    assert result.message == "boom"


class _SlowClient:
    def __init__(self) -> None:
        self.active = 0
        self.peak = 0

    async def request(self, config: RequestConfig) -> HTTPResponse:
        self.active += 1
        self.peak = max(self.peak, self.active)
        await asyncio.sleep(0.01)
        self.active -= 1
        return HTTPResponse(data={"url": config.url})


@pytest.mark.asyncio
async def test_concurrent_calls_do_not_interfere():
    client = _SlowClient()
    operations = MappingProxyType({
        "Get": OperationDescriptor(
            path="/items/{id}", method="get", path_params=MappingProxyType({"id": {"type": "integer"}})
        )
    })
    dispatcher = RequestDispatcher(operations, client)
    results = await asyncio.gather(*(dispatcher.call("Get", {"id": i}) for i in range(5)))
    assert [r.tool_result["url"] for r in results] == [f"/items/{i}" for i in range(5)]
    assert client.peak == 5


@pytest.mark.asyncio
async def test_max_concurrency_bounds_in_flight_calls():
    client = _SlowClient()
    operations = MappingProxyType({"Ping": OperationDescriptor(path="/ping", method="get")})
    dispatcher = RequestDispatcher(operations, client, max_concurrency=2)
    await asyncio.gather(*(dispatcher.call("Ping") for _ in range(6)))
    assert client.peak == 2
