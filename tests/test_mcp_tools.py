import httpx
import pytest

from auth.session_store import MemorySessionStore
from explorer.errors import ServerError
from explorer.mcp_app import READ_ONLY, SESSION_CHANGE, build_tools, page_payload, register_tools
from tests.api_helpers import FakeExplorerApi, _build_client, route, row_payloads


def _tools(explorer) -> dict:
    return {tool_fn.__name__: tool_fn for tool_fn, _ in build_tools(explorer)}


class _DummyMCP:
    def __init__(self) -> None:
        self.tools: list[tuple] = []

    def tool(self, fn, **kwargs) -> None:
        self.tools.append((fn, kwargs))


def test_register_tools_annotations(fake_api: FakeExplorerApi) -> None:
    dummy = _DummyMCP()

    names = register_tools(dummy, _build_client(fake_api))

    assert names == [
        "list_profiles",
        "login",
        "logout",
        "list_keyspaces",
        "list_tables",
        "describe_table",
        "query_rows",
        "next_page",
    ]
    annotations = {fn.__name__: kwargs["annotations"] for fn, kwargs in dummy.tools}
    assert annotations["login"] is SESSION_CHANGE
    assert annotations["query_rows"] is READ_ONLY
    assert annotations["query_rows"].readOnlyHint is True
    assert annotations["logout"].readOnlyHint is False


def test_discarded_page_payload() -> None:
    assert page_payload(None) == {"discarded": True, "rows": [], "has_more": False}


@pytest.mark.asyncio
async def test_login_and_query_tools(fake_api: FakeExplorerApi) -> None:
    fake_api.first_pages["users"] = {
        "rows": row_payloads(0, 10),
        "cursorId": "c1",
        "hasMore": True,
    }
    fake_api.pages["c1"] = {"rows": row_payloads(10, 3), "hasMore": False}

    async with _build_client(fake_api, store=MemorySessionStore()) as explorer:
        tools = _tools(explorer)

        login = await tools["login"]("prod")
        first = await tools["query_rows"]("app", "users", page_size=10)
        second = await tools["next_page"]()
        done = await tools["next_page"]()

    assert login["profile"]["name"] == "prod"
    assert first["rows"][0] == {"id": 0, "name": "row-0"}
    assert first["has_more"] is True
    assert first["loaded_rows"] == 10
    assert [row["id"] for row in second["rows"]] == [10, 11, 12]
    assert second["loaded_rows"] == 13
    assert done == {"rows": [], "loaded_rows": 13, "has_more": False}


@pytest.mark.asyncio
async def test_next_page_without_selection(fake_api: FakeExplorerApi) -> None:
    async with _build_client(fake_api) as explorer:
        result = await _tools(explorer)["next_page"]()

    assert result == {"rows": [], "loaded_rows": 0, "has_more": False}
    assert fake_api.requests == []


@pytest.mark.asyncio
async def test_schema_tools() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        path = route(request)
        if path == "/schema/keyspaces":
            return httpx.Response(
                200,
                json={
                    "keyspaces": [
                        {
                            "name": "app",
                            "replicationStrategy": "SimpleStrategy",
                            "replication": {"replication_factor": 3},
                        }
                    ]
                },
            )
        if path == "/schema/keyspaces/app/tables":
            return httpx.Response(
                200, json={"tables": [{"name": "users", "keyspace": "app", "estimatedRows": 42}]}
            )
        if path == "/schema/keyspaces/app/tables/users":
            return httpx.Response(
                200,
                json={
                    "schema": {
                        "keyspace": "app",
                        "table": "users",
                        "columns": [{"name": "id", "type": "uuid", "isPartitionKey": True}],
                        "partitionKeys": ["id"],
                    }
                },
            )
        return httpx.Response(404, json={"message": f"no route {path}"})

    async with _build_client(handler) as explorer:
        tools = _tools(explorer)
        keyspaces = await tools["list_keyspaces"]()
        tables = await tools["list_tables"]("app")
        schema = await tools["describe_table"]("app", "users")

    assert keyspaces["keyspaces"][0]["replication"] == {"replication_factor": "3"}
    assert tables == {"tables": [{"name": "users", "estimated_rows": 42}]}
    assert schema["columns"] == [
        {"name": "id", "type": "uuid", "partition_key": True, "clustering_key": False}
    ]
    assert schema["partition_keys"] == ["id"]


@pytest.mark.asyncio
async def test_logout_clears_session_even_when_server_fails() -> None:
    async def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, json={"message": "backend restarting"})

    async with _build_client(handler) as explorer:
        with pytest.raises(ServerError, match="backend restarting"):
            await _tools(explorer)["logout"]()

        assert explorer.is_authenticated is False


@pytest.mark.asyncio
async def test_logout_tool(fake_api: FakeExplorerApi) -> None:
    async with _build_client(fake_api) as explorer:
        result = await _tools(explorer)["logout"]()

        assert result == {"logged_out": True}
        assert explorer.is_authenticated is False

    assert fake_api.calls_to("/session/logout")[0][2] == "T1"
