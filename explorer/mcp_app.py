from __future__ import annotations

import base64
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from mcp.types import ToolAnnotations

from .client import ExplorerClient
from .constants import APP_VERSION
from .dispatcher import PageResult
from .models import Row

if TYPE_CHECKING:
    from fastmcp import FastMCP

READ_ONLY = ToolAnnotations(readOnlyHint=True, destructiveHint=False, openWorldHint=True)
SESSION_CHANGE = ToolAnnotations(readOnlyHint=False, destructiveHint=False, openWorldHint=True)

ToolFn = Callable[..., Awaitable[dict]]


def _json_value(value: Any) -> Any:
    if isinstance(value, bytes):
        return base64.b64encode(value).decode("ascii")
    return value


def row_payload(row: Row) -> dict[str, Any]:
    return {name: _json_value(value) for name, value in row.cells.items()}


def page_payload(result: PageResult | None) -> dict:
    if result is None:
        return {"discarded": True, "rows": [], "has_more": False}
    return {
        "keyspace": result.key.keyspace,
        "table": result.key.table,
        "filter": result.key.filter,
        "page_size": result.key.page_size,
        "rows": [row_payload(row) for row in result.page],
        "loaded_rows": len(result.rows),
        "has_more": result.has_more,
    }


def build_tools(explorer: ExplorerClient) -> list[tuple[ToolFn, ToolAnnotations]]:
    async def list_profiles() -> dict:
        """List the connection profiles the backend offers."""
        profiles = await explorer.get_profiles()
        return {"profiles": [profile.to_payload() for profile in profiles]}

    async def login(profile: str) -> dict:
        """Open a session using the named connection profile."""
        info = await explorer.login(profile)
        return {"profile": info.to_payload() if info is not None else {"name": profile}}

    async def logout() -> dict:
        """Close the current session."""
        await explorer.logout()
        return {"logged_out": True}

    async def list_keyspaces() -> dict:
        """List keyspaces visible to the current session."""
        keyspaces = await explorer.list_keyspaces()
        return {
            "keyspaces": [
                {
                    "name": keyspace.name,
                    "replication_strategy": keyspace.replication_strategy,
                    "replication": keyspace.replication,
                }
                for keyspace in keyspaces
            ]
        }

    async def list_tables(keyspace: str) -> dict:
        """List tables in a keyspace."""
        tables = await explorer.list_tables(keyspace)
        return {
            "tables": [
                {"name": table.name, "estimated_rows": table.estimated_rows} for table in tables
            ]
        }

    async def describe_table(keyspace: str, table: str) -> dict:
        """Describe the columns and key layout of a table."""
        schema = await explorer.get_table_schema(keyspace, table)
        return {
            "keyspace": schema.keyspace,
            "table": schema.table,
            "columns": [
                {
                    "name": column.name,
                    "type": column.type,
                    "partition_key": column.is_partition_key,
                    "clustering_key": column.is_clustering_key,
                }
                for column in schema.columns
            ],
            "partition_keys": list(schema.partition_keys),
            "clustering_keys": list(schema.clustering_keys),
        }

    async def query_rows(
        keyspace: str, table: str, where: str = "", page_size: int | None = None
    ) -> dict:
        """Select a table (optionally filtered by a WHERE clause) and return its first page."""
        return page_payload(await explorer.select(keyspace, table, where, page_size))

    async def next_page() -> dict:
        """Fetch the next page of the currently selected table."""
        result = await explorer.next_page()
        if result is not None:
            return page_payload(result)
        state = explorer.state()
        return {
            "rows": [],
            "loaded_rows": 0 if state is None else len(state.rows),
            "has_more": False if state is None else state.has_more,
        }

    return [
        (list_profiles, READ_ONLY),
        (login, SESSION_CHANGE),
        (logout, SESSION_CHANGE),
        (list_keyspaces, READ_ONLY),
        (list_tables, READ_ONLY),
        (describe_table, READ_ONLY),
        (query_rows, READ_ONLY),
        (next_page, READ_ONLY),
    ]


def register_tools(mcp: "FastMCP", explorer: ExplorerClient) -> list[str]:
    names: list[str] = []
    for tool_fn, annotations in build_tools(explorer):
        mcp.tool(tool_fn, annotations=annotations)
        names.append(tool_fn.__name__)
    return names


def mount_health_route(mcp: "FastMCP", explorer: ExplorerClient) -> None:
    from starlette.requests import Request
    from starlette.responses import JSONResponse, Response

    @mcp.custom_route("/health", methods=["GET"])
    async def health_route(request: Request) -> Response:
        del request
        return JSONResponse(
            {
                "status": "ok",
                "version": APP_VERSION,
                "authenticated": explorer.is_authenticated,
            }
        )
