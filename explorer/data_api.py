from __future__ import annotations

from urllib.parse import quote

from .errors import ServerError
from .http import RequestGateway
from .models import Keyspace, Page, Table, TableSchema

QUERY_PATH = "/data/query"
NEXT_PAGE_PATH = "/data/next"
FILTER_PATH = "/data/filter"
KEYSPACES_PATH = "/schema/keyspaces"


def _segment(value: str) -> str:
    return quote(value, safe="")


def _require_list(payload: dict, key: str) -> list:
    value = payload.get(key) or []
    if not isinstance(value, list):
        raise ServerError(f"Response field {key!r} must be a list.", code="MALFORMED_RESPONSE")
    return value


class DataApi:
    def __init__(self, gateway: RequestGateway) -> None:
        self._gateway = gateway

    async def query_rows(self, keyspace: str, table: str, page_size: int) -> Page:
        payload = await self._gateway.post(
            QUERY_PATH,
            {"keyspace": keyspace, "table": table, "pageSize": page_size},
        )
        return Page.from_payload(payload)

    async def filter_rows(
        self, keyspace: str, table: str, where_clause: str, page_size: int
    ) -> Page:
        payload = await self._gateway.post(
            FILTER_PATH,
            {
                "keyspace": keyspace,
                "table": table,
                "whereClause": where_clause,
                "pageSize": page_size,
            },
        )
        return Page.from_payload(payload)

    async def next_page(self, cursor_id: str) -> Page:
        payload = await self._gateway.post(NEXT_PAGE_PATH, {"cursorId": cursor_id})
        return Page.from_payload(payload)

    async def list_keyspaces(self) -> list[Keyspace]:
        payload = await self._gateway.get(KEYSPACES_PATH)
        return [Keyspace.from_payload(item) for item in _require_list(payload, "keyspaces")]

    async def list_tables(self, keyspace: str) -> list[Table]:
        payload = await self._gateway.get(f"{KEYSPACES_PATH}/{_segment(keyspace)}/tables")
        return [Table.from_payload(item) for item in _require_list(payload, "tables")]

    async def get_table_schema(self, keyspace: str, table: str) -> TableSchema:
        payload = await self._gateway.get(
            f"{KEYSPACES_PATH}/{_segment(keyspace)}/tables/{_segment(table)}"
        )
        schema = payload.get("schema")
        if not isinstance(schema, dict):
            raise ServerError("Table schema response missing schema.", code="MALFORMED_RESPONSE")
        return TableSchema.from_payload(schema)
