from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass, field
from typing import Any

from .errors import ServerError

_CELL_KINDS = ("stringVal", "intVal", "doubleVal", "boolVal", "bytesVal")


def decode_cell(cell: Any) -> Any:
    if not isinstance(cell, dict) or cell.get("isNull") is True:
        return None
    for kind in _CELL_KINDS:
        if kind not in cell:
            continue
        value = cell[kind]
        if kind == "bytesVal" and isinstance(value, str):
            try:
                return base64.b64decode(value, validate=True)
            except (binascii.Error, ValueError) as error:
                raise ServerError("Cell bytes value is not valid base64.") from error
        return value
    return None


@dataclass(frozen=True)
class Row:
    cells: dict[str, Any]

    def __getitem__(self, column: str) -> Any:
        return self.cells[column]

    def get(self, column: str, default: Any = None) -> Any:
        return self.cells.get(column, default)

    @classmethod
    def from_payload(cls, payload: Any) -> "Row":
        if not isinstance(payload, dict):
            raise ServerError("Row must be a JSON object.", code="MALFORMED_RESPONSE")
        cells = payload.get("cells", {})
        if not isinstance(cells, dict):
            raise ServerError("Row cells must be a JSON object.", code="MALFORMED_RESPONSE")
        return cls(cells={name: decode_cell(cell) for name, cell in cells.items()})


@dataclass(frozen=True)
class Page:
    rows: tuple[Row, ...]
    cursor_id: str | None
    has_more: bool
    total_fetched: int | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "Page":
        rows = payload.get("rows") or []
        if not isinstance(rows, list):
            raise ServerError("Page rows must be a list.", code="MALFORMED_RESPONSE")
        cursor_id = payload.get("cursorId")
        if cursor_id is not None and not isinstance(cursor_id, str):
            raise ServerError("Page cursorId must be a string.", code="MALFORMED_RESPONSE")
        total = payload.get("totalFetched")
        has_more = bool(payload.get("hasMore", False))
        if has_more and not cursor_id:
            raise ServerError(
                "Page reports more rows but carries no cursorId.", code="MALFORMED_RESPONSE"
            )
        return cls(
            rows=tuple(Row.from_payload(row) for row in rows),
            cursor_id=cursor_id or None,
            has_more=has_more,
            total_fetched=int(total) if isinstance(total, (int, float)) else None,
        )


@dataclass(frozen=True)
class Keyspace:
    name: str
    replication_strategy: str = ""
    replication: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_payload(cls, payload: dict) -> "Keyspace":
        return cls(
            name=str(payload["name"]),
            replication_strategy=str(payload.get("replicationStrategy", "")),
            replication={str(k): str(v) for k, v in (payload.get("replication") or {}).items()},
        )


@dataclass(frozen=True)
class Table:
    name: str
    keyspace: str
    estimated_rows: int = 0

    @classmethod
    def from_payload(cls, payload: dict) -> "Table":
        return cls(
            name=str(payload["name"]),
            keyspace=str(payload.get("keyspace", "")),
            estimated_rows=int(payload.get("estimatedRows", 0)),
        )


@dataclass(frozen=True)
class Column:
    name: str
    type: str
    is_partition_key: bool = False
    is_clustering_key: bool = False
    position: int = 0

    @classmethod
    def from_payload(cls, payload: dict) -> "Column":
        return cls(
            name=str(payload["name"]),
            type=str(payload.get("type", "")),
            is_partition_key=bool(payload.get("isPartitionKey", False)),
            is_clustering_key=bool(payload.get("isClusteringKey", False)),
            position=int(payload.get("position", 0)),
        )


@dataclass(frozen=True)
class TableSchema:
    keyspace: str
    table: str
    columns: tuple[Column, ...]
    partition_keys: tuple[str, ...] = ()
    clustering_keys: tuple[str, ...] = ()

    @classmethod
    def from_payload(cls, payload: dict) -> "TableSchema":
        return cls(
            keyspace=str(payload.get("keyspace", "")),
            table=str(payload.get("table", "")),
            columns=tuple(
                sorted(
                    (Column.from_payload(column) for column in payload.get("columns") or []),
                    key=lambda column: column.position,
                )
            ),
            partition_keys=tuple(payload.get("partitionKeys") or []),
            clustering_keys=tuple(payload.get("clusteringKeys") or []),
        )
