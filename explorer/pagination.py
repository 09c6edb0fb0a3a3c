from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .constants import MAX_PAGE_SIZE, MIN_PAGE_SIZE
from .errors import ValidationError
from .models import Page, Row


class PaginationStateError(RuntimeError):
    pass


class CursorPhase(str, Enum):
    INITIAL = "initial"
    LOADED = "loaded"
    EXTENDING = "extending"
    EXHAUSTED = "exhausted"


@dataclass(frozen=True)
class QueryTarget:
    keyspace: str
    table: str


@dataclass(frozen=True)
class QueryKey:
    keyspace: str
    table: str
    filter: str
    page_size: int

    @classmethod
    def build(cls, target: QueryTarget, filter: str | None, page_size: int) -> "QueryKey":
        if not target.keyspace or not target.table:
            raise ValidationError("A keyspace and table must be selected.", code="INVALID_TARGET")
        if not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
            raise ValidationError(
                f"Page size must be between {MIN_PAGE_SIZE} and {MAX_PAGE_SIZE}.",
                code="INVALID_PAGE_SIZE",
            )
        return cls(
            keyspace=target.keyspace,
            table=target.table,
            filter=(filter or "").strip(),
            page_size=page_size,
        )

    @property
    def target(self) -> QueryTarget:
        return QueryTarget(self.keyspace, self.table)

    @property
    def is_filtered(self) -> bool:
        return bool(self.filter)


@dataclass(frozen=True)
class PaginationState:
    phase: CursorPhase
    rows: tuple[Row, ...]
    cursor_id: str | None
    has_more: bool
    generation: int


class PaginationCursor:
    """Pagination state for one query key.

    Rows only ever grow by appending whole pages in the order they were
    received. At most one next-page fetch is outstanding: the server cursor
    is consumed on use, so it must never be sent twice concurrently.
    """

    def __init__(self, key: QueryKey, generation: int) -> None:
        self.key = key
        self.generation = generation
        self._phase = CursorPhase.INITIAL
        self._rows: list[Row] = []
        self._cursor_id: str | None = None
        self._has_more = False

    @property
    def phase(self) -> CursorPhase:
        return self._phase

    @property
    def cursor_id(self) -> str | None:
        return self._cursor_id

    @property
    def has_more(self) -> bool:
        return self._has_more

    @property
    def rows(self) -> tuple[Row, ...]:
        return tuple(self._rows)

    @property
    def can_extend(self) -> bool:
        return (
            self._phase is CursorPhase.LOADED
            and self._has_more
            and self._cursor_id is not None
        )

    def snapshot(self) -> PaginationState:
        return PaginationState(
            phase=self._phase,
            rows=tuple(self._rows),
            cursor_id=self._cursor_id,
            has_more=self._has_more,
            generation=self.generation,
        )

    def apply_first_page(self, page: Page) -> None:
        if self._phase is not CursorPhase.INITIAL:
            raise PaginationStateError(
                f"First page applied to a cursor in phase {self._phase.value}."
            )
        self._rows = list(page.rows)
        self._settle(page)

    def begin_extend(self) -> str:
        if not self.can_extend:
            raise PaginationStateError(
                f"Cannot fetch the next page from phase {self._phase.value} "
                f"(has_more={self._has_more})."
            )
        self._phase = CursorPhase.EXTENDING
        return self._cursor_id  # type: ignore[return-value]

    def apply_next_page(self, page: Page) -> None:
        if self._phase is not CursorPhase.EXTENDING:
            raise PaginationStateError(
                f"Next page applied to a cursor in phase {self._phase.value}."
            )
        self._rows.extend(page.rows)
        self._settle(page)

    def abort_extend(self) -> None:
        if self._phase is not CursorPhase.EXTENDING:
            raise PaginationStateError(
                f"No next-page fetch to abort in phase {self._phase.value}."
            )
        self._phase = CursorPhase.LOADED

    def _settle(self, page: Page) -> None:
        self._cursor_id = page.cursor_id
        self._has_more = page.has_more
        self._phase = CursorPhase.LOADED if page.has_more else CursorPhase.EXHAUSTED
