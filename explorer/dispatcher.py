from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator

from .constants import DEFAULT_PAGE_SIZE, LOGGER
from .data_api import DataApi
from .errors import AuthError, ExplorerError
from .models import Page, Row
from .pagination import (
    CursorPhase,
    PaginationCursor,
    PaginationState,
    QueryKey,
    QueryTarget,
)
from .view_state import ViewState, ViewStateStore


@dataclass(frozen=True)
class PageResult:
    key: QueryKey
    generation: int
    page: tuple[Row, ...]
    state: PaginationState

    @property
    def rows(self) -> tuple[Row, ...]:
        return self.state.rows

    @property
    def has_more(self) -> bool:
        return self.state.has_more


class QueryDispatcher:
    """Owns one pagination cursor per query key and drops stale responses.

    Only one key is active at a time. Selecting a different key discards the
    previously active cursor, so any fetch still in flight for it finds a
    generation mismatch when it completes and is thrown away.
    """

    def __init__(
        self,
        data_api: DataApi,
        *,
        view_state: ViewStateStore | None = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        logger: logging.Logger | None = None,
    ) -> None:
        self._data_api = data_api
        self._view_state = view_state
        self._default_page_size = default_page_size
        self._logger = logger or LOGGER

        self._cursors: dict[QueryKey, PaginationCursor] = {}
        self._first_loads: dict[int, asyncio.Task] = {}
        self._extending: dict[int, asyncio.Event] = {}
        self._active_key: QueryKey | None = None
        self._generation = 0

    @property
    def active_key(self) -> QueryKey | None:
        return self._active_key

    def key_for(
        self, target: QueryTarget, filter: str | None = "", page_size: int | None = None
    ) -> QueryKey:
        return QueryKey.build(target, filter, page_size or self._default_page_size)

    def state(self, key: QueryKey | None = None) -> PaginationState | None:
        key = key or self._active_key
        cursor = self._cursors.get(key) if key is not None else None
        return None if cursor is None else cursor.snapshot()

    def activate(self, key: QueryKey) -> PaginationCursor:
        if key != self._active_key:
            if self._active_key is not None:
                self._discard(self._active_key)
            self._active_key = key
            if self._view_state is not None:
                self._view_state.save(
                    ViewState(
                        keyspace=key.keyspace,
                        table=key.table,
                        filter=key.filter,
                        page_size=key.page_size,
                    )
                )

        cursor = self._cursors.get(key)
        if cursor is None:
            self._generation += 1
            cursor = PaginationCursor(key, self._generation)
            self._cursors[key] = cursor
            self._logger.debug("Allocated cursor generation=%s for %s", cursor.generation, key)
        return cursor

    def release(self, key: QueryKey) -> None:
        self._discard(key)
        if self._active_key == key:
            self._active_key = None

    def release_all(self) -> None:
        """Drop every cursor; fetches still in flight become stale."""
        for key in list(self._cursors):
            self.release(key)
        self._active_key = None

    async def select(
        self, target: QueryTarget, filter: str | None = "", page_size: int | None = None
    ) -> PageResult | None:
        """Make the query active and return its first page.

        Returns ``None`` when the query was replaced before its first page
        arrived. A query that is already loaded is returned from memory with
        every accumulated row as the page.
        """
        key = self.key_for(target, filter, page_size)
        cursor = self.activate(key)
        generation = cursor.generation

        if cursor.phase is not CursorPhase.INITIAL:
            state = cursor.snapshot()
            return PageResult(key=key, generation=generation, page=state.rows, state=state)

        task = self._first_loads.get(generation)
        if task is None:
            task = asyncio.create_task(self._load_first_page(cursor))
            self._first_loads[generation] = task

        try:
            page = await asyncio.shield(task)
        except AuthError:
            raise
        except ExplorerError:
            if not self._is_current(key, generation):
                self._logger.info("Discarding failed first page for replaced query %s", key)
                return None
            raise

        if page is None or not self._is_current(key, generation):
            return None
        return PageResult(key=key, generation=generation, page=page.rows, state=cursor.snapshot())

    async def next_page(self, key: QueryKey | None = None) -> PageResult | None:
        """Fetch and append the next page, or return ``None`` when there is nothing to do.

        Nothing is fetched while another next-page call for the key is in flight,
        once the query is exhausted, or for a key that is no longer tracked.
        """
        key = key or self._active_key
        cursor = self._cursors.get(key) if key is not None else None
        if cursor is None:
            return None
        if not cursor.can_extend:
            self._logger.debug("Next page ignored for %s in phase %s", key, cursor.phase.value)
            return None

        generation = cursor.generation
        done = asyncio.Event()
        self._extending[generation] = done
        try:
            return await self._extend(cursor)
        finally:
            self._extending.pop(generation, None)
            done.set()

    async def query(
        self, target: QueryTarget, filter: str | None = "", page_size: int | None = None
    ) -> AsyncIterator[PageResult]:
        """Stream pages for a query until it is exhausted or replaced.

        Pages fetched by other ``next_page`` callers while the stream is
        suspended are still yielded, in order, exactly once.
        """
        result = await self.select(target, filter, page_size)
        while result is not None:
            yield result
            if not result.has_more:
                return
            result = await self._stream_next(result.key, result.generation, len(result.rows))

    async def _stream_next(self, key: QueryKey, generation: int, seen: int) -> PageResult | None:
        while True:
            cursor = self._cursors.get(key)
            if cursor is None or cursor.generation != generation:
                return None
            if len(cursor.rows) > seen or not cursor.has_more:
                state = cursor.snapshot()
                return PageResult(
                    key=key, generation=generation, page=state.rows[seen:], state=state
                )
            pending = self._extending.get(generation)
            if pending is None:
                return await self.next_page(key)
            await pending.wait()

    async def _extend(self, cursor: PaginationCursor) -> PageResult | None:
        generation = cursor.generation
        cursor_id = cursor.begin_extend()
        try:
            page = await self._data_api.next_page(cursor_id)
        except asyncio.CancelledError:
            self._rollback(cursor)
            raise
        except ExplorerError as error:
            current = self._is_current(cursor.key, generation)
            self._rollback(cursor)
            if current or isinstance(error, AuthError):
                raise
            self._logger.info("Discarding failed next page for replaced query %s", cursor.key)
            return None

        if not self._is_current(cursor.key, generation):
            self._logger.info(
                "Discarding stale next page for %s (generation %s)", cursor.key, generation
            )
            return None

        cursor.apply_next_page(page)
        return PageResult(
            key=cursor.key, generation=generation, page=page.rows, state=cursor.snapshot()
        )

    async def _fetch_first(self, key: QueryKey) -> Page:
        if key.is_filtered:
            return await self._data_api.filter_rows(
                key.keyspace, key.table, key.filter, key.page_size
            )
        return await self._data_api.query_rows(key.keyspace, key.table, key.page_size)

    async def _load_first_page(self, cursor: PaginationCursor) -> Page | None:
        key, generation = cursor.key, cursor.generation
        try:
            page = await self._fetch_first(key)
        finally:
            self._first_loads.pop(generation, None)

        if not self._is_current(key, generation):
            self._logger.info(
                "Discarding stale first page for %s (generation %s)", key, generation
            )
            return None
        cursor.apply_first_page(page)
        return page

    def _is_current(self, key: QueryKey, generation: int) -> bool:
        cursor = self._cursors.get(key)
        return cursor is not None and cursor.generation == generation

    def _rollback(self, cursor: PaginationCursor) -> None:
        if cursor.phase is CursorPhase.EXTENDING:
            cursor.abort_extend()
            self._logger.info(
                "Next page failed for %s; keeping %s loaded rows", cursor.key, len(cursor.rows)
            )

    def _discard(self, key: QueryKey) -> None:
        cursor = self._cursors.pop(key, None)
        if cursor is None:
            return
        self._first_loads.pop(cursor.generation, None)
        self._logger.debug("Discarded cursor generation=%s for %s", cursor.generation, key)
