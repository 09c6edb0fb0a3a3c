from __future__ import annotations

from dataclasses import asdict, dataclass

from .constants import DEFAULT_PAGE_SIZE, LOGGER, MAX_PAGE_SIZE, MIN_PAGE_SIZE
from .state_file import StateFile


@dataclass
class ViewState:
    keyspace: str | None = None
    table: str | None = None
    filter: str = ""
    page_size: int = DEFAULT_PAGE_SIZE


class ViewStateStore:
    """Persists the last selected query target across restarts."""

    VIEW_KEY = "view"

    def __init__(self, state_file: StateFile | None = None) -> None:
        self._state_file = state_file
        self._state = ViewState()
        if state_file is not None:
            stored = state_file.read(self.VIEW_KEY)
            if stored is not None:
                self._state = self._from_payload(stored)

    def get(self) -> ViewState:
        return ViewState(**asdict(self._state))

    def save(self, state: ViewState) -> None:
        if not MIN_PAGE_SIZE <= state.page_size <= MAX_PAGE_SIZE:
            LOGGER.warning("Ignoring out-of-range page size %s", state.page_size)
            state = ViewState(state.keyspace, state.table, state.filter, self._state.page_size)
        self._state = ViewState(**asdict(state))
        if self._state_file is not None:
            self._state_file.write(self.VIEW_KEY, asdict(self._state))

    def select_keyspace(self, keyspace: str | None) -> None:
        self.save(ViewState(keyspace=keyspace, table=None, page_size=self._state.page_size))

    def _from_payload(self, payload: dict) -> ViewState:
        page_size = payload.get("page_size", DEFAULT_PAGE_SIZE)
        if not isinstance(page_size, int) or not MIN_PAGE_SIZE <= page_size <= MAX_PAGE_SIZE:
            page_size = DEFAULT_PAGE_SIZE
        return ViewState(
            keyspace=payload.get("keyspace"),
            table=payload.get("table"),
            filter=str(payload.get("filter") or ""),
            page_size=page_size,
        )
