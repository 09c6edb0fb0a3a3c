from __future__ import annotations

from typing import AsyncIterator

import httpx

from auth import session_api
from auth.models import Credential, ProfileInfo, RefreshResult
from auth.refresh import RefreshCoordinator, UnauthenticatedCallback
from auth.session_store import FileSessionStore, MemorySessionStore, SessionStore
from .constants import LOGGER
from .data_api import DataApi
from .dispatcher import PageResult, QueryDispatcher
from .env import ExplorerSettings
from .errors import ExplorerError
from .http import RequestGateway, build_http_client
from .models import Keyspace, Table, TableSchema
from .pagination import PaginationState, QueryKey, QueryTarget
from .state_file import StateFile
from .view_state import ViewStateStore


class ExplorerClient:
    """Session-aware entry point wiring the stores, gateway and dispatcher together."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        session_store: SessionStore | None = None,
        view_state: ViewStateStore | None = None,
        default_page_size: int | None = None,
        on_unauthenticated: UnauthenticatedCallback | None = None,
    ) -> None:
        self.http_client = http_client
        self.session_store = session_store or MemorySessionStore()
        self.view_state = view_state or ViewStateStore()
        self.coordinator = RefreshCoordinator(
            self.session_store,
            self._refresh,
            on_unauthenticated=on_unauthenticated,
        )
        self.gateway = RequestGateway(http_client, self.coordinator)
        self.data = DataApi(self.gateway)
        self.dispatcher = QueryDispatcher(
            self.data,
            view_state=self.view_state,
            default_page_size=default_page_size or self.view_state.get().page_size,
        )
        self.session_store.add_listener(self._on_session_change)

    @classmethod
    def from_settings(
        cls,
        settings: ExplorerSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        on_unauthenticated: UnauthenticatedCallback | None = None,
    ) -> "ExplorerClient":
        state_file = StateFile(settings.state_path)
        http_client = build_http_client(
            settings.api_url,
            timeout=settings.timeout,
            debug_enabled=settings.debug,
            transport=transport,
        )
        return cls(
            http_client,
            session_store=FileSessionStore(
                state_file, clock_skew_seconds=settings.clock_skew_seconds
            ),
            view_state=ViewStateStore(state_file),
            default_page_size=settings.page_size,
            on_unauthenticated=on_unauthenticated,
        )

    async def __aenter__(self) -> "ExplorerClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.http_client.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.session_store.get_credential() is not None

    @property
    def profile(self) -> ProfileInfo | None:
        return self.session_store.get_profile()

    def _on_session_change(self, credential: Credential | None) -> None:
        if credential is None:
            self.dispatcher.release_all()

    async def _refresh(self, refresh_token: str) -> RefreshResult:
        return await session_api.refresh(self.http_client, refresh_token)

    async def get_profiles(self) -> list[ProfileInfo]:
        return await session_api.get_profiles(self.http_client)

    async def login(self, profile: str) -> ProfileInfo | None:
        result = await session_api.login(self.http_client, profile)
        await self.coordinator.install(result.credential, result.profile)
        self.dispatcher.release_all()
        LOGGER.info("Logged in with profile %s", profile)
        return result.profile

    async def logout(self) -> None:
        try:
            if self.session_store.get_credential() is not None:
                await self.gateway.post(session_api.LOGOUT_PATH, {})
        except ExplorerError as error:
            LOGGER.warning("Server logout failed; clearing local session anyway: %s", error)
            raise
        finally:
            await self.coordinator.reset()

    async def list_keyspaces(self) -> list[Keyspace]:
        return await self.data.list_keyspaces()

    async def list_tables(self, keyspace: str) -> list[Table]:
        return await self.data.list_tables(keyspace)

    async def get_table_schema(self, keyspace: str, table: str) -> TableSchema:
        return await self.data.get_table_schema(keyspace, table)

    async def select(
        self, keyspace: str, table: str, filter: str = "", page_size: int | None = None
    ) -> PageResult | None:
        return await self.dispatcher.select(QueryTarget(keyspace, table), filter, page_size)

    async def next_page(self, key: QueryKey | None = None) -> PageResult | None:
        return await self.dispatcher.next_page(key)

    def query(
        self, keyspace: str, table: str, filter: str = "", page_size: int | None = None
    ) -> AsyncIterator[PageResult]:
        return self.dispatcher.query(QueryTarget(keyspace, table), filter, page_size)

    def state(self, key: QueryKey | None = None) -> PaginationState | None:
        return self.dispatcher.state(key)
