from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from auth.models import Credential, ProfileInfo, RefreshResult
from auth.session_store import SessionStore
from explorer.constants import LOGGER
from explorer.errors import AuthError

RefreshFn = Callable[[str], Awaitable[RefreshResult]]
UnauthenticatedCallback = Callable[[AuthError], None]


class RefreshCoordinator:
    """Single-flight gate in front of the session refresh endpoint.

    Every caller that finds the credential unusable becomes a waiter on the
    one refresh in progress. The refresh itself runs in its own task so a
    cancelled caller never strands the remaining waiters. This class is the
    only writer of the credential held in the session store.
    """

    def __init__(
        self,
        store: SessionStore,
        refresh_fn: RefreshFn,
        *,
        on_unauthenticated: UnauthenticatedCallback | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self._store = store
        self._refresh_fn = refresh_fn
        self._on_unauthenticated = on_unauthenticated
        self._logger = logger or LOGGER

        self._lock = asyncio.Lock()
        self._waiters: list[asyncio.Future[Credential]] = []
        self._refresh_task: asyncio.Task | None = None
        # Bumped by login/logout so a refresh started for an older session
        # never writes over the newer one.
        self._epoch = 0

    @property
    def refresh_in_progress(self) -> bool:
        return self._refresh_task is not None

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    async def ensure_valid_credential(self) -> Credential:
        async with self._lock:
            if self._refresh_task is None:
                credential = self._store.get_credential()
                if credential is not None and not self._store.is_expired():
                    return credential
                self._start_refresh_locked("credential expired")
            waiter = self._enqueue_locked()
        return await waiter

    async def on_unauthorized(self, failed_access_token: str | None) -> Credential:
        async with self._lock:
            if self._refresh_task is None:
                current = self._store.get_credential()
                if (
                    current is not None
                    and current.access_token != failed_access_token
                    and not self._store.is_expired()
                ):
                    # Another caller already completed a refresh for this token.
                    return current
                self._start_refresh_locked("credential rejected by server")
            waiter = self._enqueue_locked()
        return await waiter

    async def install(self, credential: Credential, profile: ProfileInfo | None = None) -> None:
        async with self._lock:
            self._epoch += 1
            self._store.set_credential(credential)
            if profile is not None:
                self._store.set_profile(profile)

    async def reset(self) -> None:
        async with self._lock:
            self._epoch += 1
            self._store.clear()

    async def fail_session(self, error: AuthError) -> None:
        async with self._lock:
            self._epoch += 1
            self._store.clear()
        self._logger.warning("Session terminated: %s", error)
        self._signal_unauthenticated(error)

    def _enqueue_locked(self) -> asyncio.Future[Credential]:
        waiter: asyncio.Future[Credential] = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        return waiter

    def _start_refresh_locked(self, reason: str) -> None:
        credential = self._store.get_credential()
        if credential is None or not credential.refresh_token:
            self._epoch += 1
            self._store.clear()
            error = AuthError("No refresh token available; login required.", code="NO_REFRESH_TOKEN")
            self._logger.warning("Cannot refresh session (%s): no refresh token", reason)
            self._signal_unauthenticated(error)
            raise error

        self._logger.info("Refreshing session (%s)", reason)
        self._refresh_task = asyncio.create_task(self._run_refresh(credential, self._epoch))

    def _settle(self) -> list[asyncio.Future[Credential]]:
        waiters = self._waiters
        self._waiters = []
        self._refresh_task = None
        return waiters

    async def _run_refresh(self, credential: Credential, epoch: int) -> None:
        try:
            result = await self._refresh_fn(credential.refresh_token)
        except asyncio.CancelledError:
            cancelled = AuthError("Session refresh was cancelled.", code="REFRESH_CANCELLED")
            for waiter in self._settle():
                if not waiter.done():
                    waiter.set_exception(cancelled)
            raise
        except Exception as error:
            if isinstance(error, AuthError):
                auth_error = error
            else:
                auth_error = AuthError(f"Session refresh failed: {error}", code="REFRESH_FAILED")
                auth_error.__cause__ = error
            await self._fail_refresh(auth_error, epoch)
            return

        async with self._lock:
            if epoch == self._epoch:
                refreshed = Credential(
                    access_token=result.access_token,
                    refresh_token=result.refresh_token or credential.refresh_token,
                    expires_at=result.expires_at,
                )
                self._store.set_credential(refreshed)
            else:
                refreshed = self._store.get_credential()
            waiters = self._settle()

        if refreshed is None:
            error = AuthError("Session ended while refreshing; login required.")
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_exception(error)
            return

        self._logger.info("Session refreshed; releasing %s waiter(s)", len(waiters))
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(refreshed)

    async def _fail_refresh(self, error: AuthError, epoch: int) -> None:
        async with self._lock:
            stale = epoch != self._epoch
            if not stale:
                self._epoch += 1
                self._store.clear()
            waiters = self._settle()

        self._logger.warning(
            "Session refresh failed; rejecting %s waiter(s): %s", len(waiters), error
        )
        for waiter in waiters:
            if not waiter.done():
                waiter.set_exception(error)
        if not stale:
            self._signal_unauthenticated(error)

    def _signal_unauthenticated(self, error: AuthError) -> None:
        if self._on_unauthenticated is None:
            return
        try:
            self._on_unauthenticated(error)
        except Exception:
            self._logger.exception("Unauthenticated callback failed")
