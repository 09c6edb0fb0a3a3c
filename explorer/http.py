from __future__ import annotations

import logging
from dataclasses import dataclass, replace

import httpx

from auth.models import Credential
from auth.refresh import RefreshCoordinator
from .constants import ERROR_BODY_LOG_LIMIT, LOGGER, MAX_REQUEST_ATTEMPTS
from .errors import (
    auth_error_from_response,
    decode_json,
    error_from_response,
    error_from_transport,
    is_unauthorized,
)


@dataclass(frozen=True)
class RequestContext:
    method: str
    path: str
    json: dict | None = None
    attempt: int = 1

    def next_attempt(self) -> "RequestContext":
        return replace(self, attempt=self.attempt + 1)


def build_event_hooks(*, debug_enabled: bool, logger: logging.Logger | None = None) -> dict:
    log = logger or LOGGER

    async def log_request(request: httpx.Request) -> None:
        if not debug_enabled:
            return
        log.info("Explorer API request %s %s", request.method, request.url)

    async def log_response(response: httpx.Response) -> None:
        if not debug_enabled:
            return
        log.info(
            "Explorer API response %s %s -> %s",
            response.request.method,
            response.request.url,
            response.status_code,
        )
        if response.status_code >= 400:
            body = await response.aread()
            text = body.decode("utf-8", errors="replace")
            if len(text) > ERROR_BODY_LOG_LIMIT:
                text = text[:ERROR_BODY_LOG_LIMIT] + "...<truncated>"
            log.warning("Explorer API error body: %s", text)

    return {"request": [log_request], "response": [log_response]}


def build_http_client(
    base_url: str,
    *,
    timeout: float,
    debug_enabled: bool = False,
    transport: httpx.AsyncBaseTransport | None = None,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=base_url,
        headers={"Content-Type": "application/json"},
        timeout=timeout,
        transport=transport,
        event_hooks=build_event_hooks(debug_enabled=debug_enabled),
    )


class RequestGateway:
    """Sends authenticated calls, refreshing the session at most once per call."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        coordinator: RefreshCoordinator,
        *,
        max_attempts: int = MAX_REQUEST_ATTEMPTS,
        logger: logging.Logger | None = None,
    ) -> None:
        self._client = client
        self._coordinator = coordinator
        self._max_attempts = max(1, max_attempts)
        self._logger = logger or LOGGER

    async def request(self, method: str, path: str, *, json: dict | None = None) -> dict:
        return await self._send(RequestContext(method=method, path=path, json=json))

    async def get(self, path: str) -> dict:
        return await self.request("GET", path)

    async def post(self, path: str, json: dict | None = None) -> dict:
        return await self.request("POST", path, json=json if json is not None else {})

    async def _send(self, context: RequestContext, credential: Credential | None = None) -> dict:
        if credential is None:
            credential = await self._coordinator.ensure_valid_credential()
        headers = {"Authorization": f"Bearer {credential.access_token}"}

        try:
            response = await self._client.request(
                context.method,
                context.path,
                json=context.json,
                headers=headers,
            )
        except httpx.HTTPError as error:
            raise error_from_transport(error) from error

        if is_unauthorized(response):
            if context.attempt >= self._max_attempts:
                auth_error = auth_error_from_response(response)
                await self._coordinator.fail_session(auth_error)
                raise auth_error

            self._logger.info(
                "Authorization rejected for %s %s (attempt %s); refreshing session",
                context.method,
                context.path,
                context.attempt,
            )
            refreshed = await self._coordinator.on_unauthorized(credential.access_token)
            return await self._send(context.next_attempt(), refreshed)

        if response.status_code >= 400:
            raise error_from_response(response)
        return decode_json(response)
