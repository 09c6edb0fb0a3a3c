from __future__ import annotations

import httpx

from auth.models import Credential, LoginResult, ProfileInfo, RefreshResult, parse_timestamp
from explorer.errors import (
    ServerError,
    decode_json,
    error_from_response,
    error_from_transport,
)

LOGIN_PATH = "/session/login"
REFRESH_PATH = "/session/refresh"
LOGOUT_PATH = "/session/logout"
PROFILES_PATH = "/profiles"


async def _session_request(
    client: httpx.AsyncClient,
    method: str,
    path: str,
    payload: dict | None = None,
) -> dict:
    try:
        response = await client.request(method, path, json=payload)
    except httpx.HTTPError as error:
        raise error_from_transport(error) from error

    if response.status_code >= 400:
        raise error_from_response(response)
    return decode_json(response)


def _require_str(payload: dict, key: str, context: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise ServerError(f"{context} response missing {key}.", code="MALFORMED_RESPONSE")
    return value


def _require_timestamp(payload: dict, key: str, context: str) -> float:
    try:
        return parse_timestamp(payload.get(key))
    except RuntimeError as error:
        raise ServerError(
            f"{context} response has an invalid {key}.", code="MALFORMED_RESPONSE"
        ) from error


async def login(client: httpx.AsyncClient, profile: str) -> LoginResult:
    payload = await _session_request(client, "POST", LOGIN_PATH, {"profile": profile})

    credential = Credential(
        access_token=_require_str(payload, "accessToken", "Login"),
        refresh_token=_require_str(payload, "refreshToken", "Login"),
        expires_at=_require_timestamp(payload, "expiresAt", "Login"),
    )
    profile_payload = payload.get("profile")
    profile_info = None
    if isinstance(profile_payload, dict):
        profile_info = ProfileInfo.from_payload(profile_payload)
    return LoginResult(credential=credential, profile=profile_info)


async def refresh(client: httpx.AsyncClient, refresh_token: str) -> RefreshResult:
    payload = await _session_request(client, "POST", REFRESH_PATH, {"refreshToken": refresh_token})

    rotated = payload.get("refreshToken")
    return RefreshResult(
        access_token=_require_str(payload, "accessToken", "Refresh"),
        expires_at=_require_timestamp(payload, "expiresAt", "Refresh"),
        refresh_token=rotated if isinstance(rotated, str) and rotated else None,
    )


async def get_profiles(client: httpx.AsyncClient) -> list[ProfileInfo]:
    payload = await _session_request(client, "GET", PROFILES_PATH)
    profiles = payload.get("profiles", [])
    if not isinstance(profiles, list):
        raise ServerError("Profiles response must contain a list.", code="MALFORMED_RESPONSE")
    return [ProfileInfo.from_payload(item) for item in profiles if isinstance(item, dict)]
