from __future__ import annotations

import httpx

from .constants import LOGGER


class ExplorerError(RuntimeError):
    def __init__(
        self,
        message: str,
        *,
        code: str = "UNKNOWN_ERROR",
        details: dict | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}
        self.status_code = status_code


class AuthError(ExplorerError):
    """Terminal authentication failure; the session must be re-established."""

    def __init__(self, message: str = "Authentication required.", **kwargs) -> None:
        kwargs.setdefault("code", "UNAUTHENTICATED")
        kwargs.setdefault("status_code", 401)
        super().__init__(message, **kwargs)


class NetworkError(ExplorerError):
    def __init__(self, message: str, **kwargs) -> None:
        kwargs.setdefault("code", "NETWORK_ERROR")
        super().__init__(message, **kwargs)


class ValidationError(ExplorerError):
    pass


class ServerError(ExplorerError):
    pass


def _friendly_error_message(status_code: int) -> str:
    if status_code == 401:
        return "Authentication failed. Your session may have expired."
    if status_code == 403:
        return "You don't have permission to perform this action."
    if status_code == 404:
        return "The requested resource was not found."
    if status_code >= 500:
        return "The explorer API is experiencing issues. Please try again later."
    return f"Explorer API request failed with status {status_code}."


def _error_payload(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError:
        return {"raw": response.text}
    if not isinstance(payload, dict):
        return {"raw": payload}
    return payload


def _mentions_expired_token(message: str) -> bool:
    lowered = message.lower()
    return "token" in lowered and "expired" in lowered


def is_unauthorized(response: httpx.Response) -> bool:
    if response.status_code == 401:
        return True
    if not 400 <= response.status_code < 500:
        return False
    message = _error_payload(response).get("message")
    return isinstance(message, str) and _mentions_expired_token(message)


def _error_fields(response: httpx.Response) -> tuple[str, str, dict]:
    payload = _error_payload(response)
    status_code = response.status_code

    message = payload.get("message")
    if not isinstance(message, str) or not message:
        message = _friendly_error_message(status_code)
    code = payload.get("code")
    code = str(code) if code is not None else f"HTTP_{status_code}"
    details = payload.get("details")
    if not isinstance(details, dict):
        details = {}

    LOGGER.warning(
        "Explorer API error status=%s endpoint=%s code=%s message=%s",
        status_code,
        response.request.url,
        code,
        message,
    )
    return message, code, details


def auth_error_from_response(response: httpx.Response) -> AuthError:
    message, code, details = _error_fields(response)
    return AuthError(message, code=code, details=details, status_code=response.status_code)


def error_from_response(response: httpx.Response) -> ExplorerError:
    if is_unauthorized(response):
        return auth_error_from_response(response)

    message, code, details = _error_fields(response)
    status_code = response.status_code
    if status_code >= 500:
        return ServerError(message, code=code, details=details, status_code=status_code)
    return ValidationError(message, code=code, details=details, status_code=status_code)


def error_from_transport(error: httpx.HTTPError) -> NetworkError:
    try:
        request = error.request
        target = f"{request.method} {request.url}"
    except RuntimeError:
        target = "request"
    if isinstance(error, httpx.TimeoutException):
        return NetworkError(f"Timed out waiting for {target}.", code="TIMEOUT")
    return NetworkError(f"Could not reach the explorer API ({target}): {error}")


def decode_json(response: httpx.Response) -> dict:
    try:
        payload = response.json()
    except ValueError as error:
        raise ServerError(
            "Explorer API returned a response that is not valid JSON.",
            code="MALFORMED_RESPONSE",
            status_code=response.status_code,
        ) from error
    if not isinstance(payload, dict):
        raise ServerError(
            "Explorer API response must be a JSON object.",
            code="MALFORMED_RESPONSE",
            status_code=response.status_code,
        )
    return payload
