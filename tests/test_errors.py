import httpx
import pytest

from explorer.errors import (
    AuthError,
    NetworkError,
    ServerError,
    ValidationError,
    auth_error_from_response,
    decode_json,
    error_from_response,
    error_from_transport,
    is_unauthorized,
)

_REQUEST = httpx.Request("POST", "https://explorer.example.com/api/v1/data/query")


def _response(status_code: int, **kwargs) -> httpx.Response:
    return httpx.Response(status_code, request=_REQUEST, **kwargs)


def test_401_message() -> None:
    error = error_from_response(_response(401, json={"detail": "unauthorized"}))

    assert isinstance(error, AuthError)
    assert error.message == "Authentication failed. Your session may have expired."
    assert error.code == "HTTP_401"


def test_403_message() -> None:
    error = error_from_response(_response(403, json={"detail": "forbidden"}))

    assert isinstance(error, ValidationError)
    assert error.message == "You don't have permission to perform this action."


def test_404_message() -> None:
    error = error_from_response(_response(404, json={"detail": "not found"}))

    assert error.message == "The requested resource was not found."
    assert error.status_code == 404


def test_500_message() -> None:
    error = error_from_response(_response(500, text="upstream unavailable"))

    assert isinstance(error, ServerError)
    assert error.message == "The explorer API is experiencing issues. Please try again later."


def test_server_message_used_verbatim() -> None:
    error = error_from_response(
        _response(
            400,
            json={"code": "INVALID_ARGUMENT", "message": "Unknown column 'nme'", "details": {"column": "nme"}},
        )
    )

    assert isinstance(error, ValidationError)
    assert str(error) == "Unknown column 'nme'"
    assert error.code == "INVALID_ARGUMENT"
    assert error.details == {"column": "nme"}


def test_numeric_code_stringified() -> None:
    error = error_from_response(_response(401, json={"code": 16, "message": "unauthenticated"}))

    assert error.code == "16"


@pytest.mark.parametrize(
    ("status_code", "payload", "expected"),
    [
        (401, {"message": "anything"}, True),
        (403, {"message": "Token has expired"}, True),
        (400, {"message": "the access TOKEN is EXPIRED"}, True),
        (403, {"message": "forbidden"}, False),
        (500, {"message": "token expired"}, False),
        (400, {"message": "token invalid"}, False),
        (200, {"ok": True}, False),
    ],
)
def test_is_unauthorized(status_code: int, payload: dict, expected: bool) -> None:
    assert is_unauthorized(_response(status_code, json=payload)) is expected


def test_expired_token_message_maps_to_auth_error() -> None:
    error = error_from_response(_response(403, json={"code": "7", "message": "Token has expired"}))

    assert isinstance(error, AuthError)
    assert error.status_code == 403


def test_timeout_maps_to_network_error() -> None:
    error = error_from_transport(httpx.ConnectTimeout("slow", request=_REQUEST))

    assert isinstance(error, NetworkError)
    assert error.code == "TIMEOUT"
    assert "POST" in error.message


def test_connect_error_maps_to_network_error() -> None:
    error = error_from_transport(httpx.ConnectError("refused", request=_REQUEST))

    assert error.code == "NETWORK_ERROR"
    assert "refused" in error.message


def test_transport_error_without_request() -> None:
    error = error_from_transport(httpx.ConnectError("refused"))

    assert error.code == "NETWORK_ERROR"


def test_decode_json_requires_object() -> None:
    with pytest.raises(ServerError, match="JSON object"):
        decode_json(_response(200, json=[1, 2, 3]))


def test_decode_json_returns_payload() -> None:
    assert decode_json(_response(200, json={"ok": True})) == {"ok": True}


def test_auth_error_from_response_keeps_status() -> None:
    error = auth_error_from_response(_response(403, json={"code": "7", "message": "Token has expired"}))

    assert isinstance(error, AuthError)
    assert error.status_code == 403
    assert error.message == "Token has expired"
