import asyncio

import server


def _build_health_client(monkeypatch, tmp_path):
    monkeypatch.setattr(server, "load_env", lambda: None)
    monkeypatch.setattr(server, "setup_logging", lambda: False)
    monkeypatch.setattr(server, "print_tool_list", lambda _names: None)
    monkeypatch.setenv("EXPLORER_API_URL", "https://explorer.example.com/api/v1")
    monkeypatch.setenv("EXPLORER_STATE_PATH", str(tmp_path / "state.json"))
    mcp = server.create_mcp()
    app = mcp.http_app(path="/mcp", transport="streamable-http")

    from starlette.testclient import TestClient

    return mcp, TestClient(app)


def test_health_returns_200(monkeypatch, tmp_path) -> None:
    mcp, client = _build_health_client(monkeypatch, tmp_path)

    try:
        response = client.get("/health")
        assert response.status_code == 200
    finally:
        asyncio.run(mcp._explorer.aclose())


def test_health_response_format(monkeypatch, tmp_path) -> None:
    mcp, client = _build_health_client(monkeypatch, tmp_path)

    try:
        payload = client.get("/health").json()
        assert payload["status"] == "ok"
        assert payload["version"] == "0.1.0"
        assert payload["authenticated"] is False
    finally:
        asyncio.run(mcp._explorer.aclose())
