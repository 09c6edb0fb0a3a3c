import server


EXPECTED_SERVER_EXPORTS = (
    "ExplorerClient",
    "load_env",
    "load_settings",
    "setup_logging",
    "register_tools",
    "mount_health_route",
    "print_tool_list",
    "create_mcp",
    "main",
)


def test_server_export_surface() -> None:
    missing = [name for name in EXPECTED_SERVER_EXPORTS if not hasattr(server, name)]
    assert missing == []
