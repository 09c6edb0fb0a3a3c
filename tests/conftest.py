import pytest

from explorer.state_file import StateFile
from tests.api_helpers import FakeExplorerApi


@pytest.fixture
def fake_api() -> FakeExplorerApi:
    return FakeExplorerApi()


@pytest.fixture
def state_file(tmp_path) -> StateFile:
    return StateFile(tmp_path / "state.json")


@pytest.fixture(autouse=True)
def _clear_explorer_env(monkeypatch) -> None:
    for key in (
        "EXPLORER_API_URL",
        "EXPLORER_TIMEOUT",
        "EXPLORER_STATE_PATH",
        "EXPLORER_PAGE_SIZE",
        "EXPLORER_CLOCK_SKEW",
        "EXPLORER_DEBUG",
    ):
        monkeypatch.delenv(key, raising=False)
