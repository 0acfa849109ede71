import time
from unittest.mock import AsyncMock, MagicMock

import platformdirs
import pytest
import requests

from tests.async_test_utils import make_async_iter

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Mock requests.* or Session.request."
)

_ASYNC_NETWORK_BLOCK_MSG = (
    "Async network access is blocked during tests. Mock aiohttp.ClientSession."
)


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


async def _async_block_network(*_args, **_kwargs):
    """
    Prevent async network calls during tests by raising a RuntimeError.

    Raises:
        RuntimeError: `_ASYNC_NETWORK_BLOCK_MSG` suggesting to mock `aiohttp.ClientSession`.
    """
    raise RuntimeError(_ASYNC_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """Register the markers used across the suite."""
    config.addinivalue_line(
        "markers", "asyncio: mark test as an asyncio test (auto-detected)"
    )
    config.addinivalue_line("markers", "unit: fast isolated unit tests")
    config.addinivalue_line("markers", "core_downloads: OS image download pipeline")
    config.addinivalue_line("markers", "configuration: configuration and setup")
    config.addinivalue_line("markers", "cli: command-line interface")


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point XDG and platformdirs locations at a temporary directory tree.

    Also disables file logging and clears the osfetch environment overrides so
    a developer's own configuration never leaks into a test.
    """
    base = tmp_path_factory.mktemp("osfetch")
    cache_dir = base / "cache"
    state_dir = base / "state"
    config_dir = base / "config"
    data_dir = base / "data"
    log_dir = state_dir / "log"

    for path in (cache_dir, state_dir, config_dir, data_dir, log_dir):
        path.mkdir(parents=True, exist_ok=True)

    monkeypatch.setenv("XDG_CACHE_HOME", str(cache_dir))
    monkeypatch.setenv("XDG_STATE_HOME", str(state_dir))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(config_dir))
    monkeypatch.setenv("XDG_DATA_HOME", str(data_dir))
    monkeypatch.setenv("OSFETCH_DISABLE_FILE_LOGGING", "1")
    for env_var in ("OSFETCH_API_URL", "OSFETCH_API_TOKEN", "OSFETCH_LOG_LEVEL"):
        monkeypatch.delenv(env_var, raising=False)

    monkeypatch.setattr(
        platformdirs, "user_cache_dir", lambda *_args, **_kwargs: str(cache_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_data_dir", lambda *_args, **_kwargs: str(data_dir)
    )
    monkeypatch.setattr(
        platformdirs, "user_log_dir", lambda *_args, **_kwargs: str(log_dir)
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.post = _block_network
    requests.Session.request = _block_network

    import aiohttp

    aiohttp.request = _async_block_network
    aiohttp.ClientSession.request = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.get = _async_block_network  # type: ignore[assignment]
    aiohttp.ClientSession.post = _async_block_network  # type: ignore[assignment]


@pytest.fixture(autouse=True)
def _mock_time_sleep(monkeypatch):
    """Make time.sleep instant so retry backoff never slows the suite."""
    monkeypatch.setattr(time, "sleep", lambda *_args, **_kwargs: None)


@pytest.fixture
def base_config():
    """Effective configuration as returned by load_config() with no file present."""
    return {
        "API_URL": "https://api.example.com",
        "API_TOKEN": "test-token",
        "LOG_LEVEL": "INFO",
        "LOG_TO_FILE": False,
        "DECOMPRESS_FLUSH_MODE": "no-flush",
        "REQUEST_TIMEOUT": 30.0,
    }


# =============================================================================
# Async Test Fixtures
# =============================================================================


@pytest.fixture
def mock_async_response():
    """
    Provide a factory for mocked aiohttp responses.

    The factory accepts `status`, `headers`, `json_data` (returned by the async
    `json()`), and `content_chunks` (yielded by `content.iter_chunked`).
    `release()` is a plain Mock so tests can assert the connection was released.
    """

    def _create_response(
        status=200,
        headers=None,
        json_data=None,
        content_chunks=None,
    ):
        response = MagicMock()
        response.status = status
        response.headers = headers or {}
        response.json = AsyncMock(return_value=json_data)
        response.release = MagicMock()
        response.content.iter_chunked = MagicMock(
            return_value=make_async_iter(content_chunks or [])
        )
        return response

    return _create_response


@pytest.fixture
def mock_aiohttp_session():
    """
    Mock aiohttp.ClientSession whose `get` is an AsyncMock.

    Set `mock_aiohttp_session.get.side_effect` or `return_value` per test.
    """
    session = MagicMock()
    session.closed = False
    session.get = AsyncMock()
    session.close = AsyncMock()
    return session


@pytest.fixture
def cloud_client(mock_aiohttp_session):
    """AsyncCloudClient wired to the mocked session."""
    from osfetch.download.async_client import AsyncCloudClient

    client = AsyncCloudClient("https://api.example.com", api_token="test-token")
    client._session = mock_aiohttp_session
    return client


@pytest.fixture
def host_apps_payload():
    """
    Catalog response with one default and one ESR host app for raspberrypi4-64.

    The default app carries a prerelease, a release with known issues and two
    stable releases; 2.88.4+rev1 is the newest recommendable one.
    """
    return {
        "d": [
            {
                "app_name": "raspberrypi4-64",
                "is_for__device_type": [{"slug": "raspberrypi4-64"}],
                "application_tag": [],
                "owns__release": [
                    {"raw_version": "2.80.3+rev1", "variant": "prod", "phase": None},
                    {"raw_version": "2.88.4+rev1", "variant": "prod", "phase": None},
                    {
                        "raw_version": "2.89.0",
                        "variant": "prod",
                        "phase": None,
                        "known_issue_list": "Boot loop on some SD cards",
                    },
                    {"raw_version": "2.90.0-beta1", "variant": "prod", "phase": "next"},
                    {"raw_version": "2.88.4+rev1", "variant": "dev", "phase": None},
                ],
            },
            {
                "app_name": "raspberrypi4-64-esr",
                "is_for__device_type": [{"slug": "raspberrypi4-64"}],
                "application_tag": [{"tag_key": "release-policy", "value": "esr"}],
                "owns__release": [
                    {"raw_version": "2023.1.0", "variant": "prod", "phase": None},
                    {"raw_version": "2023.7.0", "variant": "prod", "phase": None},
                ],
            },
        ]
    }
