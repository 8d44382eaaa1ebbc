import copy

import pytest

import uniperp.core.config as config

_ENV_KEYS = (
    "RPC_URL",
    "UNICHAIN_SEPOLIA_RPC_URL",
    "CHAIN_ID",
    "PRIVATE_KEY",
    "UNIPERP_CONFIG_PATH",
    "UNIPERP_CONFIG",
)


def pytest_configure(config):
    config.addinivalue_line("markers", "smoke: mark test as a smoke test")
    config.addinivalue_line("markers", "integration: mark test as integration")


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep the operator's shell env and config.json out of unit tests."""
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
    original = copy.deepcopy(config.CONFIG)
    config.set_config({})
    yield
    config.set_config(original)
