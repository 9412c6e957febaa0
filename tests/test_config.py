from __future__ import annotations

from storefront_flows.config import DEFAULT_BASE_URL, FlowConfig
from storefront_flows.sync.policy import RetryPolicy

_ENV_KEYS = (
    "STOREFRONT_BASE_URL",
    "STOREFRONT_BROWSER_MODE",
    "STOREFRONT_BROWSER_BINARY",
    "STOREFRONT_BROWSER_PROFILE",
    "STOREFRONT_BROWSER_PORT",
    "STOREFRONT_BROWSER_FLAGS",
    "STOREFRONT_HEADLESS",
    "STOREFRONT_CDP_TIMEOUT",
    "STOREFRONT_TIMEOUT_PROFILE",
    "STOREFRONT_POLL_INTERVAL_MS",
    "STOREFRONT_TIMEOUT_SCALE",
    "STOREFRONT_SESSION_RETRY_BACKOFF",
    "STOREFRONT_LOG_LEVEL",
)


def _clear_env(monkeypatch) -> None:
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


def test_from_env_defaults(monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("STOREFRONT_BROWSER_BINARY", "/opt/chrome/chrome")

    config = FlowConfig.from_env()

    assert config.base_url == DEFAULT_BASE_URL
    assert config.binary_path == "/opt/chrome/chrome"
    assert config.mode == "launch"
    assert config.cdp_port == 9222
    assert config.headless is True
    assert config.extra_flags == []
    assert config.session_retry_backoff_s == 1.2
    assert config.log_level == "INFO"
    assert config.timings.add_to_cart == RetryPolicy(100, 2500, 2)


def test_from_env_overrides(monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("STOREFRONT_BROWSER_BINARY", "/opt/chrome/chrome")
    monkeypatch.setenv("STOREFRONT_BASE_URL", "http://localhost:3000/")
    monkeypatch.setenv("STOREFRONT_BROWSER_MODE", "Connect")
    monkeypatch.setenv("STOREFRONT_BROWSER_PORT", "9333")
    monkeypatch.setenv("STOREFRONT_BROWSER_FLAGS", "--lang=en, --mute-audio,")
    monkeypatch.setenv("STOREFRONT_HEADLESS", "0")
    monkeypatch.setenv("STOREFRONT_SESSION_RETRY_BACKOFF", "0.5")
    monkeypatch.setenv("STOREFRONT_LOG_LEVEL", "debug")
    monkeypatch.setenv("STOREFRONT_TIMEOUT_PROFILE", "slow")

    config = FlowConfig.from_env()

    assert config.base_url == "http://localhost:3000/"
    assert config.mode == "attach"
    assert config.cdp_port == 9333
    assert config.extra_flags == ["--lang=en", "--mute-audio"]
    assert config.headless is False
    assert config.session_retry_backoff_s == 0.5
    assert config.log_level == "DEBUG"
    assert config.timeout_profile == "slow"
    assert config.timings.cart_navigation.timeout_ms == 8000


def test_profile_argument_beats_env(monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("STOREFRONT_BROWSER_BINARY", "/opt/chrome/chrome")
    monkeypatch.setenv("STOREFRONT_TIMEOUT_PROFILE", "slow")

    config = FlowConfig.from_env(profile="fast")

    assert config.timeout_profile == "fast"
    assert config.timings.page_transition.timeout_ms == 1500


def test_invalid_numbers_fall_back(monkeypatch) -> None:
    _clear_env(monkeypatch)
    monkeypatch.setenv("STOREFRONT_BROWSER_BINARY", "/opt/chrome/chrome")
    monkeypatch.setenv("STOREFRONT_BROWSER_PORT", "not-a-port")
    monkeypatch.setenv("STOREFRONT_CDP_TIMEOUT", "soon")

    config = FlowConfig.from_env()

    assert config.cdp_port == 9222
    assert config.cdp_timeout == 5.0
