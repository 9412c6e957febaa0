from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from .sync.policy import FlowTimings, resolve_timings

DEFAULT_BASE_URL = "https://www.saucedemo.com/"

DEFAULT_BINARY_CANDIDATES: list[str] = [
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/usr/local/bin/chromium",
    "/opt/chromium/chromium",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "C:\\Program Files\\Chromium\\Application\\chrome.exe",
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/usr/bin/google-chrome",
    "/usr/bin/google-chrome-stable",
    "/opt/google/chrome/chrome",
    "C:\\Program Files\\Google\\Chrome\\Application\\chrome.exe",
    "C:\\Program Files (x86)\\Google\\Chrome\\Application\\chrome.exe",
    # Snap builds ignore --user-data-dir; last resort only.
    "/snap/bin/chromium",
]


def expand_path(raw: str) -> str:
    return str(Path(raw).expanduser())


def _env_float(name: str, fallback: float) -> float:
    try:
        return float(os.environ.get(name, fallback))
    except ValueError:
        return fallback


def _env_int(name: str, fallback: int) -> int:
    try:
        return int(os.environ.get(name, fallback))
    except ValueError:
        return fallback


@dataclass
class FlowConfig:
    base_url: str = DEFAULT_BASE_URL
    binary_path: str = "google-chrome"
    profile_path: str = "~/.cache/storefront-flows/profile"
    cdp_port: int = 9222
    mode: str = "launch"
    headless: bool = True
    extra_flags: list[str] = field(default_factory=list)
    cdp_timeout: float = 5.0
    timeout_profile: str = "default"
    session_retry_backoff_s: float = 1.2
    log_level: str = "INFO"
    timings: FlowTimings = field(default_factory=resolve_timings)

    @staticmethod
    def normalize_mode(raw: str | None) -> str:
        mode = (raw or "").strip().lower()
        if mode in {"attach", "connect", "external"}:
            return "attach"
        return "launch"

    @classmethod
    def detect_binary(cls) -> str:
        env_path = os.environ.get("STOREFRONT_BROWSER_BINARY")
        if env_path:
            return expand_path(env_path)
        for candidate in DEFAULT_BINARY_CANDIDATES:
            path = Path(candidate)
            if path.exists() and os.access(str(path), os.X_OK):
                return str(path)
        # Last resort: rely on PATH lookup
        return "google-chrome"

    @classmethod
    def from_env(cls, *, profile: str | None = None) -> FlowConfig:
        timeout_profile = (profile or os.environ.get("STOREFRONT_TIMEOUT_PROFILE") or "default").strip().lower()
        flags_raw = os.environ.get("STOREFRONT_BROWSER_FLAGS", "")
        return cls(
            base_url=os.environ.get("STOREFRONT_BASE_URL", DEFAULT_BASE_URL),
            binary_path=cls.detect_binary(),
            profile_path=expand_path(os.environ.get("STOREFRONT_BROWSER_PROFILE", "~/.cache/storefront-flows/profile")),
            cdp_port=_env_int("STOREFRONT_BROWSER_PORT", 9222),
            mode=cls.normalize_mode(os.environ.get("STOREFRONT_BROWSER_MODE")),
            headless=os.environ.get("STOREFRONT_HEADLESS", "1") != "0",
            extra_flags=[flag.strip() for flag in flags_raw.split(",") if flag.strip()],
            cdp_timeout=_env_float("STOREFRONT_CDP_TIMEOUT", 5.0),
            timeout_profile=timeout_profile,
            session_retry_backoff_s=_env_float("STOREFRONT_SESSION_RETRY_BACKOFF", 1.2),
            log_level=(os.environ.get("STOREFRONT_LOG_LEVEL") or "INFO").strip().upper(),
            timings=resolve_timings(timeout_profile),
        )
