from __future__ import annotations

import contextlib
import json
import logging
import socket
import subprocess
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from ..config import FlowConfig, expand_path
from ..errors import DriverError
from .base import Session
from .cdp import CdpConnection, CdpDriver

logger = logging.getLogger("storefront.flows.launcher")


def _http_get_json(url: str, timeout: float = 2.0) -> Any:
    """Fetch JSON from a CDP discovery endpoint."""
    try:
        req = Request(url, headers={"User-Agent": "storefront-flows"})
        with urlopen(req, timeout=timeout) as resp:
            return json.loads(resp.read().decode())
    except ConnectionResetError as exc:
        raise DriverError(kind="connection_reset", message=str(exc)) from exc
    except (URLError, OSError, json.JSONDecodeError) as exc:
        reason = getattr(exc, "reason", None)
        if isinstance(reason, ConnectionResetError):
            raise DriverError(kind="connection_reset", message=str(exc)) from exc
        raise DriverError(kind="transport", message=f"{url}: {exc}") from exc


@dataclass
class LaunchResult:
    command: list[str]
    started: bool
    message: str


class BrowserLauncher:
    def __init__(self, config: FlowConfig | None = None) -> None:
        self.config = config or FlowConfig.from_env()
        self.process: subprocess.Popen | None = None

    def _port_available(self, timeout: float = 0.2) -> bool:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
            sock.settimeout(timeout)
            try:
                return sock.connect_ex(("127.0.0.1", self.config.cdp_port)) != 0
            except OSError:
                return False

    def cdp_ready(self, timeout: float = 0.4) -> bool:
        """Return True if the CDP HTTP endpoint responds."""
        endpoint = f"http://127.0.0.1:{self.config.cdp_port}/json/version"
        try:
            with urlopen(endpoint, timeout=timeout) as resp:
                return resp.status == 200
        except (OSError, TimeoutError, URLError):
            return False

    def build_launch_command(self) -> list[str]:
        flags = [
            f"--remote-debugging-port={self.config.cdp_port}",
            f"--user-data-dir={expand_path(self.config.profile_path)}",
            "--remote-allow-origins=*",
            "--no-first-run",
            "--no-default-browser-check",
            "--disable-dev-shm-usage",
        ]
        if self.config.headless:
            flags.append("--headless=new")
        else:
            flags.append("--window-size=1280,900")
        return [self.config.binary_path, *flags, *self.config.extra_flags]

    def ensure_running(self, timeout: float = 10.0) -> LaunchResult:
        if self.config.mode == "attach":
            if self.cdp_ready():
                return LaunchResult([], False, "Attached to existing Chrome on CDP port")
            raise DriverError(
                kind="transport",
                message=f"attach mode: no Chrome listening on CDP port {self.config.cdp_port}",
            )

        if self.cdp_ready():
            return LaunchResult([], False, "Chrome already listening on CDP port")
        if not self._port_available():
            raise DriverError(kind="transport", message=f"port {self.config.cdp_port} already in use")

        with contextlib.suppress(OSError):
            Path(expand_path(self.config.profile_path)).mkdir(parents=True, exist_ok=True)

        cmd = self.build_launch_command()
        try:
            self.process = subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as exc:
            raise DriverError(kind="transport", message=f"failed to launch {cmd[0]}: {exc}") from exc

        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self.cdp_ready():
                logger.info("Chrome launched on CDP port %d", self.config.cdp_port)
                return LaunchResult(cmd, True, "Chrome launched")
            time.sleep(0.1)
        self.stop()
        raise DriverError(kind="timeout", message="Chrome launch timed out")

    def stop(self, *, timeout: float = 2.0) -> bool:
        """Best-effort stop of the launcher-owned Chrome process."""
        proc = self.process
        if proc is None:
            return False
        self.process = None
        if proc.poll() is not None:
            return True
        with contextlib.suppress(OSError):
            proc.terminate()
        try:
            proc.wait(timeout=max(0.1, float(timeout)))
        except subprocess.TimeoutExpired:
            with contextlib.suppress(OSError):
                proc.kill()
        return True


class CdpSessionFactory:
    """Open one isolated browser context per session.

    ``open`` creates a browser context and a page target inside it, connects a
    CdpDriver and navigates to the storefront; ``close`` disposes the context,
    which closes its targets and drops its cookies and storage.
    """

    def __init__(self, config: FlowConfig) -> None:
        self.config = config

    def _endpoint(self, path: str) -> str:
        return f"http://127.0.0.1:{self.config.cdp_port}{path}"

    def _browser_connection(self) -> CdpConnection:
        version = _http_get_json(self._endpoint("/json/version"))
        ws_url = version.get("webSocketDebuggerUrl") if isinstance(version, dict) else None
        if not ws_url:
            raise DriverError(kind="transport", message="CDP browser WebSocket URL not found")
        return CdpConnection(ws_url, timeout=self.config.cdp_timeout)

    def _target_ws_url(self, target_id: str) -> str:
        targets = _http_get_json(self._endpoint("/json/list")) or []
        for target in targets:
            if isinstance(target, dict) and target.get("id") == target_id:
                ws_url = target.get("webSocketDebuggerUrl")
                if ws_url:
                    return str(ws_url)
        raise DriverError(kind="transport", message=f"target {target_id} has no WebSocket URL")

    def _dispose_context(self, browser: CdpConnection, context_id: str) -> None:
        browser.send("Target.disposeBrowserContext", {"browserContextId": context_id})

    def open(self, config: FlowConfig | None = None) -> Session:
        cfg = config or self.config
        browser = self._browser_connection()
        context_id = None
        try:
            context_id = browser.send("Target.createBrowserContext", {"disposeOnDetach": False}).get(
                "browserContextId"
            )
            target_id = browser.send(
                "Target.createTarget", {"url": "about:blank", "browserContextId": context_id}
            ).get("targetId")
            if not target_id:
                raise DriverError(kind="transport", message="failed to create page target")
        except Exception:
            if context_id:
                try:
                    self._dispose_context(browser, context_id)
                except Exception as cleanup_exc:  # noqa: BLE001
                    logger.warning("dispose of browser context %s failed: %s", context_id, cleanup_exc)
            raise
        finally:
            browser.close()

        session = Session(
            session_id=str(target_id),
            driver=None,  # type: ignore[arg-type]
            info={"browser_context_id": context_id, "target_id": target_id},
        )
        try:
            conn = CdpConnection(self._target_ws_url(str(target_id)), timeout=cfg.cdp_timeout)
            driver = CdpDriver(conn, target_id=str(target_id))
            session.driver = driver
            driver.navigate(cfg.base_url)
        except Exception:
            # The initialization error is what the caller retries on.
            try:
                self.close(session)
            except Exception as cleanup_exc:  # noqa: BLE001
                logger.warning("cleanup of session %s failed: %s", session.session_id, cleanup_exc)
            raise
        logger.info("session %s opened at %s", session.session_id, cfg.base_url)
        return session

    def close(self, session: Session) -> None:
        """Dispose the session's context; the session is marked closed only once that succeeds."""
        if session.closed:
            return
        driver = session.driver
        if isinstance(driver, CdpDriver):
            driver.close()
        context_id = session.info.get("browser_context_id")
        browser = self._browser_connection()
        try:
            if context_id:
                self._dispose_context(browser, context_id)
            else:
                browser.send("Target.closeTarget", {"targetId": session.session_id})
        finally:
            browser.close()
        session.mark_closed()
        logger.info("session %s closed", session.session_id)


__all__ = ["BrowserLauncher", "CdpSessionFactory", "LaunchResult"]
