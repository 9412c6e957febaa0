"""
Chrome DevTools Protocol driver.

Provides:
- CdpConnection: WebSocket CDP connection with bounded command timeouts
- CdpDriver: Driver capabilities implemented through Runtime.evaluate
"""

from __future__ import annotations

import json
import logging
import socket
import time
from contextlib import suppress
from typing import Any

import websocket

from ..errors import DriverError
from .base import ElementRef

logger = logging.getLogger("storefront.flows.cdp")


def _transport_error(exc: BaseException) -> DriverError:
    msg = str(exc)
    low = msg.lower()
    if isinstance(exc, ConnectionResetError) or "connection reset" in low or "err_connection_reset" in low:
        return DriverError(kind="connection_reset", message=msg or "connection reset")
    if isinstance(exc, TimeoutError) or "timed out" in low:
        return DriverError(kind="timeout", message=msg or "timed out")
    return DriverError(kind="transport", message=msg or type(exc).__name__)


class CdpConnection:
    """Low-level CDP WebSocket connection."""

    def __init__(self, ws_url: str, timeout: float = 5.0):
        try:
            self.ws = websocket.create_connection(ws_url, timeout=timeout)
        except Exception as exc:  # noqa: BLE001
            raise _transport_error(exc) from exc
        self.ws_url = ws_url
        self.timeout = timeout
        self._next_id = 1
        # Events that arrive while waiting for a command response are kept for wait_for_event().
        self._event_queue: list[dict[str, Any]] = []
        self._max_event_queue = 500

    def _push_event(self, event: dict[str, Any]) -> None:
        self._event_queue.append(event)
        if len(self._event_queue) > self._max_event_queue:
            del self._event_queue[: len(self._event_queue) - self._max_event_queue]

    def pop_event(self, event_name: str) -> dict[str, Any] | None:
        """Pop the oldest queued event params for the given event name."""
        for i, ev in enumerate(self._event_queue):
            if ev.get("method") == event_name:
                self._event_queue.pop(i)
                params = ev.get("params")
                return params if isinstance(params, dict) else {}
        return None

    def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Send CDP command and wait for response."""
        msg_id = self._next_id
        self._next_id += 1

        msg: dict[str, Any] = {"id": msg_id, "method": method}
        if params:
            msg["params"] = params

        try:
            self.ws.settimeout(min(2.0, max(0.5, float(self.timeout))))
            self.ws.send(json.dumps(msg))
        except Exception as exc:  # noqa: BLE001
            raise _transport_error(exc) from exc

        return self._recv_until(msg_id)

    def _recv(self, remaining: float) -> dict[str, Any] | None:
        """Receive one message; None on a socket timeout or undecodable frame."""
        try:
            # recv() blocks forever without a socket timeout.
            self.ws.settimeout(min(0.5, remaining))
            raw = self.ws.recv()
        except Exception as exc:  # noqa: BLE001
            if isinstance(exc, (TimeoutError, websocket.WebSocketTimeoutException)) or "timed out" in str(exc).lower():
                return None
            raise _transport_error(exc) from exc
        try:
            data = json.loads(raw)
        except (TypeError, json.JSONDecodeError):
            return None
        return data if isinstance(data, dict) else None

    def _recv_until(self, expected_id: int) -> dict[str, Any]:
        deadline = time.monotonic() + self.timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise DriverError(kind="timeout", message="CDP response timed out")
            data = self._recv(remaining)
            if data is None:
                continue
            if isinstance(data.get("method"), str) and "id" not in data:
                self._push_event(data)
                continue
            if data.get("id") == expected_id:
                if "error" in data:
                    raise DriverError(kind="transport", message=str(data["error"]))
                result = data.get("result")
                return result if isinstance(result, dict) else {}

    def wait_for_event(self, event_name: str, timeout: float = 10.0) -> dict[str, Any] | None:
        queued = self.pop_event(event_name)
        if queued is not None:
            return queued

        deadline = time.monotonic() + timeout
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return None
            data = self._recv(remaining)
            if data is None:
                continue
            if isinstance(data.get("method"), str) and "id" not in data:
                if data.get("method") == event_name:
                    params = data.get("params")
                    return params if isinstance(params, dict) else {}
                self._push_event(data)

    def close(self) -> None:
        # A raw socket shutdown cannot hang the way a close handshake can.
        sock = getattr(self.ws, "sock", None)
        if sock is not None:
            with suppress(OSError):
                sock.shutdown(socket.SHUT_RDWR)
            with suppress(OSError):
                sock.close()


_FIND_JS = "const el = document.querySelector(arguments[0]);"

_CLICK_JS = (
    _FIND_JS
    + """
if (!el) return {ok: false, reason: 'no_such_element'};
try { el.scrollIntoView({block: 'center', inline: 'center'}); } catch (e) {}
el.click();
return {ok: true};
"""
)

_TYPE_JS = (
    _FIND_JS
    + """
if (!el) return {ok: false, reason: 'no_such_element'};
el.focus();
const proto = Object.getPrototypeOf(el);
const desc = proto ? Object.getOwnPropertyDescriptor(proto, 'value') : null;
// The native setter is what controlled (React) inputs observe.
if (desc && typeof desc.set === 'function') { desc.set.call(el, arguments[1]); } else { el.value = arguments[1]; }
el.dispatchEvent(new Event('input', {bubbles: true}));
el.dispatchEvent(new Event('change', {bubbles: true}));
return {ok: true};
"""
)

_VISIBLE_JS = (
    _FIND_JS
    + """
if (!el) return false;
const style = window.getComputedStyle(el);
if (style.visibility === 'hidden' || style.display === 'none') return false;
return el.getClientRects().length > 0;
"""
)

_TEXT_JS = (
    _FIND_JS
    + """
if (!el) return {ok: false, reason: 'no_such_element'};
return {ok: true, text: String(el.innerText || el.textContent || '')};
"""
)


class CdpDriver:
    """Driver capabilities over one page target."""

    def __init__(self, connection: CdpConnection, *, target_id: str = "") -> None:
        self.conn = connection
        self.target_id = target_id
        self._runtime_enabled = False
        self._page_enabled = False

    def _enable(self) -> None:
        if not self._page_enabled:
            self.conn.send("Page.enable")
            self._page_enabled = True
        if not self._runtime_enabled:
            self.conn.send("Runtime.enable")
            self._runtime_enabled = True

    def evaluate(self, expression: str) -> Any:
        """Evaluate an expression by value; undefined and null map to None."""
        self._enable()
        result = self.conn.send(
            "Runtime.evaluate",
            {"expression": expression, "returnByValue": True, "awaitPromise": True},
        )
        details = result.get("exceptionDetails")
        if isinstance(details, dict):
            exc = details.get("exception") if isinstance(details.get("exception"), dict) else {}
            message = exc.get("description") or details.get("text") or "JavaScript exception"
            raise DriverError(kind="javascript", message=str(message))
        value = result.get("result")
        if not isinstance(value, dict):
            return None
        if value.get("type") == "undefined":
            return None
        if value.get("type") == "object" and value.get("subtype") == "null":
            return None
        return value.get("value")

    def eval_predicate(self, script: str, args: list[Any] | tuple[Any, ...] = ()) -> Any:
        """Run a function body (``return ...;`` with ``arguments[i]``)."""
        expression = f"(function() {{\n{script}\n}}).apply(null, {json.dumps(list(args))})"
        return self.evaluate(expression)

    def _element_call(self, script: str, ref: ElementRef, *extra: Any) -> dict[str, Any]:
        res = self.eval_predicate(script, [ref.css, *extra])
        if not isinstance(res, dict):
            raise DriverError(kind="javascript", message=f"unexpected result for {ref}: {res!r}")
        if not res.get("ok"):
            raise DriverError(kind=str(res.get("reason") or "no_such_element"), message=f"element not found: {ref}")
        return res

    def click(self, ref: ElementRef) -> None:
        logger.debug("click %s", ref)
        self._element_call(_CLICK_JS, ref)

    def type(self, ref: ElementRef, text: str) -> None:
        logger.debug("type into %s", ref)
        self._element_call(_TYPE_JS, ref, str(text))

    def is_visible(self, ref: ElementRef) -> bool:
        return bool(self.eval_predicate(_VISIBLE_JS, [ref.css]))

    def get_text(self, ref: ElementRef) -> str:
        return str(self._element_call(_TEXT_JS, ref).get("text") or "")

    def current_url(self) -> str:
        return str(self.evaluate("window.location.href") or "")

    def navigate(self, url: str, *, timeout: float = 15.0) -> None:
        """Navigate and wait for the load event."""
        self._enable()
        result = self.conn.send("Page.navigate", {"url": url})
        error_text = result.get("errorText")
        if error_text:
            kind = "connection_reset" if "ERR_CONNECTION_RESET" in str(error_text) else "navigation"
            raise DriverError(kind=kind, message=f"{url}: {error_text}")
        if self.conn.wait_for_event("Page.loadEventFired", timeout=timeout) is None:
            raise DriverError(kind="timeout", message=f"load event not fired for {url} within {timeout}s")

    def close(self) -> None:
        self.conn.close()


__all__ = ["CdpConnection", "CdpDriver"]
