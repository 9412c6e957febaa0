"""Driver boundary and the Chrome DevTools Protocol implementation."""

from __future__ import annotations

from .base import Driver, ElementRef, Session, SessionFactory
from .cdp import CdpConnection, CdpDriver
from .launcher import BrowserLauncher, CdpSessionFactory

__all__ = [
    "BrowserLauncher",
    "CdpConnection",
    "CdpDriver",
    "CdpSessionFactory",
    "Driver",
    "ElementRef",
    "Session",
    "SessionFactory",
]
