"""
Driver capability boundary.

The flows only ever talk to a Driver through the capabilities declared here;
element lookup, clicking and typing are the driver's business. A Session owns
one driver (one browser context) for one scenario.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ..config import FlowConfig


@dataclass(frozen=True)
class ElementRef:
    """Opaque handle a driver resolves to a live element."""

    name: str
    css: str
    element_id: str | None = None

    @classmethod
    def by_id(cls, name: str, element_id: str) -> ElementRef:
        return cls(name=name, css=f"#{element_id}", element_id=element_id)

    @classmethod
    def by_css(cls, name: str, css: str) -> ElementRef:
        return cls(name=name, css=css)

    def __str__(self) -> str:
        return f"{self.name} ({self.css})"


@runtime_checkable
class Driver(Protocol):
    def click(self, ref: ElementRef) -> None: ...

    def type(self, ref: ElementRef, text: str) -> None: ...

    def is_visible(self, ref: ElementRef) -> bool: ...

    def get_text(self, ref: ElementRef) -> str: ...

    def current_url(self) -> str: ...

    def eval_predicate(self, script: str, args: list[Any] | tuple[Any, ...] = ()) -> Any: ...


@dataclass
class Session:
    """One exclusive browser context for one scenario execution."""

    session_id: str
    driver: Driver
    info: dict[str, Any] = field(default_factory=dict)
    closed: bool = False

    def mark_closed(self) -> bool:
        """Flip to closed; returns False if it already was."""
        if self.closed:
            return False
        self.closed = True
        return True


class SessionFactory(Protocol):
    def open(self, config: FlowConfig) -> Session: ...

    def close(self, session: Session) -> None: ...


__all__ = ["Driver", "ElementRef", "Session", "SessionFactory"]
