"""Capability surface the scanner needs from a document host.

Anything tree-shaped can be instrumented as long as it provides these
operations: a live browser page through Playwright, an in-memory
BeautifulSoup tree, or a test double.
"""

from __future__ import annotations

from typing import Any, Callable, Literal, Optional, Protocol, Sequence

ElementContext = Literal["form", "button", "link", "input"]

CONTROL_SELECTOR = "input, select, textarea"


class HostElement(Protocol):
    @property
    def tag_name(self) -> str:
        """Lowercase tag name."""
        ...

    def get_attribute(self, name: str) -> Optional[str]: ...

    def text_content(self) -> str: ...

    def query_selector(self, selector: str) -> Optional["HostElement"]: ...

    def query_selector_all(self, selector: str) -> Sequence["HostElement"]: ...

    def matches(self, selector: str) -> bool: ...

    def closest(self, selector: str) -> Optional["HostElement"]:
        """Nearest inclusive ancestor matching selector, like Element.closest."""
        ...

    def option_values(self) -> list[str]: ...

    def set_value(self, value: Any) -> None: ...

    def set_checked(self, checked: bool) -> None: ...

    def dispatch_event(self, event_type: str, *, bubbles: bool = False, cancelable: bool = False) -> bool: ...

    def click(self) -> None:
        """Native activation."""
        ...


class Observation(Protocol):
    def disconnect(self) -> None: ...


class HostDocument(Protocol):
    @property
    def location(self) -> str: ...

    @property
    def origin(self) -> str: ...

    @property
    def ready_state(self) -> str: ...

    def query_selector_all(self, selector: str) -> Sequence[HostElement]: ...

    def add_ready_listener(self, callback: Callable[[], None]) -> None: ...

    def observe(self, callback: Callable[[], None]) -> Observation:
        """Subscribe to structural changes anywhere under the document body."""
        ...


def control_kind(element: HostElement) -> str:
    """Equivalent of the DOM `type` property for form controls."""
    tag = element.tag_name
    if tag == "select":
        return "select-multiple" if element.get_attribute("multiple") is not None else "select-one"
    if tag == "textarea":
        return "textarea"
    return (element.get_attribute("type") or "text").strip().lower()


def field_key(element: HostElement) -> Optional[str]:
    return element.get_attribute("name") or element.get_attribute("id") or None


def trimmed_text(element: HostElement, limit: int) -> str:
    return (element.text_content() or "").strip()[:limit]
