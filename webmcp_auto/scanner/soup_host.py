"""In-memory document host backed by BeautifulSoup.

Element state (value, checked, selected option) lives in the parsed tree, so
tools built against a SoupDocument always act on the current tree. Event
listeners, native activation and structural-change notifications are
emulated closely enough for the instrumentor and for tests.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional
from urllib.parse import urljoin, urlsplit

from bs4 import BeautifulSoup, Tag

logger = logging.getLogger(__name__)

Listener = Callable[["SoupEvent"], Any]


@dataclass
class SoupEvent:
    type: str
    target: "SoupElement"
    bubbles: bool = False
    cancelable: bool = False
    default_prevented: bool = False
    current_target: Optional["SoupElement"] = None
    propagation_stopped: bool = False

    def prevent_default(self) -> None:
        if self.cancelable:
            self.default_prevented = True

    def stop_propagation(self) -> None:
        self.propagation_stopped = True


@dataclass
class SoupObservation:
    document: "SoupDocument"
    callback: Callable[[], None]
    active: bool = field(default=True)

    def disconnect(self) -> None:
        if self.active:
            self.active = False
            self.document._observations.remove(self)


def _dom_string(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class SoupElement:
    def __init__(self, document: "SoupDocument", tag: Tag) -> None:
        self.document = document
        self.tag = tag

    def __eq__(self, other: object) -> bool:
        return isinstance(other, SoupElement) and other.tag is self.tag

    def __hash__(self) -> int:
        return id(self.tag)

    def __repr__(self) -> str:
        return f"SoupElement(<{self.tag_name}>)"

    @property
    def tag_name(self) -> str:
        return (self.tag.name or "").lower()

    def get_attribute(self, name: str) -> Optional[str]:
        value = self.tag.get(name)
        if value is None:
            return None
        return value if isinstance(value, str) else " ".join(value)

    def set_attribute(self, name: str, value: str) -> None:
        self.tag[name] = value

    def remove_attribute(self, name: str) -> None:
        self.tag.attrs.pop(name, None)

    def text_content(self) -> str:
        return self.tag.get_text()

    def query_selector(self, selector: str) -> Optional["SoupElement"]:
        return self.document.wrap(self.tag.select_one(selector))

    def query_selector_all(self, selector: str) -> list["SoupElement"]:
        return [self.document.wrap(tag) for tag in self.tag.select(selector)]

    def matches(self, selector: str) -> bool:
        return self.tag.css.match(selector)

    def closest(self, selector: str) -> Optional["SoupElement"]:
        return self.document.wrap(self.tag.css.closest(selector))

    @property
    def parent(self) -> Optional["SoupElement"]:
        parent = self.tag.parent
        if parent is None or isinstance(parent, BeautifulSoup):
            return None
        return self.document.wrap(parent)

    # form control state

    def _options(self) -> list[Tag]:
        return self.tag.find_all("option")

    @staticmethod
    def _option_value(option: Tag) -> str:
        value = option.get("value")
        return value if value is not None else option.get_text().strip()

    def option_values(self) -> list[str]:
        return [self._option_value(option) for option in self._options()]

    @property
    def value(self) -> str:
        if self.tag_name == "select":
            options = self._options()
            for option in options:
                if option.has_attr("selected"):
                    return self._option_value(option)
            return self._option_value(options[0]) if options else ""
        if self.tag_name == "textarea":
            return self.tag.get_text()
        return self.get_attribute("value") or ""

    def set_value(self, value: Any) -> None:
        text = _dom_string(value)
        if self.tag_name == "select":
            for option in self._options():
                if self._option_value(option) == text:
                    option["selected"] = ""
                else:
                    option.attrs.pop("selected", None)
        elif self.tag_name == "textarea":
            self.tag.string = text
        else:
            self.tag["value"] = text

    @property
    def checked(self) -> bool:
        return self.tag.has_attr("checked")

    def set_checked(self, checked: bool) -> None:
        if checked:
            self.tag["checked"] = ""
        else:
            self.tag.attrs.pop("checked", None)

    # events

    def add_event_listener(self, event_type: str, listener: Listener) -> None:
        self.document.add_event_listener(self, event_type, listener)

    def dispatch_event(self, event_type: str, *, bubbles: bool = False, cancelable: bool = False) -> bool:
        event = SoupEvent(type=event_type, target=self, bubbles=bubbles, cancelable=cancelable)
        return self.document.dispatch(event)

    def _is_submit_button(self) -> bool:
        if self.tag_name == "button":
            return (self.get_attribute("type") or "submit").lower() == "submit"
        return self.tag_name == "input" and (self.get_attribute("type") or "").lower() == "submit"

    def click(self) -> None:
        """Fire a click and run the element's activation behaviour unless a listener cancelled it."""
        if not self.dispatch_event("click", bubbles=True, cancelable=True):
            return
        if self.tag_name == "a":
            href = self.get_attribute("href")
            if href and not href.strip().lower().startswith("javascript:"):
                self.document.navigate(urljoin(self.document.location, href))
        elif self.tag_name == "input" and (self.get_attribute("type") or "").lower() == "checkbox":
            self.set_checked(not self.checked)
        elif self._is_submit_button():
            form = self.closest("form")
            if form is not None:
                form.dispatch_event("submit", bubbles=True, cancelable=True)


class SoupDocument:
    def __init__(self, html: str, url: str = "http://localhost/", ready_state: str = "complete") -> None:
        self.soup = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)
        self.url = url
        self._ready_state = ready_state
        self._ready_listeners: list[Callable[[], None]] = []
        self._observations: list[SoupObservation] = []
        self._listeners: dict[int, tuple[Tag, dict[str, list[Listener]]]] = {}
        self.dispatched: list[SoupEvent] = []
        self.navigations: list[str] = []

    @property
    def location(self) -> str:
        return self.url

    @property
    def origin(self) -> str:
        parts = urlsplit(self.url)
        return f"{parts.scheme}://{parts.netloc}"

    @property
    def ready_state(self) -> str:
        return self._ready_state

    def add_ready_listener(self, callback: Callable[[], None]) -> None:
        self._ready_listeners.append(callback)

    def mark_ready(self) -> None:
        """Finish loading; the equivalent of DOMContentLoaded."""
        if self._ready_state != "loading":
            return
        self._ready_state = "interactive"
        listeners, self._ready_listeners = self._ready_listeners, []
        for callback in listeners:
            callback()

    def wrap(self, tag: Optional[Tag]) -> Optional[SoupElement]:
        if tag is None or isinstance(tag, BeautifulSoup):
            return None
        return SoupElement(self, tag)

    @property
    def body(self) -> SoupElement:
        body = self.soup.body
        if body is None:
            return SoupElement(self, self.soup)
        return SoupElement(self, body)

    def query_selector(self, selector: str) -> Optional[SoupElement]:
        return self.wrap(self.soup.select_one(selector))

    def query_selector_all(self, selector: str) -> list[SoupElement]:
        return [SoupElement(self, tag) for tag in self.soup.select(selector)]

    def navigate(self, url: str) -> None:
        logger.debug("soup_document_navigate url=%s", url)
        self.navigations.append(url)

    # structural changes

    def observe(self, callback: Callable[[], None]) -> SoupObservation:
        observation = SoupObservation(self, callback)
        self._observations.append(observation)
        return observation

    def _structure_changed(self) -> None:
        for observation in list(self._observations):
            if observation.active:
                observation.callback()

    def append_html(self, html: str, parent: Optional[SoupElement] = None) -> list[SoupElement]:
        target = parent.tag if parent is not None else self.body.tag
        fragment = BeautifulSoup(html, "html.parser", multi_valued_attributes=None)
        added: list[SoupElement] = []
        for child in list(fragment.contents):
            target.append(child.extract())
            if isinstance(child, Tag):
                added.append(SoupElement(self, child))
        self._structure_changed()
        return added

    def remove(self, element: SoupElement) -> None:
        element.tag.extract()
        self._structure_changed()

    # events

    def add_event_listener(self, element: SoupElement, event_type: str, listener: Listener) -> None:
        _, by_type = self._listeners.setdefault(id(element.tag), (element.tag, {}))
        by_type.setdefault(event_type, []).append(listener)

    def _listeners_for(self, tag: Tag, event_type: str) -> list[Listener]:
        entry = self._listeners.get(id(tag))
        if entry is None or entry[0] is not tag:
            return []
        return list(entry[1].get(event_type, []))

    def dispatch(self, event: SoupEvent) -> bool:
        self.dispatched.append(event)
        path = [event.target.tag]
        if event.bubbles:
            path.extend(parent for parent in event.target.tag.parents if not isinstance(parent, BeautifulSoup))
        for tag in path:
            event.current_target = SoupElement(self, tag)
            for listener in self._listeners_for(tag, event.type):
                listener(event)
            if event.propagation_stopped:
                break
        event.current_target = None
        return not event.default_prevented

    def events_of(self, target: Optional[SoupElement] = None, event_type: Optional[str] = None) -> list[SoupEvent]:
        return [
            event
            for event in self.dispatched
            if (target is None or event.target == target) and (event_type is None or event.type == event_type)
        ]
