from __future__ import annotations

import itertools
import logging
import os
from typing import Any, Callable, Optional

from playwright.sync_api import (
    Browser,
    BrowserContext,
    ElementHandle,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    sync_playwright,
)

from ..config import settings
from .errors import HostError

logger = logging.getLogger(__name__)

_binding_ids = itertools.count()


class PlaywrightElement:
    """HostElement over a live Playwright element handle."""

    def __init__(self, document: "PlaywrightDocument", handle: ElementHandle) -> None:
        self.document = document
        self.handle = handle
        self._tag_name: Optional[str] = None

    def __repr__(self) -> str:
        return f"PlaywrightElement(<{self.tag_name}>)"

    @property
    def tag_name(self) -> str:
        if self._tag_name is None:
            self._tag_name = (self.handle.evaluate("(el) => el.tagName.toLowerCase()") or "").lower()
        return self._tag_name

    def get_attribute(self, name: str) -> Optional[str]:
        return self.handle.get_attribute(name)

    def text_content(self) -> str:
        return self.handle.text_content() or ""

    def query_selector(self, selector: str) -> Optional["PlaywrightElement"]:
        return self.document.wrap(self.handle.query_selector(selector))

    def query_selector_all(self, selector: str) -> list["PlaywrightElement"]:
        return [PlaywrightElement(self.document, h) for h in self.handle.query_selector_all(selector)]

    def matches(self, selector: str) -> bool:
        return bool(self.handle.evaluate("(el, selector) => el.matches(selector)", selector))

    def closest(self, selector: str) -> Optional["PlaywrightElement"]:
        found = self.handle.evaluate_handle("(el, selector) => el.closest(selector)", selector)
        return self.document.wrap(found.as_element())

    def option_values(self) -> list[str]:
        return self.handle.evaluate("(el) => Array.from(el.options || []).map((o) => o.value)") or []

    def set_value(self, value: Any) -> None:
        self.handle.evaluate("(el, value) => { el.value = value; }", value)

    def set_checked(self, checked: bool) -> None:
        self.handle.evaluate("(el, checked) => { el.checked = checked; }", bool(checked))

    def dispatch_event(self, event_type: str, *, bubbles: bool = False, cancelable: bool = False) -> bool:
        return bool(
            self.handle.evaluate(
                "(el, [type, init]) => el.dispatchEvent(new Event(type, init))",
                [event_type, {"bubbles": bubbles, "cancelable": cancelable}],
            )
        )

    def click(self) -> None:
        self.handle.evaluate("(el) => el.click()")


class PlaywrightObservation:
    def __init__(self, page: Page, observer_key: str) -> None:
        self.page = page
        self.observer_key = observer_key
        self.active = True

    def disconnect(self) -> None:
        if not self.active:
            return
        self.active = False
        try:
            self.page.evaluate(
                "(key) => { const o = window[key]; if (o) { o.disconnect(); delete window[key]; } }",
                self.observer_key,
            )
        except Exception as exc:  # pragma: no cover
            logger.debug("mutation_observer_disconnect_failed reason=%s", exc)


class PlaywrightDocument:
    """HostDocument over a Playwright page."""

    def __init__(self, page: Page) -> None:
        self.page = page

    def wrap(self, handle: Optional[ElementHandle]) -> Optional[PlaywrightElement]:
        if handle is None:
            return None
        return PlaywrightElement(self, handle)

    @property
    def location(self) -> str:
        return self.page.url

    @property
    def origin(self) -> str:
        return self.page.evaluate("() => window.location.origin")

    @property
    def ready_state(self) -> str:
        return self.page.evaluate("() => document.readyState")

    def add_ready_listener(self, callback: Callable[[], None]) -> None:
        self.page.wait_for_load_state("domcontentloaded")
        callback()

    def query_selector_all(self, selector: str) -> list[PlaywrightElement]:
        return [PlaywrightElement(self, h) for h in self.page.query_selector_all(selector)]

    def observe(self, callback: Callable[[], None]) -> PlaywrightObservation:
        """
        Bridge a page-side MutationObserver (childList + subtree on body) to callback.

        With the sync API the binding only runs while Python is inside a
        Playwright call, e.g. page.wait_for_timeout().
        """

        key = f"__webmcpAutoObserver{next(_binding_ids)}"
        self.page.expose_binding(key + "Changed", lambda _source: callback())
        self.page.evaluate(
            """
            (key) => {
                const observer = new MutationObserver(() => window[key + "Changed"]());
                observer.observe(document.body, { childList: true, subtree: true });
                window[key] = observer;
            }
            """,
            key,
        )
        return PlaywrightObservation(self.page, key)


class BrowserSession:
    def __init__(self, user_data_dir: str | None = None, headless: bool | None = None) -> None:
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self._playwright: Playwright | None = None
        self.headless = headless if headless is not None else settings.headless
        self.user_data_dir = os.path.expanduser(user_data_dir) if user_data_dir else None

    def __enter__(self) -> "BrowserSession":
        self._playwright = sync_playwright().start()
        if self.user_data_dir:
            self.context = self._playwright.chromium.launch_persistent_context(
                user_data_dir=self.user_data_dir,
                headless=self.headless,
            )
        else:
            self.browser = self._playwright.chromium.launch(headless=self.headless)
            self.context = self.browser.new_context()
        self.page = self.context.new_page()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.context:
            self.context.close()
        if self.browser:
            self.browser.close()
        if self._playwright:
            self._playwright.stop()

    def goto(self, url: str, wait_ms: int = 1500) -> None:
        """
        Navigate to a URL and give the app a moment to hydrate.
        """
        if not self.page:
            raise HostError("Browser page is not initialized. Use within a context manager.")

        self.page.goto(url, wait_until="domcontentloaded", timeout=30000)
        try:
            self.page.wait_for_load_state("networkidle", timeout=5000)
        except PlaywrightTimeoutError:
            logger.info("networkidle_wait_timed_out url=%s", url)

        if wait_ms > 0:
            self.page.wait_for_timeout(wait_ms)

    def document(self) -> PlaywrightDocument:
        if not self.page:
            raise HostError("Browser page is not initialized. Use within a context manager.")
        return PlaywrightDocument(self.page)

    def __repr__(self) -> str:
        return f"BrowserSession(headless={self.headless})"
