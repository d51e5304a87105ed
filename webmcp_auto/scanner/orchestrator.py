from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Optional

from ..config import Settings, settings as default_settings
from ..models import InputSchema, ToolAnnotations, ToolDescriptor, ToolManifest
from .descriptions import generate_description
from .form_schema import scan_form
from .handlers import create_button_handler, create_form_handler, create_link_handler, is_script_href
from .host import HostDocument, HostElement
from .naming import generate_tool_name, is_manually_instrumented
from .registry import ModelContextSink, ToolRegistry
from .watcher import ChangeWatcher, Scheduler

logger = logging.getLogger(__name__)

FORM_SELECTOR = "form"
BUTTON_SELECTOR = 'button:not(form button), [role="button"], input[type="button"]'
NAV_LINK_SELECTOR = "nav a, [role='navigation'] a, header a"

FORM_ANNOTATIONS = ToolAnnotations(read_only_hint=False, destructive_hint=False)
BUTTON_ANNOTATIONS = ToolAnnotations(read_only_hint=False)
LINK_ANNOTATIONS = ToolAnnotations(read_only_hint=True)


class ScanState(str, enum.Enum):
    IDLE = "idle"
    SCANNING = "scanning"


def _empty_schema() -> InputSchema:
    return InputSchema()


class Instrumentor:
    """Scans a document for forms, buttons and navigation links and registers a tool for each."""

    def __init__(
        self,
        document: HostDocument,
        settings: Optional[Settings] = None,
        sink: Optional[ModelContextSink] = None,
        on_tool_registered: Optional[Callable[[ToolDescriptor], Any]] = None,
        loop: Optional[Scheduler] = None,
    ) -> None:
        self.document = document
        self.settings = settings or default_settings
        self.registry = ToolRegistry(
            max_tools=self.settings.max_tools,
            sink=sink,
            on_tool_registered=on_tool_registered,
            verbose=self.settings.debug,
        )
        self.watcher = ChangeWatcher(
            document,
            self._on_structure_changed,
            delay=self.settings.debounce_seconds,
            loop=loop,
        )
        self.state = ScanState.IDLE
        self._rescan_requested = False

    def _log(self, message: str, *args: Any) -> None:
        if self.settings.debug:
            logger.info(message, *args)

    # lifecycle

    def start(self) -> None:
        if self.document.ready_state == "loading":
            self.document.add_ready_listener(self._on_ready)
        else:
            self._on_ready()

    def _on_ready(self) -> None:
        self.scan()
        self.start_watching()

    def start_watching(self) -> bool:
        if not self.settings.watch:
            return False
        started = self.watcher.start()
        if started:
            self._log("watching_for_dom_changes delay=%s", self.watcher.delay)
        return started

    def stop_watching(self) -> None:
        self.watcher.stop()

    def _on_structure_changed(self) -> None:
        self._log("dom_changed_rescanning")
        self.scan()

    def destroy(self) -> None:
        self.stop_watching()
        self.registry.clear()
        self._log("all_tools_unregistered")

    # scanning

    def scan(self) -> int:
        """
        Run one scan pass and return how many tools it registered.

        A scan requested while another is running (from a callback or a
        handler) is queued and runs once the current pass has finished.
        """

        if self.state is ScanState.SCANNING:
            self._rescan_requested = True
            self._log("scan_queued")
            return 0

        registered = 0
        self.state = ScanState.SCANNING
        try:
            while True:
                self._rescan_requested = False
                registered += self._scan_pass()
                if not self._rescan_requested:
                    break
        finally:
            self.state = ScanState.IDLE
        return registered

    def _scan_pass(self) -> int:
        self._log("scan_started")
        registered = 0
        registered += self._scan_forms()
        registered += self._scan_buttons()
        registered += self._scan_nav_links()
        registered += self._scan_included()
        self._log("scan_complete registered=%s total=%s", registered, len(self.registry))
        return registered

    def is_excluded(self, element: HostElement) -> bool:
        return any(element.closest(selector) is not None for selector in self.settings.exclude)

    def _query(self, selector: str) -> list[HostElement]:
        try:
            return list(self.document.query_selector_all(selector))
        except Exception as exc:
            logger.warning("scan_query_failed selector=%r reason=%s", selector, exc)
            return []

    def _register(
        self,
        element: HostElement,
        index: int,
        phase: str,
        build: Callable[[HostElement, int], Optional[ToolDescriptor]],
    ) -> int:
        try:
            if self.is_excluded(element):
                return 0
            descriptor = build(element, index)
        except Exception as exc:
            logger.warning("scan_element_failed phase=%s reason=%s", phase, exc)
            return 0
        if descriptor is None:
            return 0
        return int(self.registry.register(descriptor))

    def _form_descriptor(self, form: HostElement, index: int) -> Optional[ToolDescriptor]:
        if is_manually_instrumented(form):
            return None
        name = generate_tool_name(form, "form", self.settings.prefix, index)
        if not name:
            return None
        schema = scan_form(form)
        if not schema.properties:
            return None
        return ToolDescriptor(
            name=name,
            description=generate_description(form, "form"),
            input_schema=schema,
            handler=create_form_handler(form),
            annotations=FORM_ANNOTATIONS,
        )

    def _button_descriptor(self, button: HostElement, index: int) -> Optional[ToolDescriptor]:
        name = generate_tool_name(button, "button", self.settings.prefix, index)
        if not name:
            return None
        return ToolDescriptor(
            name=name,
            description=generate_description(button, "button"),
            input_schema=_empty_schema(),
            handler=create_button_handler(button),
            annotations=BUTTON_ANNOTATIONS,
        )

    def _link_descriptor(self, link: HostElement, index: int) -> Optional[ToolDescriptor]:
        name = generate_tool_name(link, "link", self.settings.prefix, index)
        if not name:
            return None
        return ToolDescriptor(
            name=name,
            description=generate_description(link, "link"),
            input_schema=_empty_schema(),
            handler=create_link_handler(link, self.document),
            annotations=LINK_ANNOTATIONS,
        )

    def _scan_forms(self) -> int:
        registered = 0
        for index, form in enumerate(self._query(FORM_SELECTOR)):
            registered += self._register(form, index, "forms", self._form_descriptor)
        return registered

    def _scan_buttons(self) -> int:
        def build(button: HostElement, index: int) -> Optional[ToolDescriptor]:
            if button.closest("form") is not None:
                return None
            if not (button.text_content() or "").strip() and not button.get_attribute("aria-label"):
                return None
            return self._button_descriptor(button, index)

        registered = 0
        for index, button in enumerate(self._query(BUTTON_SELECTOR)):
            registered += self._register(button, index, "buttons", build)
        return registered

    def _scan_nav_links(self) -> int:
        def build(link: HostElement, index: int) -> Optional[ToolDescriptor]:
            href = (link.get_attribute("href") or "").strip()
            if not href or href == "#" or is_script_href(href):
                return None
            return self._link_descriptor(link, index)

        registered = 0
        for index, link in enumerate(self._query(NAV_LINK_SELECTOR)):
            registered += self._register(link, index, "links", build)
        return registered

    def _scan_included(self) -> int:
        registered = 0
        index = 0
        for selector in self.settings.include:
            for element in self._query(selector):
                build = self._form_descriptor if element.tag_name == "form" else self._button_descriptor
                registered += self._register(element, index, f"include:{selector}", build)
                index += 1
        return registered

    # public surface

    def get_tools(self) -> list[dict[str, Any]]:
        return [tool.model_dump(by_alias=True) for tool in self.registry.exported()]

    def get_tool_manifest(self) -> dict[str, Any]:
        manifest = ToolManifest(
            version=self.settings.manifest_version,
            site=self.document.origin,
            generated_by=self.settings.generated_by,
            tools=self.registry.exported(),
        )
        return manifest.to_dict()


def instrument(
    document: HostDocument,
    settings: Optional[Settings] = None,
    *,
    sink: Optional[ModelContextSink] = None,
    on_tool_registered: Optional[Callable[[ToolDescriptor], Any]] = None,
    loop: Optional[Scheduler] = None,
    **overrides: Any,
) -> Instrumentor:
    """Instrument document: scan once it is ready, then keep watching it if configured to."""

    base = settings or default_settings
    if overrides:
        base = Settings(**{**base.model_dump(), **overrides})
    instrumentor = Instrumentor(
        document,
        settings=base,
        sink=sink,
        on_tool_registered=on_tool_registered,
        loop=loop,
    )
    instrumentor.start()
    return instrumentor
