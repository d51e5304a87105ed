from __future__ import annotations

import logging
from typing import Any, Optional
from urllib.parse import urljoin

from ..models import ToolHandler
from .host import CONTROL_SELECTOR, HostDocument, HostElement, control_kind, field_key, trimmed_text

logger = logging.getLogger(__name__)

SCRIPT_SCHEME = "javascript:"


def is_script_href(href: Optional[str]) -> bool:
    return bool(href) and href.strip().lower().startswith(SCRIPT_SCHEME)


def _write_control(control: HostElement, value: Any) -> None:
    if control_kind(control) == "checkbox":
        control.set_checked(bool(value))
    else:
        control.set_value(value)
    control.dispatch_event("input", bubbles=True)
    control.dispatch_event("change", bubbles=True)


def create_form_handler(form: HostElement) -> ToolHandler:
    async def handler(tool_input: dict[str, Any]) -> dict[str, Any]:
        tool_input = tool_input or {}
        applied: list[str] = []
        for control in form.query_selector_all(CONTROL_SELECTOR):
            key = field_key(control)
            if not key or key not in tool_input:
                continue
            _write_control(control, tool_input[key])
            if key not in applied:
                applied.append(key)

        form.dispatch_event("submit", bubbles=True, cancelable=True)
        logger.debug("form_handler_submitted fields=%s", applied)
        return {
            "success": True,
            "message": f"Form submitted with {len(applied)} fields",
            "fields": applied,
        }

    return handler


def create_button_handler(button: HostElement) -> ToolHandler:
    async def handler(tool_input: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        button.click()
        return {
            "success": True,
            "message": f"Clicked: {trimmed_text(button, 50) or 'button'}",
        }

    return handler


def create_link_handler(link: HostElement, document: HostDocument) -> ToolHandler:
    """
    Hand the link target back instead of following it.

    Navigating would unload the page and every tool registered on it, so the
    caller decides what to do with the URL. Script links are activated in place.
    """

    async def handler(tool_input: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        href = (link.get_attribute("href") or "").strip()
        if href and not is_script_href(href):
            return {
                "success": True,
                "url": urljoin(document.location, href),
                "text": trimmed_text(link, 50),
                "message": f"Link target: {href}",
            }
        link.click()
        return {"success": True, "message": "Link activated"}

    return handler
