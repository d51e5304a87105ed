from __future__ import annotations

import re
from typing import Optional

from .host import ElementContext, HostElement, trimmed_text

MANUAL_TOOL_ATTRIBUTE = "toolname"
MAX_SLUG_LENGTH = 40

_DISALLOWED = re.compile(r"[^a-z0-9\s_-]")
_SEPARATORS = re.compile(r"[\s_-]+")


def slugify(text: str) -> str:
    slug = _DISALLOWED.sub("", (text or "").lower())
    slug = _SEPARATORS.sub("_", slug)
    # strip before and after truncation so a cut never leaves a trailing underscore
    slug = slug.strip("_")[:MAX_SLUG_LENGTH]
    return slug.strip("_")


def is_manually_instrumented(element: HostElement) -> bool:
    return bool(element.get_attribute(MANUAL_TOOL_ATTRIBUTE))


def _last_path_segment(action: str) -> str:
    path = action.split("?", 1)[0].split("#", 1)[0]
    return path.rstrip("/").rsplit("/", 1)[-1]


def _role_name(element: HostElement, context: ElementContext, fallback_index: int) -> str:
    element_id = element.get_attribute("id")
    name = element.get_attribute("name")
    aria_label = element.get_attribute("aria-label")

    if context == "form":
        action = element.get_attribute("action")
        if element_id:
            return slugify(element_id)
        if name:
            return slugify(name)
        if action:
            segment = slugify(_last_path_segment(action))
            if segment:
                return f"submit_{segment}"
        return f"form_{fallback_index}"

    if context == "button":
        text = trimmed_text(element, 30)
        if aria_label:
            return slugify(aria_label)
        if text:
            return slugify(text)
        if element_id:
            return slugify(element_id)
        return f"action_{fallback_index}"

    if context == "link":
        text = trimmed_text(element, 30)
        label = aria_label or text
        if label:
            slug = slugify(label)
            return f"navigate_{slug}" if slug else ""
        return f"navigate_{fallback_index}"

    if context == "input":
        label = name or element_id
        if label:
            slug = slugify(label)
            return f"set_{slug}" if slug else ""
        return f"set_field_{fallback_index}"

    return ""


def generate_tool_name(
    element: HostElement,
    context: ElementContext,
    prefix: str = "",
    fallback_index: int = 0,
) -> Optional[str]:
    """
    Derive a tool name for element, or None when it should be skipped.

    fallback_index is the element's position among the candidates of its scan
    phase; it names elements that carry nothing identifying.
    """

    if is_manually_instrumented(element):
        return None

    role_name = _role_name(element, context, fallback_index)
    if not role_name:
        return None
    return f"{prefix}_{role_name}" if prefix else role_name
