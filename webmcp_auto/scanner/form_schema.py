from __future__ import annotations

import logging
from typing import Optional

from ..models import InputSchema, PropertySchema
from .host import CONTROL_SELECTOR, HostElement, control_kind, field_key

logger = logging.getLogger(__name__)

MAX_ENUM_OPTIONS = 20

SKIPPED_KINDS = {"hidden", "submit"}

# input type -> (schema type, format)
_KIND_MAP: dict[str, tuple[str, Optional[str]]] = {
    "number": ("number", None),
    "range": ("number", None),
    "checkbox": ("boolean", None),
    "email": ("string", "email"),
    "url": ("string", "uri"),
    "date": ("string", "date"),
    "tel": ("string", "phone"),
}


def _parse_bound(raw: Optional[str]) -> Optional[float]:
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.debug("form_schema_bad_bound value=%r", raw)
        return None


def _label_text(form: HostElement, control: HostElement) -> Optional[str]:
    control_id = control.get_attribute("id")
    if not control_id:
        return None
    escaped = control_id.replace("\\", "\\\\").replace('"', '\\"')
    label = form.query_selector(f'label[for="{escaped}"]')
    if label is None:
        return None
    return (label.text_content() or "").strip()


def scan_control(form: HostElement, control: HostElement) -> PropertySchema:
    kind = control_kind(control)
    schema_type, fmt = _KIND_MAP.get(kind, ("string", None))
    prop = PropertySchema(type=schema_type, format=fmt)

    if schema_type == "number":
        prop.minimum = _parse_bound(control.get_attribute("min"))
        prop.maximum = _parse_bound(control.get_attribute("max"))

    label = _label_text(form, control)
    if label is not None:
        prop.description = label
    elif control.get_attribute("placeholder"):
        prop.description = control.get_attribute("placeholder")

    if control.tag_name == "select":
        options = [value for value in control.option_values() if value]
        if 0 < len(options) <= MAX_ENUM_OPTIONS:
            prop.enum = options

    pattern = control.get_attribute("pattern")
    if pattern:
        prop.pattern = pattern

    return prop


def scan_form(form: HostElement) -> InputSchema:
    """Infer the input schema of a form from its current controls."""

    properties: dict[str, PropertySchema] = {}
    required: list[str] = []

    for control in form.query_selector_all(CONTROL_SELECTOR):
        key = field_key(control)
        if not key:
            continue
        if control_kind(control) in SKIPPED_KINDS:
            continue

        properties[key] = scan_control(form, control)
        if control.get_attribute("required") is not None and key not in required:
            required.append(key)

    return InputSchema(properties=properties, required=required or None)
