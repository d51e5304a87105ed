from __future__ import annotations

from .host import CONTROL_SELECTOR, ElementContext, HostElement, control_kind, trimmed_text

MAX_LISTED_FIELDS = 5


def _form_field_names(form: HostElement) -> list[str]:
    names: list[str] = []
    for control in form.query_selector_all(CONTROL_SELECTOR):
        label = (
            control.get_attribute("name")
            or control.get_attribute("id")
            or control.get_attribute("placeholder")
        )
        if label and label not in names:
            names.append(label)
        if len(names) >= MAX_LISTED_FIELDS:
            break
    return names


def generate_description(element: HostElement, context: ElementContext) -> str:
    aria_label = element.get_attribute("aria-label")
    title = element.get_attribute("title")
    placeholder = element.get_attribute("placeholder")

    if context == "form":
        description = "Submit a form"
        if aria_label:
            description = f"Submit: {aria_label}"
        elif title:
            description = f"Submit: {title}"
        fields = _form_field_names(element)
        if fields:
            description += f" (fields: {', '.join(fields)})"
        return description

    if context == "button":
        text = trimmed_text(element, 50)
        if aria_label:
            return f"Click action: {aria_label}"
        if title:
            return f"Click action: {title}"
        if text:
            return f"Click: {text}"
        return "Trigger a button action"

    if context == "link":
        text = trimmed_text(element, 50)
        if aria_label:
            return f"Navigate to: {aria_label}"
        if text:
            return f"Navigate to: {text}"
        return f"Navigate to {element.get_attribute('href') or ''}"

    if context == "input":
        name = element.get_attribute("name") or element.get_attribute("id") or ""
        if placeholder:
            return f"Set {name or 'field'}: {placeholder}"
        return f"Set {control_kind(element)} field: {name}"

    return "Interact with page element"
