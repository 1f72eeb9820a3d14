"""Placeholder handling for email templates."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from mail_nexus.core.models import EmailTemplate, TemplateDraft

_PLACEHOLDER = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


def extract_variables(*texts: str | None) -> tuple[str, ...]:
    """Placeholder names in order of first appearance, without duplicates."""
    seen: dict[str, None] = {}
    for text in texts:
        for match in _PLACEHOLDER.finditer(text or ""):
            seen.setdefault(match.group(1), None)
    return tuple(seen)


def with_variables(draft: TemplateDraft) -> TemplateDraft:
    """Fill ``variables`` from the draft's text unless given explicitly."""
    if draft.variables:
        return draft
    return TemplateDraft(
        name=draft.name,
        subject=draft.subject,
        body=draft.body,
        html=draft.html,
        variables=extract_variables(draft.subject, draft.body, draft.html),
    )


def render_text(text: str, values: Mapping[str, object]) -> str:
    """Replace known placeholders; unknown ones stay as written."""

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name not in values:
            return match.group(0)
        return str(values[name])

    return _PLACEHOLDER.sub(substitute, text)


@dataclass(frozen=True, slots=True)
class RenderedTemplate:
    """A template filled with values, ready for the composer."""

    template_id: str
    subject: str
    body: str
    html: str | None = None
    missing: tuple[str, ...] = ()


def render_template(
    template: EmailTemplate, values: Mapping[str, object]
) -> RenderedTemplate:
    """Fill ``template`` with ``values`` and report unfilled variables."""
    return RenderedTemplate(
        template_id=template.id,
        subject=render_text(template.subject, values),
        body=render_text(template.body, values),
        html=render_text(template.html, values) if template.html else None,
        missing=missing_variables(template, values),
    )


def missing_variables(
    template: EmailTemplate, provided: Iterable[str]
) -> tuple[str, ...]:
    """Template variables without a supplied value."""
    supplied = set(provided)
    return tuple(name for name in template.variables if name not in supplied)


__all__ = [
    "RenderedTemplate",
    "extract_variables",
    "missing_variables",
    "render_template",
    "render_text",
    "with_variables",
]
