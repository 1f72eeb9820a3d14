"""Application services exposed to the HTTP API and CLI."""

from .email_service import EmailService
from .templates import RenderedTemplate, extract_variables, render_template
from .wiring import build_container

__all__ = [
    "EmailService",
    "RenderedTemplate",
    "build_container",
    "extract_variables",
    "render_template",
]
