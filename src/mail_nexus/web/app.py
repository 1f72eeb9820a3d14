"""FastAPI application exposing Mail Nexus data to the console."""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Request, status as http_status
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from pydantic import BaseModel, Field

from mail_nexus.core import (
    AppSettings,
    BackingStoreError,
    ServiceContainer,
    load_app_settings,
)
from mail_nexus.core.datetime_utils import serialize_datetime
from mail_nexus.core.models import (
    EMAIL_CATEGORIES,
    Attachment,
    EmailDraft,
    EmailMessage,
    EmailStats,
    EmailTemplate,
    TemplateDraft,
)
from mail_nexus.query.filters import (
    DATE_RANGES,
    SORT_KEYS,
    SORT_ORDERS,
    STATUS_CHOICES,
    EmailFilters,
)
from mail_nexus.services import EmailService, RenderedTemplate, build_container

LOGGER = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[3]
_DEFAULT_ENV_FILE = _PROJECT_ROOT / ".env"
_ENV_FILE_OVERRIDE_VAR = "MAIL_NEXUS_ENV_FILE"


class AttachmentPayload(BaseModel):
    """Attachment reference supplied by the composer."""

    id: str
    filename: str
    content_type: str = "application/octet-stream"
    size: int = Field(ge=0)
    url: str | None = None


class SendEmailPayload(BaseModel):
    """Body of ``POST /api/emails``."""

    sender: str = Field(alias="from")
    to: str
    cc: list[str] = Field(default_factory=list)
    bcc: list[str] = Field(default_factory=list)
    subject: str
    body: str = ""
    html: str | None = None
    attachments: list[AttachmentPayload] = Field(default_factory=list)


class TemplatePayload(BaseModel):
    """Body of template create/update requests."""

    name: str
    subject: str
    body: str
    html: str | None = None
    variables: list[str] = Field(default_factory=list)


class RenderPayload(BaseModel):
    """Body of ``POST /api/templates/{id}/render``."""

    values: dict[str, str] = Field(default_factory=dict)


def create_app(
    settings: AppSettings | None = None, container: ServiceContainer | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    app_settings = settings or load_app_settings(env_file=_resolve_env_file())
    services = container or build_container(app_settings)
    app = FastAPI(title=app_settings.app_name)

    # Add GZip compression middleware (compress responses > 1KB)
    app.add_middleware(GZipMiddleware, minimum_size=1000)

    def get_service() -> EmailService:
        return services.resolve("email_service")

    @app.on_event("shutdown")
    async def shutdown_event() -> None:
        """Release the backing store client on shutdown."""
        await services.aclose()
        LOGGER.info("Services closed")

    @app.exception_handler(BackingStoreError)
    async def backing_store_error(
        _request: Request, exc: BackingStoreError
    ) -> JSONResponse:
        LOGGER.error("Backing store failure: %s", exc)
        return JSONResponse(
            status_code=http_status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)}
        )

    @app.exception_handler(ValueError)
    async def value_error(_request: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(
            status_code=http_status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)}
        )

    @app.get("/api/status")
    async def api_status(
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        return {"configured": service.is_configured(), "appName": app_settings.app_name}

    @app.get("/api/emails")
    async def list_emails(
        request: Request,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        category = _normalize_choice(
            request.query_params.get("category"), EMAIL_CATEGORIES, "all"
        )
        filters = _parse_email_filters(request.query_params)
        emails = await service.get_emails(category, filters)
        return {
            "emails": [_serialize_email(email) for email in emails],
            "count": len(emails),
            "category": category,
            "filters": _serialize_filters(filters),
        }

    @app.get("/api/emails/{email_id}")
    async def email_detail(
        email_id: str,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        email = await service.get_email(email_id)
        if email is None:
            raise HTTPException(status_code=404, detail="Email not found")
        return _serialize_email(email)

    @app.post("/api/emails", status_code=http_status.HTTP_201_CREATED)
    async def send_email(
        payload: SendEmailPayload,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        email = await service.send_email(_draft_from_payload(payload))
        return _serialize_email(email)

    @app.delete("/api/emails/{email_id}", status_code=http_status.HTTP_204_NO_CONTENT)
    async def delete_email(
        email_id: str,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> None:
        await service.delete_email(email_id)

    @app.get("/api/stats")
    async def stats(
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        return _serialize_stats(await service.get_email_stats())

    @app.get("/api/templates")
    async def list_templates(
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        templates = await service.get_templates()
        return {"templates": [_serialize_template(item) for item in templates]}

    @app.post("/api/templates", status_code=http_status.HTTP_201_CREATED)
    async def create_template(
        payload: TemplatePayload,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        template = await service.save_template(_template_draft(payload))
        return _serialize_template(template)

    @app.put("/api/templates/{template_id}")
    async def update_template(
        template_id: str,
        payload: TemplatePayload,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        template = await service.update_template(template_id, _template_draft(payload))
        return _serialize_template(template)

    @app.post("/api/templates/{template_id}/render")
    async def render_template(
        template_id: str,
        payload: RenderPayload,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> dict[str, Any]:
        rendered = await service.render_template(template_id, payload.values)
        if rendered is None:
            raise HTTPException(status_code=404, detail="Template not found")
        return _serialize_rendered(rendered)

    @app.delete(
        "/api/templates/{template_id}", status_code=http_status.HTTP_204_NO_CONTENT
    )
    async def delete_template(
        template_id: str,
        service: EmailService = Depends(get_service),  # noqa: B008
    ) -> None:
        await service.delete_template(template_id)

    _ensure_route_names(app)
    return app


def _ensure_route_names(app: FastAPI) -> None:
    """Assign names to routes if absent for better URL reversing."""
    for route in app.router.routes:
        if isinstance(route, APIRoute) and route.name is None:
            route.name = route.path_format.replace("/", ":") or "root"


def _serialize_email(email: EmailMessage) -> dict[str, Any]:
    return {
        "id": email.id,
        "from": email.sender,
        "to": email.recipient,
        "cc": list(email.cc),
        "bcc": list(email.bcc),
        "subject": email.subject,
        "body": email.body,
        "html": email.html,
        "status": email.status,
        "createdAt": serialize_datetime(email.created_at),
        "sentAt": serialize_datetime(email.sent_at),
        "deliveredAt": serialize_datetime(email.delivered_at),
        "errorMessage": email.error_message,
        "attachments": [
            {
                "id": item.id,
                "filename": item.filename,
                "contentType": item.content_type,
                "size": item.size,
                "url": item.url,
            }
            for item in email.attachments
        ],
    }


def _serialize_template(template: EmailTemplate) -> dict[str, Any]:
    return {
        "id": template.id,
        "name": template.name,
        "subject": template.subject,
        "body": template.body,
        "html": template.html,
        "variables": list(template.variables),
        "createdAt": serialize_datetime(template.created_at),
    }


def _serialize_rendered(rendered: RenderedTemplate) -> dict[str, Any]:
    return {
        "templateId": rendered.template_id,
        "subject": rendered.subject,
        "body": rendered.body,
        "html": rendered.html,
        "missingVariables": list(rendered.missing),
    }


def _serialize_stats(stats: EmailStats) -> dict[str, Any]:
    return {
        "totalSent": stats.total_sent,
        "totalReceived": stats.total_received,
        "totalFailed": stats.total_failed,
        "totalDelivered": stats.total_delivered,
        "sentToday": stats.sent_today,
        "receivedToday": stats.received_today,
        "failedToday": stats.failed_today,
        "deliveryRate": stats.delivery_rate,
        "source": stats.source,
    }


def _serialize_filters(filters: EmailFilters) -> dict[str, Any]:
    return {
        "search": filters.search,
        "status": filters.status,
        "dateRange": filters.date_range,
        "sortBy": filters.sort_by,
        "sortOrder": filters.sort_order,
        "active": filters.has_active_filters,
    }


def _parse_email_filters(params: Mapping[str, str]) -> EmailFilters:
    return EmailFilters(
        search=params.get("search") or "",
        status=_normalize_choice(params.get("status"), STATUS_CHOICES, "all"),
        date_range=_normalize_choice(params.get("date_range"), DATE_RANGES, "all"),
        sort_by=_normalize_choice(params.get("sort_by"), SORT_KEYS, "created_at"),
        sort_order=_normalize_choice(params.get("sort_order"), SORT_ORDERS, "desc"),
    )


def _normalize_choice(raw: str | None, choices: tuple[str, ...], default: str) -> str:
    if raw is None:
        return default
    candidate = raw.strip().lower()
    return candidate if candidate in choices else default


def _draft_from_payload(payload: SendEmailPayload) -> EmailDraft:
    return EmailDraft(
        sender=payload.sender,
        recipient=payload.to,
        subject=payload.subject,
        body=payload.body,
        cc=tuple(payload.cc),
        bcc=tuple(payload.bcc),
        html=payload.html or None,
        attachments=tuple(
            Attachment(
                id=item.id,
                filename=item.filename,
                content_type=item.content_type,
                size=item.size,
                url=item.url,
            )
            for item in payload.attachments
        ),
    )


def _template_draft(payload: TemplatePayload) -> TemplateDraft:
    return TemplateDraft(
        name=payload.name,
        subject=payload.subject,
        body=payload.body,
        html=payload.html or None,
        variables=tuple(payload.variables),
    )


def _resolve_env_file() -> Path:
    override = os.getenv(_ENV_FILE_OVERRIDE_VAR)
    if override:
        return Path(override).expanduser().resolve()
    return _DEFAULT_ENV_FILE


__all__ = ["create_app"]
