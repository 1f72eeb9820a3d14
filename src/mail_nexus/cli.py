"""Command-line entry point for Mail Nexus."""

from __future__ import annotations

import argparse
import asyncio
import json
from pathlib import Path

from mail_nexus.core import (
    AppSettings,
    BackingStoreError,
    configure_logging,
    load_app_settings,
)
from mail_nexus.core.models import EMAIL_CATEGORIES
from mail_nexus.query.filters import (
    DATE_RANGES,
    SORT_KEYS,
    SORT_ORDERS,
    STATUS_CHOICES,
    EmailFilters,
)
from mail_nexus.services import EmailService, build_container
from mail_nexus.storage.records import email_to_record


def build_parser() -> argparse.ArgumentParser:
    """Create and configure the CLI argument parser."""
    parser = argparse.ArgumentParser(description="Mail Nexus gateway console")
    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to a .env file containing configuration overrides.",
    )
    parser.add_argument(
        "--config-file",
        type=Path,
        default=None,
        help="Saved JSON configuration applied beneath .env and environment values.",
    )
    parser.add_argument(
        "command",
        nargs="?",
        default="info",
        choices=["info", "emails", "stats", "templates", "serve"],
        help="Operation to execute.",
    )
    parser.add_argument(
        "--category",
        choices=EMAIL_CATEGORIES,
        default="all",
        help="Lifecycle group for the emails command (default: all).",
    )
    parser.add_argument("--search", default="", help="Free-text search term.")
    parser.add_argument("--status", choices=STATUS_CHOICES, default="all")
    parser.add_argument(
        "--date-range", dest="date_range", choices=DATE_RANGES, default="all"
    )
    parser.add_argument(
        "--sort-by", dest="sort_by", choices=SORT_KEYS, default="created_at"
    )
    parser.add_argument(
        "--sort-order", dest="sort_order", choices=SORT_ORDERS, default="desc"
    )
    parser.add_argument("--host", default="127.0.0.1", help="Bind address for serve.")
    parser.add_argument("--port", type=int, default=8000, help="Port for serve.")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print emails as stored records in JSON instead of a table.",
    )
    return parser


def execute(args: argparse.Namespace, settings: AppSettings) -> int:
    """Execute the requested CLI command and return an exit code."""
    command = args.command
    if command == "info":
        _print_info(settings)
        return 0
    if command == "serve":
        _serve(settings, host=args.host, port=args.port)
        return 0
    try:
        return asyncio.run(_run_async(command, args, settings))
    except BackingStoreError as exc:
        print(f"Backend request failed: {exc}")
        return 1


def main() -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()

    settings = load_app_settings(env_file=args.env_file, config_file=args.config_file)
    configure_logging(settings.logging)
    raise SystemExit(execute(args, settings))


def _print_info(settings: AppSettings) -> None:
    print(f"{settings.app_name}")
    if settings.backend.is_configured:
        print(f"Backend: {settings.backend.url}")
    else:
        print("Backend: not configured (serving demo data)")
    smtp_host = settings.smtp.host or "-"
    print(f"SMTP: {smtp_host}:{settings.smtp.port}")
    print(f"Timezone: {settings.timezone or 'system local'}")


async def _run_async(
    command: str, args: argparse.Namespace, settings: AppSettings
) -> int:
    container = build_container(settings)
    service: EmailService = container.resolve("email_service")
    try:
        if command == "emails":
            filters = EmailFilters(
                search=args.search,
                status=args.status,
                date_range=args.date_range,
                sort_by=args.sort_by,
                sort_order=args.sort_order,
            )
            await _print_emails(service, args.category, filters, as_json=args.json)
        elif command == "stats":
            await _print_stats(service)
        elif command == "templates":
            await _print_templates(service)
    finally:
        await container.aclose()
    return 0


async def _print_emails(
    service: EmailService,
    category: str,
    filters: EmailFilters,
    *,
    as_json: bool = False,
) -> None:
    emails = await service.get_emails(category, filters)
    if as_json:
        print(json.dumps([email_to_record(email) for email in emails], indent=2))
        return
    if not emails:
        print("No emails found.")
        return

    print(f"Showing {len(emails)} email(s):")
    header = f"{'Status':<10}  {'Created':<16}  {'From':<28}  {'To':<28}  Subject"
    print(header)
    print("-" * len(header))
    for email in emails:
        created = email.created_at.isoformat(timespec="minutes")[:16]
        subject = email.subject or "(no subject)"
        print(
            f"{email.status:<10}  {created:<16}  {email.sender[:28]:<28}  "
            f"{email.recipient[:28]:<28}  {subject}"
        )


async def _print_stats(service: EmailService) -> None:
    stats = await service.get_email_stats()
    print(f"Sent:      {stats.total_sent} ({stats.sent_today} today)")
    print(f"Received:  {stats.total_received} ({stats.received_today} today)")
    print(f"Failed:    {stats.total_failed} ({stats.failed_today} today)")
    print(f"Delivered: {stats.total_delivered}")
    print(f"Delivery rate: {stats.delivery_rate}%")
    if stats.source == "unavailable":
        print("Statistics are unavailable; showing zeros.")


async def _print_templates(service: EmailService) -> None:
    templates = await service.get_templates()
    if not templates:
        print("No templates found.")
        return
    for template in templates:
        variables = ", ".join(template.variables) or "-"
        print(f"{template.name}: {template.subject} [variables: {variables}]")


def _serve(settings: AppSettings, *, host: str, port: int) -> None:
    import uvicorn

    from mail_nexus.web import create_app

    # log_config=None keeps the configuration installed by main().
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)


if __name__ == "__main__":
    main()
