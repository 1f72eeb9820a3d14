"""Web application entry point for Mail Nexus."""

from .app import create_app

__all__ = ["create_app"]
