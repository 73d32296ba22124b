"""Transports exposing the auth session manager."""

from .http_server import create_http_app

__all__ = ["create_http_app"]
