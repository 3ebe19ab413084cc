"""HTTP client construction for the policy management service."""

from .client import create_http_client, create_ssl_context

__all__ = ["create_http_client", "create_ssl_context"]
