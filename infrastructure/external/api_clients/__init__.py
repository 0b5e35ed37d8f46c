"""Shared REST client plumbing for outbound gateway integrations."""
from .base import BaseAPIClient, APIResponse, HTTPMethod, TransportError
from .query import encode_query_params

__all__ = [
    "BaseAPIClient",
    "APIResponse",
    "HTTPMethod",
    "TransportError",
    "encode_query_params",
]
