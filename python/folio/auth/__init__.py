"""Authentication and authorization module.

This module provides:
- Token verification (Supabase JWKS verifier)
- Auth middleware for FastAPI
- Request state with viewer identity
- The permission gate for books, versions and TOC nodes

Note: Test-only verifiers are in tests/support/test_verifier.py
"""

from folio.auth.middleware import AuthMiddleware, Viewer, get_viewer
from folio.auth.permissions import (
    Access,
    Operation,
    require_book_access,
    require_node_access,
    require_version_access,
)
from folio.auth.verifier import SupabaseJwksVerifier, TokenVerifier

__all__ = [
    "Access",
    "AuthMiddleware",
    "Operation",
    "SupabaseJwksVerifier",
    "TokenVerifier",
    "Viewer",
    "get_viewer",
    "require_book_access",
    "require_node_access",
    "require_version_access",
]
