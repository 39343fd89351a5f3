"""Business logic services.

This module contains service-layer functions that implement business logic.
Services are called by route handlers and orchestrate database operations.
"""

from folio.services.users import ensure_user, get_me

__all__ = [
    "ensure_user",
    "get_me",
]
