"""Test helpers for authentication and common test operations.

Provides:
- Token minting for test authentication
- Header generation for test requests
- Envelope accessors for API responses
"""

import time
from typing import Any
from uuid import UUID, uuid4

import jwt

from tests.support.test_verifier import (
    TEST_AUDIENCE,
    TEST_ISSUER,
    MockJwtVerifier,
    generate_rsa_keypair,
)

DEFAULT_ISSUER = TEST_ISSUER
DEFAULT_AUDIENCE = TEST_AUDIENCE
DEFAULT_EXPIRES_IN = 3600  # 1 hour


def mint_test_token(
    user_id: UUID | str,
    expires_in: int = DEFAULT_EXPIRES_IN,
    issuer: str = DEFAULT_ISSUER,
    audience: str = DEFAULT_AUDIENCE,
    private_key: bytes | None = None,
    **extra_claims,
) -> str:
    """Mint a signed test JWT token.

    Args:
        user_id: The user ID to set as the `sub` claim.
        expires_in: Token validity in seconds from now (negative for expired).
        issuer: The `iss` claim value.
        audience: The `aud` claim value.
        private_key: Signing key; defaults to the MockJwtVerifier key.
        **extra_claims: Additional claims to include in the token.

    Returns:
        A signed JWT token string.
    """
    now = int(time.time())
    payload = {
        "sub": str(user_id),
        "iss": issuer,
        "aud": audience,
        "iat": now,
        "exp": now + expires_in,
        **extra_claims,
    }
    return jwt.encode(payload, private_key or MockJwtVerifier.get_private_key(), algorithm="RS256")


def mint_token_with_bad_signature(user_id: UUID | str) -> str:
    """Mint a token signed with an unrelated key (bad signature)."""
    other_private_key, _ = generate_rsa_keypair()
    return mint_test_token(user_id, private_key=other_private_key)


def auth_headers(user_id: UUID | str, **token_kwargs) -> dict[str, str]:
    """Return headers dict with valid Authorization for the given user.

    Args:
        user_id: The user ID to authenticate as.
        **token_kwargs: Additional arguments passed to mint_test_token.

    Returns:
        Dict with Authorization header.
    """
    token = mint_test_token(user_id, **token_kwargs)
    return {"Authorization": f"Bearer {token}"}


def error_code(response) -> str:
    """Return the error code of an error envelope response."""
    return response.json()["error"]["code"]


def data_of(response) -> Any:
    """Return the payload of a success envelope response."""
    return response.json()["data"]


def create_test_user_id() -> UUID:
    """Generate a random UUID for a test user."""
    return uuid4()
