"""Gateway token generation."""

from __future__ import annotations

import secrets

TOKEN_BYTES = 32


def generate_gateway_token() -> str:
    """64 lowercase hex characters (256 bits) from the OS CSPRNG."""
    return secrets.token_hex(TOKEN_BYTES)
