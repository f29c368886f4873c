"""Slug and opaque token generation."""

from __future__ import annotations

import re
import secrets

SLUG_BASE_MAX_LENGTH = 30
SLUG_SUFFIX_LENGTH = 8
TOKEN_BYTES = 32

_NON_SLUG_CHARS = re.compile(r"[^a-z0-9]+")


def generate_slug(name: str, creator_id: str) -> str:
    """Derive an org slug from its display name and the creator's id.

    Deterministic for identical inputs. Uniqueness is enforced by the
    ``organizations.slug`` constraint, not here.
    """
    slug = _NON_SLUG_CHARS.sub("-", name.lower()).strip("-")
    slug = slug[:SLUG_BASE_MAX_LENGTH]
    return f"{slug}-{str(creator_id)[:SLUG_SUFFIX_LENGTH]}"


def generate_token() -> str:
    """32 random bytes, URL-safe base64. Used for invitations and sessions."""
    return secrets.token_urlsafe(TOKEN_BYTES)
