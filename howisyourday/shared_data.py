# -*- coding: utf-8 -*-
"""Shared constants and small helpers for the How Is Your Day app."""

import re
from datetime import datetime, timezone

# --- Posts ---

POST_STATUS = {
    "DRAFT": "draft",
    "PUBLISHED": "published",
}
POST_STATUSES = (POST_STATUS["DRAFT"], POST_STATUS["PUBLISHED"])

POST_LIMITS = {
    "TITLE_MAX_LENGTH": 200,
    "EXCERPT_MAX_LENGTH": 300,
    "SLUG_MAX_LENGTH": 200,
    "TAG_MAX_LENGTH": 64,
}

# Used when a title has no usable characters left after slugifying
FALLBACK_SLUG = "post"

# --- Pagination ---

PAGINATION = {
    "DEFAULT_PAGE": 1,
    "DEFAULT_LIMIT": 10,
    "MAX_LIMIT": 100,
}
# Keeps (page - 1) * limit inside a signed 64-bit OFFSET
PAGINATION["MAX_PAGE"] = (2 ** 63 - 1) // PAGINATION["MAX_LIMIT"]

# --- Validation ---

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

IMAGE_UPLOAD = {
    "MAX_SIZE_MB": 5,
    "ALLOWED_TYPES": ("image/jpeg", "image/png", "image/webp", "image/gif"),
}

# --- Push notifications ---

PUSH_PLATFORMS = {
    "IOS": "ios",
    "ANDROID": "android",
}
PUSH_PLATFORM_VALUES = (PUSH_PLATFORMS["IOS"], PUSH_PLATFORMS["ANDROID"])
PUSH_TOKEN_MAX_LENGTH = 255


def is_valid_email(value):
    """True for strings shaped like an email address."""
    return isinstance(value, str) and bool(EMAIL_REGEX.match(value))


def utcnow():
    """Current UTC time as a naive datetime, the way the tables store it."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value):
    """Parse an ISO-8601 string into a naive UTC datetime.

    Returns None for None/empty input and raises ValueError for anything
    that isn't a valid timestamp.
    """
    if value is None or value == "":
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected an ISO timestamp, got {type(value).__name__}")
    parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
