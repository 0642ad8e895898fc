"""
Shared validation functions for Pydantic schemas.

These raise ValueError so they can be used inside pydantic validators; service
code that calls them directly converts the ValueError into InputValidationError.
"""
import re

from core.config import get_settings

# Folder / tag colors: '#RRGGBB'
HEX_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")

MAX_TAG_NAME_LENGTH = 50


def validate_hex_color(color: str | None) -> str | None:
    """Validate a 6-digit hex color ('#1a2B3c'); returns it unchanged."""
    if color is None:
        return None
    if not HEX_COLOR_PATTERN.match(color):
        raise ValueError(f"Invalid color '{color}': expected a 6-digit hex color like '#3B82F6'")
    return color


def validate_tag_name(tag: str) -> str:
    """
    Trim and validate a single tag name.

    Casing is preserved; identity is case-insensitive and handled by the tag
    service.

    Raises:
        ValueError: If the tag is empty or too long.
    """
    trimmed = tag.strip()
    if not trimmed:
        raise ValueError("Tag name cannot be empty")
    if len(trimmed) > MAX_TAG_NAME_LENGTH:
        raise ValueError(
            f"Tag name '{trimmed[:20]}...' exceeds {MAX_TAG_NAME_LENGTH} characters",
        )
    return trimmed


def validate_tag_names(tags: list[str]) -> list[str]:
    """
    Validate a list of tag names.

    Empty strings are skipped and names that differ only by case collapse into
    the first spelling seen ("Python", "python" -> ["Python"]).

    Raises:
        ValueError: If a tag is too long or there are more tags than allowed.
    """
    seen: set[str] = set()
    result = []
    for tag in tags:
        if not tag.strip():
            continue
        name = validate_tag_name(tag)
        key = name.lower()
        if key in seen:
            continue
        seen.add(key)
        result.append(name)

    max_tags = get_settings().max_tags_per_bookmark
    if len(result) > max_tags:
        raise ValueError(f"Too many tags: {len(result)} given, at most {max_tags} allowed")
    return result


def validate_title_length(title: str | None) -> str | None:
    """Validate that title doesn't exceed maximum length."""
    settings = get_settings()
    if title is not None and len(title) > settings.max_title_length:
        raise ValueError(
            f"Title exceeds maximum length of {settings.max_title_length:,} characters "
            f"(got {len(title):,} characters).",
        )
    return title


def validate_notes_length(notes: str | None) -> str | None:
    """Validate that notes don't exceed maximum length."""
    settings = get_settings()
    if notes is not None and len(notes) > settings.max_notes_length:
        raise ValueError(
            f"Notes exceed maximum length of {settings.max_notes_length:,} characters "
            f"(got {len(notes):,} characters).",
        )
    return notes


def generate_slug(name: str, max_length: int = 50) -> str:
    """URL-friendly slug: lowercase, runs of non-alphanumerics become '-'."""
    slug = re.sub(r"[^a-z0-9]+", "-", name.lower()).strip("-")
    return slug[:max_length].rstrip("-") or "untitled"
