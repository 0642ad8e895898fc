"""Small helpers shared by the service modules."""


def escape_like(value: str) -> str:
    r"""
    Escape special LIKE characters for safe use in LIKE/ILIKE patterns.

    These characters are treated specially:
    - % matches any sequence of characters
    - _ matches any single character
    - \\ is the escape character

    This function escapes them so they match literally (use with escape="\\").
    """
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def clamp_limit(limit: int | None, default: int, maximum: int) -> int:
    """Apply a default page size and cap it at `maximum`."""
    if limit is None:
        return default
    return max(1, min(limit, maximum))
