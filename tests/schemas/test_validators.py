"""Tests for shared schema validators."""
import pytest

from schemas.validators import (
    generate_slug,
    validate_hex_color,
    validate_tag_name,
    validate_tag_names,
    validate_title_length,
)


class TestValidateTagNames:
    """Tag lists are trimmed, deduplicated case-insensitively and bounded."""

    def test_preserves_first_spelling(self) -> None:
        assert validate_tag_names(["Python", " python ", "PYTHON", "web"]) == ["Python", "web"]

    def test_skips_blank_entries(self) -> None:
        assert validate_tag_names(["", "   ", "go"]) == ["go"]

    def test_too_many_tags(self) -> None:
        with pytest.raises(ValueError, match="Too many tags: 21 given, at most 20 allowed"):
            validate_tag_names([f"tag-{i}" for i in range(21)])

    def test_duplicates_do_not_count_towards_limit(self) -> None:
        tags = [f"tag-{i}" for i in range(20)] + ["TAG-0", "Tag-1"]
        assert len(validate_tag_names(tags)) == 20

    def test_single_tag_length(self) -> None:
        assert validate_tag_name("x" * 50) == "x" * 50
        with pytest.raises(ValueError, match="exceeds 50 characters"):
            validate_tag_name("x" * 51)

    def test_single_tag_empty(self) -> None:
        with pytest.raises(ValueError, match="cannot be empty"):
            validate_tag_name("  ")


class TestValidateHexColor:
    """Colors are optional 6-digit hex strings."""

    @pytest.mark.parametrize("color", [None, "#000000", "#3B82F6", "#a1b2c3"])
    def test_valid(self, color: str | None) -> None:
        assert validate_hex_color(color) == color

    @pytest.mark.parametrize("color", ["red", "#fff", "3B82F6", "#3B82F6FF", "#GGGGGG"])
    def test_invalid(self, color: str) -> None:
        with pytest.raises(ValueError, match="Invalid color"):
            validate_hex_color(color)


def test_validate_title_length() -> None:
    assert validate_title_length(None) is None
    assert validate_title_length("x" * 500) == "x" * 500
    with pytest.raises(ValueError, match="Title exceeds maximum length of 500"):
        validate_title_length("x" * 501)


@pytest.mark.parametrize(
    ("name", "slug"),
    [
        ("Acme Corp", "acme-corp"),
        ("  Hello,   World!  ", "hello-world"),
        ("R&D / Labs", "r-d-labs"),
        ("!!!", "untitled"),
    ],
)
def test_generate_slug(name: str, slug: str) -> None:
    assert generate_slug(name) == slug


def test_generate_slug_truncates_without_trailing_dash() -> None:
    slug = generate_slug("a" * 49 + " bcd")
    assert slug == "a" * 49
