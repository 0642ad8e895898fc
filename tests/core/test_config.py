"""Tests for application configuration."""
import pytest

from core.config import Settings


class TestCorsOriginsParsing:
    """Tests for CORS origins parsing from environment variables."""

    def test_parse_multiple_origins_comma_separated(self) -> None:
        """Whitespace is stripped and empty entries dropped."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            CORS_ORIGINS="  http://localhost:3000 , https://example.com,",
            DEV_MODE="false",
        )
        assert settings.cors_origins == [
            "http://localhost:3000",
            "https://example.com",
        ]

    def test_parse_empty_string(self) -> None:
        """Empty string results in empty list."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            CORS_ORIGINS="",
            DEV_MODE="false",
        )
        assert settings.cors_origins == []


class TestDefaults:
    """Defaults for the bookmark, folder and invitation limits."""

    def test_limits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        for name in ("BOOKMARKS_MAX_LIMIT", "INVITATION_TTL_DAYS", "MAX_FOLDER_DEPTH"):
            monkeypatch.delenv(name, raising=False)

        settings = Settings(_env_file=None, database_url="postgresql://test", DEV_MODE="false")

        assert settings.bookmarks_default_limit == 50
        assert settings.bookmarks_max_limit == 100
        assert settings.invitation_ttl_days == 7
        assert settings.max_folder_depth == 32
        assert settings.max_tags_per_bookmark == 20

    def test_invitation_ttl_must_be_positive(self) -> None:
        with pytest.raises(ValueError, match="invitation_ttl_days|INVITATION_TTL_DAYS"):
            Settings(
                _env_file=None,
                database_url="postgresql://test",
                DEV_MODE="false",
                INVITATION_TTL_DAYS="0",
            )

    def test_auth0_urls_derived_from_domain(self) -> None:
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            AUTH0_DOMAIN="test.auth0.com",
            DEV_MODE="false",
        )
        assert settings.auth0_issuer == "https://test.auth0.com/"
        assert settings.auth0_jwks_url == "https://test.auth0.com/.well-known/jwks.json"


class TestSmtpConfigured:
    """SMTP is only used when a host and a sender address are both set."""

    @pytest.mark.parametrize(
        ("host", "sender", "expected"),
        [
            ("", "", False),
            ("smtp.example.com", "", False),
            ("", "noreply@example.com", False),
            ("smtp.example.com", "noreply@example.com", True),
        ],
    )
    def test_smtp_configured(self, host: str, sender: str, expected: bool) -> None:
        settings = Settings(
            _env_file=None,
            database_url="postgresql://test",
            DEV_MODE="false",
            SMTP_HOST=host,
            SMTP_FROM=sender,
        )
        assert settings.smtp_configured is expected


class TestDevModeSecurityValidation:
    """Tests for DEV_MODE security guard against production database usage."""

    @pytest.mark.parametrize(
        "database_url",
        [
            "postgresql://localhost:5432/test",
            "postgresql://127.0.0.1:5432/test",
            "postgresql://[::1]:5432/test",
            "sqlite+aiosqlite:///./local.db",
        ],
    )
    def test__dev_mode_allowed_with_local_database(self, database_url: str) -> None:
        settings = Settings(_env_file=None, database_url=database_url, DEV_MODE="true")
        assert settings.dev_mode is True

    @pytest.mark.parametrize(
        "database_url",
        [
            "postgresql://prod-db.example.com:5432/bookmarks",
            "postgresql://192.168.1.100:5432/test",
            # No hostname at all is treated as remote
            "postgresql:///database",
        ],
    )
    def test__dev_mode_blocked_with_remote_database(self, database_url: str) -> None:
        with pytest.raises(
            ValueError,
            match="DEV_MODE cannot be enabled with a non-local database",
        ):
            Settings(_env_file=None, database_url=database_url, DEV_MODE="true")

    def test__dev_mode_disabled_allows_production_database(self) -> None:
        """Production database is allowed when DEV_MODE is disabled."""
        settings = Settings(
            _env_file=None,
            database_url="postgresql://prod-db.example.com:5432/bookmarks",
            DEV_MODE="false",
        )
        assert settings.dev_mode is False
