import pytest
from pydantic import ValidationError

from formfill.app.core.config import Settings


def test_defaults(monkeypatch) -> None:
    for name in ("RATE_LIMIT_MAX_REQUESTS", "CACHE_TTL_SECONDS", "MAX_FIELDS", "REDIS_ENABLED"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings(_env_file=None)
    assert settings.rate_limit_max_requests == 20
    assert settings.rate_limit_window_seconds == 60.0
    assert settings.cache_ttl_seconds == 300.0
    assert settings.max_fields == 50
    assert settings.upstream_max_attempts == 4
    assert settings.redis_enabled is False


def test_cors_origins_accepts_host_without_json(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "43.163.94.63")

    settings = Settings(_env_file=None)
    assert "http://43.163.94.63" in settings.cors_origins
    assert "https://43.163.94.63" in settings.cors_origins


def test_cors_origins_accepts_comma_list(monkeypatch) -> None:
    monkeypatch.setenv("CORS_ORIGINS", "https://a.example, chrome-extension://abc")

    settings = Settings(_env_file=None)
    assert settings.cors_origins == ["https://a.example", "chrome-extension://abc"]


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ('["http://localhost:5173"]', ["http://localhost:5173"]),
        ("*", ["*"]),
        ("[]", []),
        ("", []),
    ],
)
def test_cors_origins_parsing_variants(monkeypatch, raw: str, expected: list[str]) -> None:
    monkeypatch.setenv("CORS_ORIGINS", raw)

    settings = Settings(_env_file=None)
    assert settings.cors_origins == expected


def test_server_api_key_must_be_long(monkeypatch) -> None:
    monkeypatch.setenv("SERVER_API_KEY", "too-short")

    with pytest.raises(ValidationError):
        Settings(_env_file=None)


def test_server_api_key_is_stripped() -> None:
    settings = Settings(_env_file=None, server_api_key="  " + "k" * 32 + "\n")
    assert settings.server_api_key == "k" * 32


@pytest.mark.parametrize(
    ("field", "value"),
    [
        ("upstream_timeout", 0),
        ("rate_limit_window_seconds", -1),
        ("rate_limit_max_requests", -1),
        ("upstream_max_attempts", 0),
        ("log_format", "xml"),
    ],
)
def test_invalid_values_are_rejected(field: str, value) -> None:
    with pytest.raises(ValidationError):
        Settings(_env_file=None, **{field: value})


def test_zero_max_requests_is_allowed() -> None:
    assert Settings(_env_file=None, rate_limit_max_requests=0).rate_limit_max_requests == 0
