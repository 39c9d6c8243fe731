from datetime import timedelta

import pytest

from taskmanager.config import load_settings, parse_duration


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("7d", timedelta(days=7)),
        ("12h", timedelta(hours=12)),
        ("30m", timedelta(minutes=30)),
        ("45s", timedelta(seconds=45)),
        ("3600", timedelta(seconds=3600)),
    ],
)
def test_parse_duration(raw, expected):
    assert parse_duration(raw) == expected


def test_parse_duration_rejects_garbage():
    with pytest.raises(ValueError):
        parse_duration("seven days")


def test_load_settings_reads_environment(monkeypatch):
    monkeypatch.setenv("JWT_SECRET", "s3cret")
    monkeypatch.setenv("JWT_EXPIRES_IN", "2h")
    monkeypatch.setenv("BCRYPT_ROUNDS", "6")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test, http://b.test,")

    settings = load_settings()

    assert settings.jwt_secret == "s3cret"
    assert settings.jwt_expires_in == timedelta(hours=2)
    assert settings.bcrypt_rounds == 6
    assert settings.cors_origins == ("http://a.test", "http://b.test")


def test_settings_are_immutable():
    settings = load_settings()
    with pytest.raises(AttributeError):
        settings.jwt_secret = "changed"
