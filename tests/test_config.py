import pytest

from recipevault.config import Settings


@pytest.mark.parametrize(
    "url,key,expected",
    [
        ("https://abc.supabase.co", "anon", True),
        ("http://localhost:54321", "anon", True),
        ("", "anon", False),
        ("https://abc.supabase.co", "", False),
        ("https://your-project-id.supabase.co", "anon", False),
        ("https://abc.supabase.co", "your_supabase_anon_key", False),
        ("abc.supabase.co", "anon", False),
    ],
)
def test_is_configured(url, key, expected):
    assert Settings(supabase_url=url, supabase_anon_key=key).is_configured is expected


def test_service_urls_strip_trailing_slash():
    settings = Settings(supabase_url="https://abc.supabase.co/", supabase_anon_key="anon")
    assert settings.rest_url == "https://abc.supabase.co/rest/v1"
    assert settings.auth_url == "https://abc.supabase.co/auth/v1"


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("MIGRATION_MAX_ATTEMPTS", "2")
    monkeypatch.setenv("HTTP_RETRIES", "0")
    settings = Settings()
    assert settings.migration_max_attempts == 2
    assert settings.http_retries == 0
