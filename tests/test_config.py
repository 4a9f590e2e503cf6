import pytest

from hostbasics.config import DEFAULT_STUN_SERVERS, Settings


def test_defaults():
    s = Settings()
    assert s.language == "zh"
    assert s.http_timeout == 12.0
    assert s.max_workers == 8
    assert s.stun_servers == DEFAULT_STUN_SERVERS
    assert s.stun_servers is not DEFAULT_STUN_SERVERS


def test_language_is_normalized_and_checked():
    assert Settings(language="EN").language == "en"
    with pytest.raises(ValueError):
        Settings(language="fr")


def test_from_env_overrides_numbers(monkeypatch):
    monkeypatch.setenv("HOSTBASICS_HTTP_TIMEOUT", "4.5")
    monkeypatch.setenv("HOSTBASICS_MAX_WORKERS", "0")
    monkeypatch.setenv("HOSTBASICS_HTTP_RETRIES", "not-a-number")
    monkeypatch.setenv("HOSTBASICS_NO_HIT", "1")
    s = Settings.from_env(language="en", enable_logging=True)
    assert s.language == "en"
    assert s.enable_logging is True
    assert s.http_timeout == 4.5
    assert s.max_workers == 1
    assert s.http_retries == 3
    assert s.send_hit is False


def test_from_env_without_variables(monkeypatch):
    for name in ("HTTP_TIMEOUT", "ASN_TIMEOUT", "PRECHECK_TIMEOUT", "STUN_TIMEOUT",
                 "MAX_WORKERS", "HTTP_RETRIES", "NO_HIT"):
        monkeypatch.delenv("HOSTBASICS_" + name, raising=False)
    s = Settings.from_env()
    assert s == Settings()
