import pytest

from hostbasics.config import Settings
from hostbasics.network import http


def test_session_pins_family_and_retries():
    session = http.new_session("ipv6", Settings(http_retries=2))
    adapter = session.get_adapter("https://api6.ipify.org")
    assert isinstance(adapter, http.FamilyAdapter)
    assert adapter.source_address == ("::", 0)
    assert adapter.max_retries.total == 2
    assert adapter.max_retries.status_forcelist == (429, 500, 502, 503, 504)


def test_session_retry_override_and_browser_headers(settings):
    session = http.new_session("ipv4", settings, browser=True, retries=0)
    assert session.get_adapter("http://ipinfo.io").max_retries.total == 0
    assert session.headers["User-Agent"] in http.UA_LIST


def test_adapter_rejects_unknown_family():
    with pytest.raises(ValueError):
        http.FamilyAdapter("ipx")
