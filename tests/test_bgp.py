import json

from hostbasics.network import bgp
from hostbasics.network.http import FetchError

BGP_TOOLS_PAGE = """
<html><body><table>
<tr><td class="smallonmobile nowrap"><a href="/as/13335">AS13335</a></td></tr>
<tr><td class="smallonmobile nowrap"><a href="/prefix/1.1.1.0/24">1.1.1.0/24</a></td></tr>
</table></body></html>
"""


def test_mask_ip():
    assert bgp.mask_ip("203.0.113.77") == "203.0.113.0"
    assert bgp.mask_ip("2001:db8::1") == ""
    assert bgp.mask_ip("300.1.1.1") == ""
    assert bgp.mask_ip("") == ""


def test_parse_cidr_from_he():
    payload = json.dumps({"data": "NetRange: 1.1.1.0 - 1.1.1.255\nCIDR:           1.1.1.0/24\nNetName: APNIC"})
    assert bgp.parse_cidr_from_he(payload) == "1.1.1.0/24"
    assert bgp.parse_cidr_from_he("not json") == ""
    assert bgp.parse_cidr_from_he(json.dumps({"data": 3})) == ""


def test_parse_cidr_from_bgp_tools():
    assert bgp.parse_cidr_from_bgp_tools(BGP_TOOLS_PAGE) == "1.1.1.0/24"
    assert bgp.parse_cidr_from_bgp_tools("<html></html>") == ""


def test_split_cidr():
    assert bgp.split_cidr("10.0.0.0/8") == ("10.0.0.0", 8)
    assert bgp.split_cidr("10.0.0.0") == ("", -1)


def test_get_cidr_prefix_falls_back_to_bgp_tools(monkeypatch, settings):
    urls = []

    def fake_fetch_text(url, family, settings, browser=False, timeout=None, retries=None):
        urls.append(url)
        if "bgp.he.net" in url:
            raise FetchError("403")
        return BGP_TOOLS_PAGE

    monkeypatch.setattr(bgp, "fetch_text", fake_fetch_text)
    assert bgp.get_cidr_prefix("1.1.1.1", settings) == ("1.1.1.0", 24)
    assert urls == ["https://bgp.he.net/whois/ip/1.1.1.1", "https://bgp.tools/prefix/1.1.1.1"]


def test_get_cidr_prefix_nothing_found(monkeypatch, settings):
    monkeypatch.setattr(bgp, "fetch_text", lambda *a, **kw: "{}")
    assert bgp.get_cidr_prefix("192.0.2.1", settings) == ("", -1)
