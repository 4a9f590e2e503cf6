import time

import pytest

from hostbasics.models import IpInfo
from hostbasics.network import geoip
from hostbasics.network.geoip import AsnSource, GeoSource
from hostbasics.network.http import FetchError


class FakeSource(GeoSource):
    """Answers after a delay without touching the network."""

    def __init__(self, name, answer, delay=0.0, error=None):
        super().__init__(name=name, url="http://example.invalid", parse=lambda data: data)
        self.answer = answer
        self.delay = delay
        self.error = error
        self.families = []

    def lookup(self, family, settings):
        self.families.append(family)
        time.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.answer


def test_parse_ipinfo_splits_org():
    info = geoip.parse_ipinfo({"ip": "1.1.1.1", "city": "Brisbane", "region": "Queensland",
                               "country": "AU", "org": "AS13335 Cloudflare, Inc."})
    assert info == IpInfo(ip="1.1.1.1", asn="13335", org="Cloudflare, Inc.",
                          country="AU", region="Queensland", city="Brisbane")


def test_parse_ipinfo_org_without_asn():
    info = geoip.parse_ipinfo({"ip": "1.1.1.1", "country": "AU", "org": "Cloudflare, Inc."})
    assert (info.asn, info.org) == ("", "Cloudflare, Inc.")


def test_parse_cloudflare_numeric_asn():
    info = geoip.parse_cloudflare({"clientIp": "203.0.113.7", "asn": 4134, "asOrganization": "Chinanet",
                                   "country": "CN", "region": "Guangdong", "city": "Shenzhen"})
    assert info.asn == "4134"
    assert info.org == "Chinanet"
    assert info.city == "Shenzhen"


def test_parse_ipsb():
    info = geoip.parse_ipsb({"ip": "8.8.8.8", "asn": 15169, "asn_organization": "Google LLC",
                             "country": "United States"})
    assert (info.asn, info.org, info.country, info.city) == ("15169", "Google LLC", "United States", "")


def test_parse_maxmind_nested_names():
    data = {
        "traits": {"ip_address": "9.9.9.9", "autonomous_system_number": 19281,
                   "autonomous_system_organization": "QUAD9-AS-1"},
        "city": {"names": {"en": "Zurich", "de": "Zürich"}},
        "subdivisions": [{"names": {"en": "Zurich"}}],
        "country": {"names": {"en": "Switzerland"}},
    }
    info = geoip.parse_maxmind(data)
    assert info == IpInfo(ip="9.9.9.9", asn="19281", org="QUAD9-AS-1",
                          country="Switzerland", region="Zurich", city="Zurich")


def test_parse_maxmind_tolerates_missing_sections():
    assert geoip.parse_maxmind({}) == IpInfo()


def test_parse_hackertarget():
    body = '"1.1.1.1","13335","1.1.1.0/24","CLOUDFLARENET, US"\n'
    assert geoip.parse_hackertarget("1.1.1.1", body) == IpInfo(ip="1.1.1.1", asn="13335", org="CLOUDFLARENET, US")
    assert geoip.parse_hackertarget("1.1.1.1", "error check your api query") is None
    assert geoip.parse_hackertarget("1.1.1.1", "") is None


def test_parse_ipapi_as():
    info = geoip.parse_ipapi_as("8.8.8.8", {"as": "AS15169 Google LLC"})
    assert (info.asn, info.org) == ("15169", "Google LLC")


def test_priority_wins_regardless_of_completion_order(settings):
    # The highest priority source answers last
    slow_first = FakeSource("first", IpInfo(ip="1.1.1.1", asn="1", city="First City"), delay=0.2)
    fast_second = FakeSource("second", IpInfo(ip="2.2.2.2", asn="2", org="Second Org", country="XX"))
    v4, v6 = geoip.run_ip_check("ipv4", settings, sources=[slow_first, fast_second], asn_sources=[])
    assert v6 is None
    assert v4 == IpInfo(ip="1.1.1.1", asn="1", org="Second Org", country="XX", city="First City")


def test_failed_sources_are_skipped(settings):
    broken = FakeSource("broken", None, error=FetchError("boom"))
    garbage = FakeSource("garbage", None, error=KeyError("ip"))
    good = FakeSource("good", IpInfo(ip="2001:db8::1", asn="64500", country="DE"))
    v4, v6 = geoip.run_ip_check("ipv6", settings, sources=[broken, garbage, good], asn_sources=[])
    assert v4 is None
    assert v6.ip == "2001:db8::1"
    assert broken.families == ["ipv6"]


def test_both_queries_each_family(settings):
    src = FakeSource("only", IpInfo(ip="x", asn="1"))
    v4, v6 = geoip.run_ip_check("both", settings, sources=[src], asn_sources=[])
    assert sorted(src.families) == ["ipv4", "ipv6"]
    assert v4 is not None and v6 is not None


def test_no_answers_gives_none(settings):
    src = FakeSource("down", None, error=FetchError("offline"))
    assert geoip.run_ip_check("both", settings, sources=[src], asn_sources=[]) == (None, None)


def test_wrong_check_type(settings):
    with pytest.raises(ValueError):
        geoip.run_ip_check("ipv5", settings, sources=[])


def test_asn_fallback_fills_missing_asn(settings):
    located = FakeSource("geo", IpInfo(ip="1.1.1.1", country="AU"))
    calls = []

    def first(ip, family, settings):
        calls.append(("first", ip, family))
        return None

    def second(ip, family, settings):
        calls.append(("second", ip, family))
        return IpInfo(ip=ip, asn="13335", org="CLOUDFLARENET")

    v4, _ = geoip.run_ip_check("ipv4", settings, sources=[located],
                               asn_sources=[AsnSource("first", first), AsnSource("second", second)])
    assert (v4.asn, v4.org, v4.country) == ("13335", "CLOUDFLARENET", "AU")
    assert sorted(calls) == [("first", "1.1.1.1", "ipv4"), ("second", "1.1.1.1", "ipv4")]


def test_asn_fallback_not_used_when_asn_known(settings):
    info = IpInfo(ip="1.1.1.1", asn="13335", country="AU")

    def never(ip, family, settings):
        raise AssertionError("fallback must not run")

    assert geoip.fill_asn_with_fallback(info, "ipv4", settings, [AsnSource("never", never)]) is info


def test_geo_source_lookup_uses_fetch_json(monkeypatch, settings):
    seen = {}

    def fake_fetch_json(url, family, settings, browser=False, extra_headers=None, timeout=None):
        seen.update(url=url, family=family, browser=browser, headers=extra_headers)
        return {"ip": "1.1.1.1", "org": "AS13335 Cloudflare"}

    monkeypatch.setattr(geoip, "fetch_json", fake_fetch_json)
    source = GeoSource("ipinfo", "http://ipinfo.io", geoip.parse_ipinfo, browser=True,
                       extra_headers={"Referer": "https://example.org"})
    assert source.lookup("ipv4", settings).asn == "13335"
    assert seen == {"url": "http://ipinfo.io", "family": "ipv4", "browser": True,
                    "headers": {"Referer": "https://example.org"}}
