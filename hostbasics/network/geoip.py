"""Geo-IP lookup: query several public sources concurrently and merge them by a fixed priority."""

import concurrent.futures
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple

from hostbasics.config import Settings
from hostbasics.models import IpInfo
from hostbasics.network.http import FAMILIES, FetchError, fetch_json, fetch_text
from hostbasics.network.merge import compare_and_merge_ip_info

logger = logging.getLogger(__name__)

CHECK_TYPES = {"ipv4": ("ipv4",), "ipv6": ("ipv6",), "both": FAMILIES}
ASN_WORD_RE = re.compile(r"^AS\d+$", re.IGNORECASE)


def _text(data: Dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value.strip() if isinstance(value, str) else ""


def _asn(value: Any) -> str:
    """Normalizes 13335, 13335.0, "13335" and "AS13335" to "13335"."""
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(int(value))
    if isinstance(value, str):
        value = value.strip()
        if value.upper().startswith("AS"):
            value = value[2:]
        return value
    return ""


def _names_en(node: Any) -> str:
    if isinstance(node, dict) and isinstance(node.get("names"), dict):
        return _text(node["names"], "en")
    return ""


# --- Per-source response parsers ---

def parse_ipinfo(data: Dict[str, Any]) -> IpInfo:
    res = IpInfo(ip=_text(data, "ip"), city=_text(data, "city"),
                 region=_text(data, "region"), country=_text(data, "country"))
    org = _text(data, "org")
    if org:
        # "AS13335 Cloudflare, Inc."
        head, _, rest = org.partition(" ")
        if ASN_WORD_RE.match(head):
            res.asn = _asn(head)
            res.org = rest.strip()
        else:
            res.org = org
    return res


def parse_cloudflare(data: Dict[str, Any]) -> IpInfo:
    return IpInfo(
        ip=_text(data, "clientIp"),
        asn=_asn(data.get("asn")),
        org=_text(data, "asOrganization"),
        country=_text(data, "country"),
        region=_text(data, "region"),
        city=_text(data, "city"),
    )


def parse_ipsb(data: Dict[str, Any]) -> IpInfo:
    return IpInfo(
        ip=_text(data, "ip"),
        asn=_asn(data.get("asn")),
        org=_text(data, "asn_organization"),
        country=_text(data, "country"),
        region=_text(data, "region"),
        city=_text(data, "city"),
    )


def parse_maxmind(data: Dict[str, Any]) -> IpInfo:
    res = IpInfo()
    traits = data.get("traits")
    if isinstance(traits, dict):
        res.ip = _text(traits, "ip_address")
        res.asn = _asn(traits.get("autonomous_system_number"))
        res.org = _text(traits, "autonomous_system_organization")
    res.city = _names_en(data.get("city"))
    subdivisions = data.get("subdivisions")
    if isinstance(subdivisions, list) and subdivisions:
        res.region = _names_en(subdivisions[0])
    res.country = _names_en(data.get("country"))
    return res


def parse_hackertarget(ip: str, body: str) -> Optional[IpInfo]:
    """Parses '"1.1.1.1","13335","1.1.1.0/24","CLOUDFLARENET, US"'."""
    body = body.strip()
    if not body or "error" in body.lower():
        return None
    parts = body.split(",")
    if len(parts) < 4:
        return None
    asn = parts[1].strip().strip('"')
    org = ",".join(parts[3:]).strip().strip('"')
    return IpInfo(ip=ip, asn=_asn(asn), org=org.strip())


def parse_ipapi_as(ip: str, data: Dict[str, Any]) -> IpInfo:
    res = IpInfo(ip=ip)
    parts = _text(data, "as").split()
    if parts:
        res.asn = _asn(parts[0])
        res.org = " ".join(parts[1:])
    return res


# --- Sources tables ---

@dataclass
class GeoSource:
    name: str
    url: str
    parse: Callable[[Dict[str, Any]], IpInfo]
    browser: bool = False
    extra_headers: Dict[str, str] = field(default_factory=dict)

    def lookup(self, family: str, settings: Settings) -> IpInfo:
        data = fetch_json(self.url, family, settings, browser=self.browser, extra_headers=self.extra_headers)
        return self.parse(data)


@dataclass
class AsnSource:
    name: str
    lookup: Callable[[str, str, Settings], Optional[IpInfo]]


def _hackertarget_lookup(ip: str, family: str, settings: Settings) -> Optional[IpInfo]:
    body = fetch_text(f"https://api.hackertarget.com/aslookup/?q={ip}", family, settings,
                      timeout=settings.asn_timeout, retries=2)
    return parse_hackertarget(ip, body)


def _ipapi_lookup(ip: str, family: str, settings: Settings) -> Optional[IpInfo]:
    data = fetch_json(f"http://ip-api.com/json/{ip}?fields=as", family, settings, timeout=settings.asn_timeout)
    return parse_ipapi_as(ip, data)


# Priority order: earlier entries win when several sources answer
GEO_SOURCES: List[GeoSource] = [
    GeoSource("ipinfo", "http://ipinfo.io", parse_ipinfo),
    GeoSource("maxmind", "https://geoip.maxmind.com/geoip/v2.1/city/me", parse_maxmind, browser=True,
              extra_headers={"Referer": "https://www.maxmind.com/en/locate-my-ip-address"}),
    GeoSource("cloudflare", "https://speed.cloudflare.com/meta", parse_cloudflare),
    GeoSource("ipsb", "https://api.ip.sb/geoip", parse_ipsb, browser=True),
]

ASN_SOURCES: List[AsnSource] = [
    AsnSource("hackertarget", _hackertarget_lookup),
    AsnSource("ipapi", _ipapi_lookup),
]


# --- Fan-out / fan-in ---

def _guarded(name: str, fn: Callable[..., Optional[IpInfo]], *args) -> Optional[IpInfo]:
    """Runs one source; any failure means "this source knows nothing"."""
    try:
        return fn(*args)
    except FetchError as exc:
        logger.debug("%s: %s", name, exc)
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        logger.debug("%s: unexpected payload: %s", name, exc)
    return None


def merge_by_priority(results: Dict[str, Optional[IpInfo]], order: List[str]) -> Optional[IpInfo]:
    """Merges source results in priority order; None if no source answered."""
    merged: Optional[IpInfo] = None
    for name in order:
        info = results.get(name)
        if info is None:
            continue
        merged = compare_and_merge_ip_info(merged, info)
    return merged


def fill_asn_with_fallback(info: IpInfo, family: str, settings: Settings,
                           sources: Optional[List[AsnSource]] = None) -> IpInfo:
    """Completes a result that has a location but no ASN, using the ASN-only sources."""
    if not info.needs_asn_fallback() or not info.ip:
        return info
    sources = ASN_SOURCES if sources is None else sources
    with concurrent.futures.ThreadPoolExecutor(max_workers=min(settings.max_workers, len(sources) or 1)) as ex:
        futures = {ex.submit(_guarded, s.name, s.lookup, info.ip, family, settings): s.name for s in sources}
        results = {futures[f]: f.result() for f in concurrent.futures.as_completed(futures)}
    for s in sources:
        candidate = results.get(s.name)
        if candidate is None:
            continue
        if not info.asn and candidate.asn:
            info.asn = candidate.asn
        if not info.org and candidate.org:
            info.org = candidate.org
        if info.asn:
            logger.info("ASN filled by %s: ASN=%s, Org=%s", s.name, info.asn, info.org)
            break
    return info


def run_ip_check(check_type: str, settings: Settings,
                 sources: Optional[List[GeoSource]] = None,
                 asn_sources: Optional[List[AsnSource]] = None) -> Tuple[Optional[IpInfo], Optional[IpInfo]]:
    """Returns the merged (ipv4, ipv6) results; a family not requested or not answered is None."""
    if check_type not in CHECK_TYPES:
        raise ValueError(f"wrong check type: {check_type!r}")
    sources = GEO_SOURCES if sources is None else sources
    families = CHECK_TYPES[check_type]
    results: Dict[str, Dict[str, Optional[IpInfo]]] = {fam: {} for fam in families}

    with concurrent.futures.ThreadPoolExecutor(max_workers=settings.max_workers) as ex:
        futures = {
            ex.submit(_guarded, src.name, src.lookup, fam, settings): (fam, src.name)
            for fam in families
            for src in sources
        }
        for f in concurrent.futures.as_completed(futures):
            fam, name = futures[f]
            results[fam][name] = f.result()

    order = [s.name for s in sources]
    merged = {fam: merge_by_priority(results[fam], order) for fam in families}
    for fam, info in merged.items():
        if info is not None and info.needs_asn_fallback():
            logger.info("%s ASN missing, trying fallback sources", fam)
            merged[fam] = fill_asn_with_fallback(info, fam, settings, asn_sources)
    return merged.get("ipv4"), merged.get("ipv6")
