"""Public network identity: geo-IP/ASN of each address family and the IPv6 prefix length."""

import logging
from typing import Optional

from hostbasics import i18n
from hostbasics.config import Settings
from hostbasics.models import IpInfo
from hostbasics.network.geoip import run_ip_check
from hostbasics.network.ipv6 import get_current_ipv6, get_ipv6_mask

logger = logging.getLogger(__name__)


def format_ip_info(family: str, info: IpInfo, language: str) -> str:
    """Renders the ASN and location lines of one family; lines with nothing to show are left out."""
    out = ""
    if info.asn or info.org:
        value = " ".join(p for p in (f"AS{info.asn}" if info.asn else "", info.org) if p)
        out += i18n.line(f"{family}_asn", value, language)
    if info.has_geo():
        value = " / ".join(p for p in (info.city, info.region, info.country) if p)
        out += i18n.line(f"{family}_location", value, language)
    return out


def network_check(check_type: str, language: str, settings: Settings, provider=None) -> str:
    """Returns the IP block of the report for check_type ("ipv4", "ipv6" or "both").

    Raises ValueError for any other check type.
    """
    v4, v6 = run_ip_check(check_type, settings)
    out = ""
    if v4 is not None:
        out += format_ip_info("ipv4", v4, language)
    if v6 is not None:
        out += format_ip_info("ipv6", v6, language)
        if provider is not None:
            out += _ipv6_mask_line(v6, language, settings, provider)
    return out


def _ipv6_mask_line(v6: IpInfo, language: str, settings: Settings, provider) -> str:
    public_ipv6: Optional[str] = v6.ip if ":" in v6.ip else get_current_ipv6(settings)
    try:
        return get_ipv6_mask(public_ipv6 or "", language, provider)
    except OSError as exc:
        logger.info("IPv6 prefix discovery failed: %s", exc)
        return ""
