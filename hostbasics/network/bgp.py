"""BGP helpers: announced prefix of an address, and /24 masking."""

import ipaddress
import json
import logging
import re
from typing import Tuple

from bs4 import BeautifulSoup

from hostbasics.config import Settings
from hostbasics.network.http import FetchError, fetch_text

logger = logging.getLogger(__name__)

HE_CIDR_RE = re.compile(r"CIDR:\s+([0-9./]+)")


def mask_ip(ip: str) -> str:
    """Zeroes the last octet of a dotted-quad IPv4 address; "" for anything else."""
    try:
        ipaddress.IPv4Address(ip)
    except (ipaddress.AddressValueError, ValueError):
        return ""
    parts = ip.split(".")
    parts[3] = "0"
    return ".".join(parts)


def parse_cidr_from_he(payload: str) -> str:
    """Extracts the CIDR from bgp.he.net's whois JSON ({"data": "...CIDR: 1.1.1.0/24..."})."""
    try:
        data = json.loads(payload)
    except ValueError:
        return ""
    text = data.get("data") if isinstance(data, dict) else None
    if not isinstance(text, str):
        return ""
    m = HE_CIDR_RE.search(text)
    return m.group(1) if m else ""


def parse_cidr_from_bgp_tools(html: str) -> str:
    """Extracts the first announced prefix link from a bgp.tools prefix page."""
    soup = BeautifulSoup(html, "html.parser")
    for a in soup.select("td.smallonmobile.nowrap a"):
        href = a.get("href", "")
        if m := re.fullmatch(r"/prefix/([0-9./]+)", href):
            return m.group(1)
    return ""


def split_cidr(cidr: str) -> Tuple[str, int]:
    network, sep, length = cidr.partition("/")
    if not sep or not length.isdigit():
        return "", -1
    return network, int(length)


def get_cidr_prefix(ip: str, settings: Settings) -> Tuple[str, int]:
    """Returns (network, prefix length) of the prefix announcing ip, or ("", -1)."""
    lookups = [
        (f"https://bgp.he.net/whois/ip/{ip}", parse_cidr_from_he),
        (f"https://bgp.tools/prefix/{ip}", parse_cidr_from_bgp_tools),
    ]
    for url, parse in lookups:
        try:
            body = fetch_text(url, "ipv4", settings, browser=True, timeout=6)
        except FetchError as exc:
            logger.debug("%s", exc)
            continue
        network, length = split_cidr(parse(body))
        if length > 0:
            return network, length
    logger.info("can not find BGP CIDR for %s", ip)
    return "", -1
