"""IPv6 prefix length discovery.

The public address is confirmed first; the prefix length is then taken from
the first platform source that yields a valid value (router advertisements,
interface configuration, config files). A host with a public address but no
readable prefix is reported as /128.
"""

import ipaddress
import json
import logging
import re
import socket
import time
from typing import Callable, Iterable, List, Optional, Tuple

import psutil

from hostbasics import i18n
from hostbasics.config import Settings
from hostbasics.network.http import FetchError, fetch_text

logger = logging.getLogger(__name__)

ICMPV6_ROUTER_SOLICITATION = 133
ICMPV6_ROUTER_ADVERTISEMENT = 134
ND_OPT_SOURCE_LINKADDR = 1
ND_OPT_PREFIX_INFORMATION = 3
RA_HEADER_LEN = 16

PUBLIC_IPV6_URLS = ["https://ipv6.ip.sb", "https://api6.ipify.org", "https://v6.ident.me"]

NON_PUBLIC_TEXT_PREFIXES = ("fe80", "::1", "fc", "fd", "ff")

# (source name, callable returning a prefix length or None)
PrefixSource = Tuple[str, Callable[[], Optional[int]]]


def is_prefix_length_valid(n: int) -> bool:
    return 1 <= n <= 128


def is_non_global_prefix(prefix: bytes) -> bool:
    """True for fe80::/10, fc00::/7, ::1 and ff00::/8."""
    if len(prefix) != 16:
        raise ValueError("an IPv6 prefix is 16 bytes")
    if prefix[0] == 0xFE and (prefix[1] & 0xC0) == 0x80:
        return True
    if (prefix[0] & 0xFE) == 0xFC:
        return True
    if prefix == b"\x00" * 15 + b"\x01":
        return True
    return prefix[0] == 0xFF


def is_public_text(addr: str) -> bool:
    return not addr.lower().startswith(NON_PUBLIC_TEXT_PREFIXES)


def extract_prefix_from_ra_option(data: bytes) -> List[int]:
    """Returns the prefix lengths of global Prefix Information options in an RA packet."""
    lengths: List[int] = []
    offset = RA_HEADER_LEN
    while offset + 2 <= len(data):
        opt_type = data[offset]
        opt_len = data[offset + 1] * 8
        if opt_len == 0 or offset + opt_len > len(data):
            break
        if opt_type == ND_OPT_PREFIX_INFORMATION and opt_len >= 32:
            prefix_len = data[offset + 2]
            prefix = data[offset + 16:offset + 32]
            if not is_non_global_prefix(prefix) and is_prefix_length_valid(prefix_len):
                lengths.append(prefix_len)
        offset += opt_len
    return lengths


def build_router_solicitation(mac: Optional[bytes] = None) -> bytes:
    msg = bytes([ICMPV6_ROUTER_SOLICITATION, 0, 0, 0, 0, 0, 0, 0])
    if mac and len(mac) == 6:
        msg += bytes([ND_OPT_SOURCE_LINKADDR, 1]) + mac
    return msg


def _mac_bytes(interface: str) -> Optional[bytes]:
    for addr in psutil.net_if_addrs().get(interface, []):
        if addr.family == psutil.AF_LINK and addr.address:
            try:
                return bytes.fromhex(addr.address.replace(":", "").replace("-", ""))
            except ValueError:
                return None
    return None


def solicit_prefix_lengths(interface: str, timeout: float = 5.0) -> List[int]:
    """Sends a Router Solicitation on interface and parses the first useful Router Advertisement.

    Needs a raw ICMPv6 socket (root / CAP_NET_RAW) and SO_BINDTODEVICE.
    """
    index = socket.if_nametoindex(interface)
    with socket.socket(socket.AF_INET6, socket.SOCK_RAW, socket.IPPROTO_ICMPV6) as sock:
        sock.setsockopt(socket.SOL_SOCKET, getattr(socket, "SO_BINDTODEVICE", 25), interface.encode())
        # Neighbor discovery messages must carry hop limit 255
        sock.setsockopt(socket.IPPROTO_IPV6, socket.IPV6_MULTICAST_HOPS, 255)
        sock.sendto(build_router_solicitation(_mac_bytes(interface)), ("ff02::2", 0, 0, index))
        deadline = time.monotonic() + timeout
        while (remaining := deadline - time.monotonic()) > 0:
            sock.settimeout(remaining)
            try:
                data, _ = sock.recvfrom(1500)
            except socket.timeout:
                break
            if len(data) >= 4 and data[0] == ICMPV6_ROUTER_ADVERTISEMENT:
                lengths = extract_prefix_from_ra_option(data)
                if lengths:
                    return lengths
    return []


# --- Parsers of captured command output ---

def _first_public(pairs: Iterable[Tuple[str, str]]) -> Optional[int]:
    for addr, length in pairs:
        if not is_public_text(addr) or not length.isdigit():
            continue
        n = int(length)
        if is_prefix_length_valid(n):
            return n
    return None


def parse_radvdump(output: str) -> Optional[int]:
    return _first_public(re.findall(r"(?i)prefix\s+([a-f0-9:]+)/(\d+)", output))


def parse_ip_addr(output: str) -> Optional[int]:
    """Smallest prefix length among the global addresses of `ip -o -6 addr show`."""
    lengths = []
    for addr, length in re.findall(r"inet6\s+([a-fA-F0-9:]+)/(\d+)\s+scope\s+global", output):
        if is_public_text(addr) and is_prefix_length_valid(int(length)):
            lengths.append(int(length))
    return min(lengths) if lengths else None


def parse_ifconfig(output: str) -> Optional[int]:
    return _first_public(re.findall(r"inet6\s+([a-fA-F0-9:]+)%?\w*\s+prefixlen\s+(\d+)", output))


def parse_networksetup_port(output: str, interface: str) -> str:
    """Finds the service name listed just above "Device: <interface>"."""
    lines = output.splitlines()
    for i, line in enumerate(lines):
        if line.strip() == f"Device: {interface}" and i > 0 and lines[i - 1].startswith("Hardware Port: "):
            return lines[i - 1][len("Hardware Port: "):].strip()
    return ""


def parse_networksetup_info(output: str) -> Optional[int]:
    return _first_public(re.findall(
        r"(?i)IPv6\s+(?:IP\s+)?Address:\s*([a-fA-F0-9:]+)\s*\n\s*IPv6\s+Prefix\s+Length:\s*(\d+)", output))


def parse_netsh(output: str, interface: str) -> Optional[int]:
    current = ""
    for raw in output.splitlines():
        line = raw.strip()
        if line.endswith(":"):
            current = line[:-1]
            continue
        if not current or interface.lower() not in current.lower():
            continue
        if "Address" in line and "Parameters" in line:
            if m := re.search(r"([a-fA-F0-9:]+)/(\d+)", line):
                found = _first_public([m.groups()])
                if found is not None:
                    return found
    return None


def parse_powershell_addresses(output: str) -> Optional[int]:
    """Reads `Get-NetIPAddress ... | ConvertTo-Json` (a single object or a list)."""
    try:
        data = json.loads(output)
    except ValueError:
        return None
    items = data if isinstance(data, list) else [data]
    pairs = [(str(i.get("IPAddress", "")), str(i.get("PrefixLength", ""))) for i in items if isinstance(i, dict)]
    return _first_public(pairs)


def parse_config_prefix(text: str, pattern: str) -> Optional[int]:
    for m in re.finditer(pattern, text):
        value = m.groups()[-1]
        if value.isdigit() and is_prefix_length_valid(int(value)):
            return int(value)
    return None


# --- Discovery ---

def get_current_ipv6(settings: Settings) -> str:
    """Returns the public IPv6 address as seen from outside, or ""."""
    for url in PUBLIC_IPV6_URLS:
        try:
            text = fetch_text(url, "ipv6", settings, timeout=6, retries=0).strip()
        except FetchError as exc:
            logger.debug("%s", exc)
            continue
        try:
            if isinstance(ipaddress.ip_address(text), ipaddress.IPv6Address):
                return text
        except ValueError:
            logger.debug("%s returned a non-address answer", url)
    return ""


def get_interface() -> str:
    """First eth*/en* interface, else the first non-loopback interface that is up."""
    addrs = psutil.net_if_addrs()
    stats = psutil.net_if_stats()
    for name in addrs:
        if name.startswith(("eth", "en")):
            return name
    for name, snics in addrs.items():
        loopback = name.startswith("lo") or any(a.address in ("127.0.0.1", "::1") for a in snics)
        st = stats.get(name)
        if not loopback and st is not None and st.isup:
            return name
    return ""


def format_ipv6_mask(prefix_len: int, language: str) -> str:
    return i18n.line("ipv6_mask", f"/{prefix_len}", language)


def get_ipv6_mask(public_ipv6: str, language: str, provider, interface: Optional[str] = None) -> str:
    """Returns the "IPv6 Mask" report line, or "" when the host has no public IPv6 address."""
    if not public_ipv6:
        logger.info("no public IPv6 address")
        return ""
    interface = interface if interface is not None else get_interface()
    if not interface:
        logger.info("no usable network interface for IPv6 prefix discovery")
        return format_ipv6_mask(128, language)
    for name, source in provider.ipv6_prefix_sources(interface):
        try:
            prefix_len = source()
        except (OSError, ValueError) as exc:
            logger.debug("IPv6 prefix source %s failed: %s", name, exc)
            continue
        if prefix_len is not None and is_prefix_length_valid(prefix_len):
            logger.info("IPv6 prefix /%s from %s", prefix_len, name)
            return format_ipv6_mask(prefix_len, language)
    return format_ipv6_mask(128, language)
