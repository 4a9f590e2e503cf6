"""Quick reachability probe deciding which address families are worth querying."""

import concurrent.futures
import logging
import socket
from typing import Dict, List, Tuple

from hostbasics.models import PublicAccess

logger = logging.getLogger(__name__)

# Anycast resolvers answering on TCP 53 and 443
PROBE_TARGETS: Dict[str, List[Tuple[str, int]]] = {
    "ipv4": [("1.1.1.1", 443), ("8.8.8.8", 53), ("223.5.5.5", 53)],
    "ipv6": [("2606:4700:4700::1111", 443), ("2001:4860:4860::8888", 53), ("2400:3200::1", 53)],
}


def _reachable(family: str, timeout: float) -> bool:
    af = socket.AF_INET if family == "ipv4" else socket.AF_INET6
    for host, port in PROBE_TARGETS[family]:
        try:
            with socket.socket(af, socket.SOCK_STREAM) as sock:
                sock.settimeout(timeout)
                sock.connect((host, port))
                return True
        except OSError as exc:
            logger.debug("%s probe %s:%s failed: %s", family, host, port, exc)
    return False


def stack_type(v4: bool, v6: bool) -> str:
    if v4 and v6:
        return "DualStack"
    if v4:
        return "IPv4"
    if v6:
        return "IPv6"
    return "None"


def check_public_access(timeout: float = 3.0) -> PublicAccess:
    with concurrent.futures.ThreadPoolExecutor(max_workers=2) as ex:
        v4 = ex.submit(_reachable, "ipv4", timeout)
        v6 = ex.submit(_reachable, "ipv6", timeout)
        st = stack_type(v4.result(), v6.result())
    logger.info("public access: %s", st)
    return PublicAccess(connected=st != "None", stack_type=st)


def check_type_for(access: PublicAccess) -> str:
    """Maps the stack type to a geo-IP check type, or "" when offline."""
    return {"DualStack": "both", "IPv4": "ipv4", "IPv6": "ipv6"}.get(access.stack_type, "")
