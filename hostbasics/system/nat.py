"""NAT type detection with the classic STUN tests (RFC 3489), framed as RFC 5389 messages.

Test I    binding request to the server
Test II   same, asking the server to answer from another IP and port
Test III  same, asking for another port only
Test I'   binding request to the server's alternate address
"""

import ipaddress
import logging
import os
import socket
import struct
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from hostbasics.config import Settings

logger = logging.getLogger(__name__)

MAGIC_COOKIE = 0x2112A442
BINDING_REQUEST = 0x0001
BINDING_SUCCESS = 0x0101
HEADER_LEN = 20

ATTR_MAPPED_ADDRESS = 0x0001
ATTR_CHANGE_REQUEST = 0x0003
ATTR_CHANGED_ADDRESS = 0x0005
ATTR_XOR_MAPPED_ADDRESS = 0x0020
ATTR_OTHER_ADDRESS = 0x802C

CHANGE_IP = 0x04
CHANGE_PORT = 0x02

OPEN_INTERNET = "Open Internet"
FULL_CONE = "Full Cone"
RESTRICTED_CONE = "Restricted Cone"
PORT_RESTRICTED_CONE = "Port Restricted Cone"
SYMMETRIC = "Symmetric"
SYMMETRIC_FIREWALL = "Symmetric UDP Firewall"
BLOCKED = "Blocked"
INCONCLUSIVE = "Inconclusive"

Address = Tuple[str, int]


class StunError(ValueError):
    """A datagram is not a well-formed STUN binding response."""


@dataclass
class StunResponse:
    mapped: Optional[Address] = None
    changed: Optional[Address] = None


def new_transaction_id() -> bytes:
    return os.urandom(12)


def build_binding_request(transaction_id: bytes, change_ip: bool = False, change_port: bool = False) -> bytes:
    if len(transaction_id) != 12:
        raise ValueError("transaction id must be 12 bytes")
    attrs = b""
    if change_ip or change_port:
        flags = (CHANGE_IP if change_ip else 0) | (CHANGE_PORT if change_port else 0)
        attrs = struct.pack("!HHI", ATTR_CHANGE_REQUEST, 4, flags)
    return struct.pack("!HHI", BINDING_REQUEST, len(attrs), MAGIC_COOKIE) + transaction_id + attrs


def _decode_address(value: bytes, xor_key: Optional[bytes]) -> Address:
    if len(value) < 8:
        raise StunError("address attribute too short")
    family = value[1]
    port = struct.unpack("!H", value[2:4])[0]
    if family == 0x01:
        raw = value[4:8]
    elif family == 0x02 and len(value) >= 20:
        raw = value[4:20]
    else:
        raise StunError(f"unknown address family {family:#x}")
    if xor_key is not None:
        port ^= MAGIC_COOKIE >> 16
        raw = bytes(a ^ b for a, b in zip(raw, xor_key))
    return str(ipaddress.ip_address(raw)), port


def parse_binding_response(data: bytes, transaction_id: Optional[bytes] = None) -> StunResponse:
    """Decodes a Binding Success Response; raises StunError for anything else."""
    if len(data) < HEADER_LEN:
        raise StunError("datagram shorter than a STUN header")
    msg_type, length, cookie = struct.unpack("!HHI", data[:8])
    tid = data[8:HEADER_LEN]
    if msg_type != BINDING_SUCCESS:
        raise StunError(f"not a binding success response: {msg_type:#06x}")
    if transaction_id is not None and tid != transaction_id:
        raise StunError("transaction id mismatch")
    if HEADER_LEN + length > len(data):
        raise StunError("truncated STUN message")

    xor_key = struct.pack("!I", MAGIC_COOKIE) + tid if cookie == MAGIC_COOKIE else None
    res = StunResponse()
    xor_mapped = None
    offset = HEADER_LEN
    end = HEADER_LEN + length
    while offset + 4 <= end:
        attr_type, attr_len = struct.unpack("!HH", data[offset:offset + 4])
        value = data[offset + 4:offset + 4 + attr_len]
        if len(value) < attr_len:
            raise StunError("truncated attribute")
        if attr_type == ATTR_MAPPED_ADDRESS:
            res.mapped = _decode_address(value, None)
        elif attr_type == ATTR_XOR_MAPPED_ADDRESS and xor_key is not None:
            xor_mapped = _decode_address(value, xor_key)
        elif attr_type in (ATTR_CHANGED_ADDRESS, ATTR_OTHER_ADDRESS) and res.changed is None:
            res.changed = _decode_address(value, None)
        # Attributes are padded to a multiple of 4 bytes
        offset += 4 + attr_len + (-attr_len % 4)
    if xor_mapped is not None:
        res.mapped = xor_mapped
    if res.mapped is None:
        raise StunError("response carries no mapped address")
    return res


class StunClient:
    """Sends binding requests from one UDP socket so every test shares the same mapping."""

    def __init__(self, sock: socket.socket, timeout: float, attempts: int = 2):
        self.sock = sock
        self.timeout = timeout
        self.attempts = attempts

    def request(self, addr: Address, change_ip: bool = False, change_port: bool = False) -> Optional[StunResponse]:
        for _ in range(self.attempts):
            tid = new_transaction_id()
            try:
                self.sock.sendto(build_binding_request(tid, change_ip, change_port), addr)
            except OSError as exc:
                logger.debug("STUN send to %s failed: %s", addr, exc)
                return None
            deadline = time.monotonic() + self.timeout
            while (remaining := deadline - time.monotonic()) > 0:
                self.sock.settimeout(remaining)
                try:
                    data, _ = self.sock.recvfrom(2048)
                except socket.timeout:
                    break
                except OSError as exc:
                    logger.debug("STUN receive failed: %s", exc)
                    return None
                try:
                    return parse_binding_response(data, tid)
                except StunError as exc:
                    logger.debug("ignoring datagram: %s", exc)
        return None


Requester = Callable[..., Optional[StunResponse]]


def classify_nat(request: Requester, server: Address, local_ip: str) -> str:
    """Runs the RFC 3489 decision tree; request(addr, change_ip=..., change_port=...) performs one test."""
    first = request(server)
    if first is None:
        return BLOCKED
    if first.mapped[0] == local_ip:
        return OPEN_INTERNET if request(server, change_ip=True, change_port=True) else SYMMETRIC_FIREWALL
    if request(server, change_ip=True, change_port=True):
        return FULL_CONE
    if first.changed is None:
        # Servers without a second address can not run the remaining tests
        return INCONCLUSIVE
    other = request(first.changed)
    if other is None:
        return INCONCLUSIVE
    if other.mapped != first.mapped:
        return SYMMETRIC
    return RESTRICTED_CONE if request(server, change_port=True) else PORT_RESTRICTED_CONE


def _resolve(server: str) -> Address:
    host, _, port = server.rpartition(":")
    info = socket.getaddrinfo(host, int(port), socket.AF_INET, socket.SOCK_DGRAM)
    return info[0][4][0], info[0][4][1]


def _local_ip_towards(addr: Address) -> str:
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as probe:
        probe.connect(addr)
        return probe.getsockname()[0]


def detect_nat_type(settings: Settings, servers: Optional[List[str]] = None) -> str:
    """Tries each STUN server until one gives a definite answer."""
    servers = settings.stun_servers if servers is None else servers
    results = []
    for server in servers:
        try:
            addr = _resolve(server)
            local_ip = _local_ip_towards(addr)
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
                sock.bind(("0.0.0.0", 0))
                result = classify_nat(StunClient(sock, settings.stun_timeout).request, addr, local_ip)
        except (OSError, ValueError) as exc:
            logger.info("STUN server %s unusable: %s", server, exc)
            continue
        logger.info("STUN server %s: %s", server, result)
        if result not in (BLOCKED, INCONCLUSIVE):
            return result
        results.append(result)
    if results and all(r == BLOCKED for r in results):
        return BLOCKED
    return INCONCLUSIVE
