import logging
from typing import List, Optional

from hostbasics.models import SystemInfo
from hostbasics.network import ipv6
from hostbasics.network.ipv6 import PrefixSource
from hostbasics.system import parsers
from hostbasics.system.base import HostInfoProvider
from hostbasics.utils import find_tool, read_text, run_cmd

logger = logging.getLogger(__name__)

RC_CONF_FILES = ["/etc/rc.conf", "/etc/rc.conf.local"]
RC_PREFIX_RE = r'(?i)ipv6_prefix(len)?="?(\d+)"?'


class BsdProvider(HostInfoProvider):
    """FreeBSD and friends: most facts come from sysctl."""

    name = "bsd"

    def __init__(self):
        self.sysctl = find_tool("sysctl")

    def _get(self, key: str) -> str:
        if not self.sysctl:
            return ""
        value = run_cmd([self.sysctl, "-n", key]).strip()
        return "" if "cannot" in value else value

    def cpu_type(self) -> str:
        guest = self._get("kern.vm_guest")
        return "Virtual" if guest and guest != "none" else "Physical"

    def cpu_info(self, info: SystemInfo) -> None:
        super().cpu_info(info)
        if (model := self._get("hw.model")) and len(model) >= 3:
            info.cpu_model = parsers.with_frequency(model, self._get("dev.cpu.0.freq"))
        if not info.cpu_cores and (ncpu := self._get("hw.ncpu")):
            info.cpu_cores = f"{ncpu} CPU(s)"
        if self.sysctl:
            aes, virt = parsers.parse_sysctl_features(run_cmd([self.sysctl, "-a"], timeout=20))
            info.cpu_aes_ni = self.status(aes)
            info.cpu_vah = self.status(virt)

    def boot_time(self) -> Optional[float]:
        if (booted := parsers.parse_boottime(self._get("kern.boottime"))) is not None:
            return booted
        return super().boot_time()

    def vm_type(self) -> str:
        guest = self._get("kern.vm_guest")
        if not guest:
            return ""
        if guest == "none":
            return "Dedicated (No visible signage)"
        return parsers.vm_type_name(parsers.BSD_VM_GUESTS.get(guest, guest)) or guest

    def tcp_acceleration(self) -> str:
        return self._get("net.inet.tcp.cc.algorithm")

    def ipv6_prefix_sources(self, interface: str) -> List[PrefixSource]:
        return [
            ("ifconfig", lambda: ipv6.parse_ifconfig(run_cmd(["ifconfig", interface]))),
            ("rc.conf", self._prefix_from_rc_conf),
        ]

    def _prefix_from_rc_conf(self) -> Optional[int]:
        for path in RC_CONF_FILES:
            if (found := ipv6.parse_config_prefix(read_text(path), RC_PREFIX_RE)) is not None:
                return found
        return None
