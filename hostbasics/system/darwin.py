import functools
import logging
import platform
from typing import Dict, List, Optional

from hostbasics.models import SystemInfo
from hostbasics.network import ipv6
from hostbasics.network.ipv6 import PrefixSource
from hostbasics.system import parsers
from hostbasics.system.base import HostInfoProvider
from hostbasics.utils import run_cmd, safe_int

logger = logging.getLogger(__name__)


@functools.lru_cache(maxsize=1)
def hardware_profile() -> Dict[str, str]:
    out = run_cmd(["system_profiler", "SPHardwareDataType"], timeout=30)
    if "error" in out.lower():
        return {}
    return parsers.parse_system_profiler(out)


def _sysctl(key: str) -> str:
    return run_cmd(["sysctl", "-n", key]).strip()


class DarwinProvider(HostInfoProvider):
    name = "darwin"

    def cpu_type(self) -> str:
        return "Virtual" if _sysctl("kern.hv_vmm_present") == "1" else "Physical"

    def cpu_info(self, info: SystemInfo) -> None:
        super().cpu_info(info)
        profile = hardware_profile()
        info.cpu_model = (profile.get("Chip") or profile.get("Processor Name")
                          or _sysctl("machdep.cpu.brand_string") or info.cpu_model)
        # Intel Macs list the clock separately, e.g. "Processor Speed: 2.3 GHz"
        if (speed := profile.get("Processor Speed")) and "@" not in info.cpu_model:
            info.cpu_model = f"{info.cpu_model} @ {speed}"
        sizes = [safe_int(_sysctl(f"hw.{k}cachesize")) for k in ("l1d", "l1i", "l2", "l3")]
        info.cpu_cache = parsers.format_cache(*sizes)
        aes, virt = parsers.parse_darwin_features(run_cmd(["sysctl", "-a"]))
        info.cpu_aes_ni = self.status(aes)
        info.cpu_vah = self.status(virt)

    def memory_info(self, info: SystemInfo) -> None:
        super().memory_info(info)
        if memory := hardware_profile().get("Memory"):
            info.memory_total = memory
        info.swap_total = info.swap_usage = ""
        if swap := parsers.parse_swapusage(run_cmd(["sysctl", "vm.swapusage"])):
            info.swap_total, info.swap_usage = swap

    def gpu_models(self) -> List[str]:
        return parsers.parse_displays(run_cmd(["system_profiler", "SPDisplaysDataType"], timeout=30))

    def platform_name(self) -> str:
        release = platform.mac_ver()[0]
        return f"macOS {release}" if release else super().platform_name()

    def vm_type(self) -> str:
        profile = hardware_profile()
        return parsers.classify_mac_model(profile) if profile else ""

    def ipv6_prefix_sources(self, interface: str) -> List[PrefixSource]:
        return [
            ("ifconfig", lambda: ipv6.parse_ifconfig(run_cmd(["ifconfig", interface]))),
            ("networksetup", lambda: self._prefix_from_networksetup(interface)),
        ]

    def _prefix_from_networksetup(self, interface: str) -> Optional[int]:
        service = ipv6.parse_networksetup_port(run_cmd(["networksetup", "-listallhardwareports"]), interface)
        if not service:
            return None
        return ipv6.parse_networksetup_info(run_cmd(["networksetup", "-getinfo", service]))
