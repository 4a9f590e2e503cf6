import logging
import os
from typing import List, Optional, Tuple

from hostbasics.models import SystemInfo
from hostbasics.network import ipv6
from hostbasics.network.ipv6 import PrefixSource
from hostbasics.system import parsers
from hostbasics.system.base import HostInfoProvider, zoneinfo_name
from hostbasics.utils import capture_for, find_tool, read_text, run_cmd

logger = logging.getLogger(__name__)

NETWORK_CONFIG_FILES = [
    "/etc/network/interfaces",
    "/etc/netplan/01-netcfg.yaml",
    "/etc/netplan/50-cloud-init.yaml",
    "/etc/sysconfig/network-scripts/ifcfg-eth0",
]
CONFIG_PREFIX_RE = r"(?i)(prefix-length|prefixlen|netmask)[\s:=]+(\d+)"


class LinuxProvider(HostInfoProvider):
    name = "linux"

    def _cpuinfo(self) -> parsers.CpuinfoFacts:
        return parsers.parse_cpuinfo(read_text("/proc/cpuinfo"))

    def _lscpu(self) -> parsers.LscpuFacts:
        lscpu = find_tool("lscpu")
        return parsers.parse_lscpu(run_cmd([lscpu, "-B"])) if lscpu else parsers.LscpuFacts()

    def cpu_type(self) -> str:
        return "Virtual" if "hypervisor" in self._cpuinfo().flags else "Physical"

    def cpu_info(self, info: SystemInfo) -> None:
        super().cpu_info(info)
        cpuinfo = self._cpuinfo()
        lscpu = self._lscpu()

        model = cpuinfo.model or lscpu.model
        model = parsers.with_frequency(model, cpuinfo.mhz) if cpuinfo.mhz else \
            parsers.with_frequency(model, lscpu.mhz, lscpu.mhz_unit)
        # Some ARM boards only report a vendor
        if not model and lscpu.vendor:
            model = lscpu.vendor
        if not model:
            model = read_text("/proc/device-tree/model").strip("\x00\n ")
        info.cpu_model = model

        info.cpu_cache = parsers.format_cache(lscpu.l1d, lscpu.l1i, lscpu.l2, lscpu.l3) or cpuinfo.cache
        info.cpu_aes_ni = self.status("aes" in cpuinfo.flags)
        if cpuinfo.flags & {"vmx", "svm"}:
            info.cpu_vah = self.enabled()
        elif "hypervisor" in cpuinfo.flags or lscpu.hypervisor:
            suffix = f" ({lscpu.virtualization_type})" if lscpu.virtualization_type else ""
            info.cpu_vah = self.enabled() + suffix
        else:
            info.cpu_vah = self.disabled()

    def root_usage_fallback(self) -> Tuple[int, int]:
        # Covers OpenVZ-style containers whose root has an unlisted filesystem
        return parsers.parse_df_root(run_cmd(["df"], merge_stderr=True))

    def gpu_models(self) -> List[str]:
        lspci = find_tool("lspci")
        return parsers.parse_lspci_gpus(run_cmd([lspci, "-mm"])) if lspci else []

    def platform_name(self) -> str:
        for path in ("/etc/os-release", "/usr/lib/os-release"):
            if name := parsers.parse_os_release(read_text(path)):
                return name
        return super().platform_name()

    def kernel(self) -> str:
        return run_cmd(["uname", "-r"]).strip() or super().kernel()

    def load_average(self) -> Tuple[float, float, float]:
        return parsers.parse_loadavg(read_text("/proc/loadavg")) or super().load_average()

    def vm_type(self) -> str:
        if sdv := find_tool("systemd-detect-virt"):
            if name := parsers.vm_type_name(run_cmd([sdv]).strip()):
                return name
        if os.path.exists("/dev/lxss"):
            return "Windows Subsystem for Linux"
        if os.path.exists("/.dockerenv") or "docker" in read_text("/proc/1/cgroup"):
            return "Docker"
        if dmi := find_tool("dmidecode"):
            if name := parsers.parse_dmidecode_family(run_cmd([dmi, "-t", "system"])):
                return name
        return "Dedicated (No visible signage)"

    def tcp_acceleration(self) -> str:
        sysctl = find_tool("sysctl")
        if not sysctl:
            return read_text("/proc/sys/net/ipv4/tcp_congestion_control").strip()
        return run_cmd([sysctl, "-n", "net.ipv4.tcp_congestion_control"]).strip()

    def timezone(self) -> str:
        if tdc := find_tool("timedatectl"):
            if tz := parsers.parse_timedatectl(run_cmd([tdc])):
                return tz
        return zoneinfo_name() or run_cmd(["date", "+%Z"]).strip()

    # --- IPv6 prefix sources, most authoritative first ---

    def ipv6_prefix_sources(self, interface: str) -> List[PrefixSource]:
        return [
            ("radvdump", lambda: self._prefix_from_radvdump(interface)),
            ("router advertisement", lambda: self._prefix_from_ra(interface)),
            ("ip addr", lambda: self._prefix_from_ip_addr(interface)),
            ("config files", self._prefix_from_config),
        ]

    def _prefix_from_radvdump(self, interface: str) -> Optional[int]:
        radvdump = find_tool("radvdump")
        if not radvdump:
            return None
        return ipv6.parse_radvdump(capture_for([radvdump, "-i", interface], 5))

    def _prefix_from_ra(self, interface: str) -> Optional[int]:
        lengths = ipv6.solicit_prefix_lengths(interface)
        return lengths[0] if lengths else None

    def _prefix_from_ip_addr(self, interface: str) -> Optional[int]:
        ip = find_tool("ip")
        if not ip:
            return None
        return ipv6.parse_ip_addr(run_cmd([ip, "-o", "-6", "addr", "show", interface]))

    def _prefix_from_config(self) -> Optional[int]:
        for path in NETWORK_CONFIG_FILES:
            if (found := ipv6.parse_config_prefix(read_text(path), CONFIG_PREFIX_RE)) is not None:
                return found
        return None
