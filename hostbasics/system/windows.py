import logging
import platform
from typing import Any, List, Optional

from hostbasics.models import SystemInfo
from hostbasics.network import ipv6
from hostbasics.network.ipv6 import PrefixSource
from hostbasics.system import parsers
from hostbasics.system.base import HostInfoProvider
from hostbasics.utils import kb_to_human, normspace, run_cmd, safe_int

logger = logging.getLogger(__name__)

CPU_KEY = r"HARDWARE\DESCRIPTION\System\CentralProcessor\0"
HYPERVISOR_KEY = r"SYSTEM\CurrentControlSet\Control\Hypervisor\0"

POWERSHELL_IPV6 = (
    "Get-NetIPAddress -AddressFamily IPv6 -InterfaceAlias '{}' "
    "| Select-Object IPAddress,PrefixLength | ConvertTo-Json"
)


def registry_flag(subkey: str, value: str) -> bool:
    """True when HKLM\\subkey holds a value containing "1"."""
    import winreg
    try:
        with winreg.OpenKey(winreg.HKEY_LOCAL_MACHINE, subkey) as key:
            data, _ = winreg.QueryValueEx(key, value)
    except OSError:
        return False
    return "1" in str(data)


class WindowsProvider(HostInfoProvider):
    """WMI-backed collectors. The connection is created lazily and used from one thread."""

    name = "windows"
    thread_safe = False

    def __init__(self):
        self._wmi = None

    def _query(self, wmi_class: str) -> List[Any]:
        try:
            if self._wmi is None:
                import wmi
                self._wmi = wmi.WMI()
            return list(getattr(self._wmi, wmi_class)())
        except Exception as exc:  # wmi wraps COM failures in its own exception types
            logger.debug("WMI query %s failed: %s", wmi_class, exc)
            return []

    def _first(self, wmi_class: str) -> Optional[Any]:
        rows = self._query(wmi_class)
        return rows[0] if rows else None

    def enabled(self) -> str:
        return "[Y] Enabled"

    def disabled(self) -> str:
        return "[N] Disabled"

    def undetected(self) -> str:
        return "[N] Undetected"

    def cpu_type(self) -> str:
        cs = self._first("Win32_ComputerSystem")
        return "Virtual" if cs is not None and getattr(cs, "HypervisorPresent", False) else "Physical"

    def cpu_info(self, info: SystemInfo) -> None:
        super().cpu_info(info)
        processors = self._query("Win32_Processor")
        names = [normspace(p.Name) for p in processors if p.Name]
        if names:
            info.cpu_model = max(names, key=len)
        info.cpu_cache = self._cache(processors)
        info.cpu_aes_ni = self.status(registry_flag(CPU_KEY, "aes"))
        info.cpu_vah = self._virtualization(processors)

    def _cache(self, processors: List[Any]) -> str:
        sizes = [kb_to_human(n) for c in self._query("Win32_CacheMemory")
                 if (n := safe_int(c.InstalledSize)) is not None]
        if len(sizes) >= 3:
            return f"L1: {sizes[0]} / L2: {sizes[1]} / L3: {sizes[2]}"
        if not processors:
            return ""
        cpu = processors[0]
        l1 = sizes[0] if sizes else "null"
        l2 = sizes[1] if len(sizes) > 1 else kb_to_human(safe_int(cpu.L2CacheSize) or 0)
        return f"L1: {l1} / L2: {l2} / L3: {kb_to_human(safe_int(cpu.L3CacheSize) or 0)}"

    def _virtualization(self, processors: List[Any]) -> str:
        if registry_flag(CPU_KEY, "vmx"):
            return self.enabled()
        flags = [getattr(p, "VirtualizationFirmwareEnabled", None) for p in processors]
        if any(f is True for f in flags):
            return self.enabled()
        if any(f is False for f in flags):
            return self.disabled()
        return self.status(registry_flag(HYPERVISOR_KEY, "hypervisor"))

    def gpu_models(self) -> List[str]:
        return [normspace(g.Name) for g in self._query("Win32_VideoController") if g.Name]

    def platform_name(self) -> str:
        os_row = self._first("Win32_OperatingSystem")
        if os_row is not None and os_row.Caption:
            return normspace(os_row.Caption)
        return super().platform_name()

    def kernel(self) -> str:
        return platform.version()

    def vm_type(self) -> str:
        cs = self._first("Win32_ComputerSystem")
        os_row = self._first("Win32_OperatingSystem")
        system_type = normspace(getattr(cs, "SystemType", "") or "") if cs is not None else ""
        build_type = normspace(getattr(os_row, "BuildType", "") or "") if os_row is not None else ""
        return parsers.windows_vm_type(system_type, build_type)

    def timezone(self) -> str:
        tz = self._first("Win32_TimeZone")
        return normspace(tz.Caption) if tz is not None and tz.Caption else super().timezone()

    def ipv6_prefix_sources(self, interface: str) -> List[PrefixSource]:
        return [
            ("netsh", lambda: ipv6.parse_netsh(run_cmd(["netsh", "interface", "ipv6", "show", "addresses"]),
                                               interface)),
            ("powershell", lambda: ipv6.parse_powershell_addresses(
                run_cmd(["powershell", "-NoProfile", "-Command", POWERSHELL_IPV6.format(interface)]))),
        ]
