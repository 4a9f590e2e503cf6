"""Provider interface for platform-specific host facts, with psutil-backed defaults."""

import logging
import os
import platform
import time
from typing import List, Optional, Tuple

import psutil

from hostbasics.models import SystemInfo
from hostbasics.network.ipv6 import PrefixSource
from hostbasics.system import parsers
from hostbasics.utils import find_tool, read_text, run_cmd, size_mb_gb

logger = logging.getLogger(__name__)

EXPECTED_DISK_FS_TYPES = (
    "apfs", "ext4", "ext3", "ext2", "f2fs", "reiserfs", "jfs", "btrfs",
    "fuseblk", "zfs", "simfs", "ntfs", "fat32", "exfat", "xfs", "fuse.rclone",
)

GPU_STAT_ATTEMPTS = 3


def zoneinfo_name(path: str = "/etc/localtime") -> str:
    """Returns "Europe/Berlin" when path links into a zoneinfo tree, else ""."""
    target = os.path.realpath(path)
    _, sep, name = target.partition("zoneinfo/")
    return name if sep else ""


class HostInfoProvider:
    """Collects host facts for one platform.

    Each collector fills the fields it knows on the SystemInfo it is given and
    leaves the rest empty. Subclasses override the hooks for their platform;
    the defaults only rely on psutil and the platform module.
    """

    name = "generic"
    # wmi/COM objects are bound to the thread that created them
    thread_safe = True

    # --- status strings ---

    def enabled(self) -> str:
        return "✔️ Enabled"

    def disabled(self) -> str:
        return "❌ Disabled"

    def undetected(self) -> str:
        return "❌ Undetected"

    def status(self, on: bool) -> str:
        return self.enabled() if on else self.disabled()

    # --- CPU ---

    def cpu_type(self) -> str:
        return "Physical"

    def cpu_info(self, info: SystemInfo) -> None:
        if count := psutil.cpu_count(logical=True):
            info.cpu_cores = f"{count} {self.cpu_type()} CPU(s)"
        info.cpu_model = info.cpu_model or platform.processor()

    # --- Memory ---

    def memory_info(self, info: SystemInfo) -> None:
        vm = psutil.virtual_memory()
        info.memory_total = size_mb_gb(vm.total)
        info.memory_usage = size_mb_gb(vm.total - vm.available)
        swap = psutil.swap_memory()
        if swap.total:
            info.swap_total = size_mb_gb(swap.total)
            info.swap_usage = size_mb_gb(swap.used)
        info.virtio_balloon = self.enabled() if "virtio_balloon" in read_text("/proc/modules") else self.undetected()
        info.ksm = self.enabled() if "1" in read_text("/sys/kernel/mm/ksm/run") else self.undetected()

    # --- Disk ---

    def root_usage_fallback(self) -> Tuple[int, int]:
        """(total, used) bytes for "/" when no real filesystem was counted."""
        return 0, 0

    def disk_info(self, info: SystemInfo) -> None:
        mounts = {}
        for part in psutil.disk_partitions(all=False):
            fstype = part.fstype.lower()
            if part.device in mounts or "/var/lib/kubelet" in part.mountpoint:
                continue
            if any(t in fstype for t in EXPECTED_DISK_FS_TYPES):
                mounts[part.device] = part.mountpoint
        total = used = 0
        for mountpoint in mounts.values():
            try:
                usage = psutil.disk_usage(mountpoint)
            except OSError as exc:
                logger.debug("disk usage of %s: %s", mountpoint, exc)
                continue
            total += usage.total
            used += usage.used
        if total == 0 and used == 0:
            total, used = self.root_usage_fallback()
        info.disk_total = size_mb_gb(total)
        info.disk_usage = size_mb_gb(used)
        info.boot_path = self.boot_path()

    def boot_path(self) -> str:
        for part in psutil.disk_partitions(all=True):
            if part.fstype == "tmpfs":
                continue
            try:
                if psutil.disk_usage(part.mountpoint).total > 0:
                    return part.mountpoint
            except OSError:
                continue
        return ""

    # --- GPU ---

    def gpu_models(self) -> List[str]:
        return []

    def gpu_info(self, info: SystemInfo) -> None:
        models = self.gpu_models()
        if not models:
            return
        info.gpu_model = models[0]
        if (util := self.gpu_utilization()) is not None and util > 0:
            info.gpu_stats = f"{util:.2f}%"

    def gpu_utilization(self) -> Optional[float]:
        smi = find_tool("nvidia-smi")
        if not smi:
            return None
        for attempt in range(1, GPU_STAT_ATTEMPTS + 1):
            out = run_cmd([smi, "--query-gpu=utilization.gpu", "--format=csv,noheader,nounits"])
            if (value := parsers.parse_nvidia_smi(out)) is not None:
                return value
            logger.info("nvidia-smi gave no utilization, attempt %d", attempt)
            if attempt < GPU_STAT_ATTEMPTS:
                time.sleep(1)
        return None

    # --- Host ---

    def platform_name(self) -> str:
        return f"{platform.system()} {platform.release()}".strip()

    def kernel(self) -> str:
        return platform.release()

    def boot_time(self) -> Optional[float]:
        try:
            return psutil.boot_time()
        except (OSError, RuntimeError) as exc:
            logger.debug("boot time: %s", exc)
            return None

    def load_average(self) -> Tuple[float, float, float]:
        try:
            return psutil.getloadavg()
        except (OSError, AttributeError) as exc:
            logger.debug("load average: %s", exc)
            return 0.0, 0.0, 0.0

    def vm_type(self) -> str:
        return ""

    def host_info(self, info: SystemInfo) -> None:
        info.platform = self.platform_name()
        info.kernel = self.kernel()
        info.arch = platform.machine()
        if (booted := self.boot_time()) is not None:
            info.uptime = parsers.format_uptime(time.time() - booted)
        info.load = parsers.format_load(self.load_average())
        info.vm_type = self.vm_type()
        info.timezone = self.timezone()

    def tcp_acceleration(self) -> str:
        return ""

    def timezone(self) -> str:
        return zoneinfo_name() or time.strftime("%Z")

    # --- IPv6 ---

    def ipv6_prefix_sources(self, interface: str) -> List[PrefixSource]:
        return []
