"""Host facts: collectors run through a per-platform provider, then rendered as the system block."""

import concurrent.futures
import dataclasses
import logging
import platform
from typing import Callable, Dict, Optional

import psutil

from hostbasics import i18n
from hostbasics.config import Settings
from hostbasics.models import PublicAccess, SystemInfo
from hostbasics.system.base import HostInfoProvider
from hostbasics.system.bsd import BsdProvider
from hostbasics.system.darwin import DarwinProvider
from hostbasics.system.linux import LinuxProvider
from hostbasics.system.nat import detect_nat_type
from hostbasics.system.windows import WindowsProvider

logger = logging.getLogger(__name__)

PROVIDERS = {
    "Linux": LinuxProvider,
    "Darwin": DarwinProvider,
    "FreeBSD": BsdProvider,
    "OpenBSD": BsdProvider,
    "NetBSD": BsdProvider,
    "DragonFly": BsdProvider,
    "Windows": WindowsProvider,
}


def select_provider(system: Optional[str] = None) -> HostInfoProvider:
    system = system or platform.system()
    cls = PROVIDERS.get(system, HostInfoProvider)
    logger.debug("using %s provider for %s", cls.__name__, system)
    return cls()


def _collect(name: str, fn: Callable[[SystemInfo], None]) -> SystemInfo:
    """Runs one collector on its own SystemInfo; a failure leaves its fields empty."""
    part = SystemInfo()
    try:
        fn(part)
    except (OSError, ValueError, RuntimeError, AttributeError, psutil.Error) as exc:
        logger.info("%s collector failed: %s", name, exc)
    return part


def _fill(dst: SystemInfo, src: SystemInfo) -> None:
    for f in dataclasses.fields(SystemInfo):
        if not getattr(dst, f.name) and getattr(src, f.name):
            setattr(dst, f.name, getattr(src, f.name))


def get_host(settings: Settings, provider: HostInfoProvider, access: Optional[PublicAccess] = None) -> SystemInfo:
    """Collects every host fact. NAT detection only runs when the precheck saw the internet."""
    tasks: Dict[str, Callable[[SystemInfo], None]] = {
        "host": provider.host_info,
        "cpu": provider.cpu_info,
        "memory": provider.memory_info,
        "disk": provider.disk_info,
        "gpu": provider.gpu_info,
    }

    def tcp(info: SystemInfo) -> None:
        info.tcp_acceleration = provider.tcp_acceleration()

    def nat(info: SystemInfo) -> None:
        info.nat_type = detect_nat_type(settings)

    tasks["tcp"] = tcp
    if access is not None and access.connected:
        tasks["nat"] = nat

    if provider.thread_safe:
        with concurrent.futures.ThreadPoolExecutor(max_workers=settings.max_workers) as ex:
            futures = {name: ex.submit(_collect, name, fn) for name, fn in tasks.items()}
            parts = {name: f.result() for name, f in futures.items()}
    else:
        # NAT only touches sockets, so it can still overlap the single-threaded collectors
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as ex:
            nat_future = ex.submit(_collect, "nat", tasks.pop("nat")) if "nat" in tasks else None
            parts = {name: _collect(name, fn) for name, fn in tasks.items()}
            if nat_future is not None:
                parts["nat"] = nat_future.result()

    info = SystemInfo()
    # Each collector owns its own fields
    for part in parts.values():
        _fill(info, part)
    return info


def render_system_info(info: SystemInfo, language: str) -> str:
    """Formats the system block in its fixed order; unknown optional lines are left out."""
    line = i18n.line
    out = line("cpu_model", info.cpu_model, language)
    out += line("cpu_cores", info.cpu_cores, language)
    if info.cpu_cache:
        out += line("cpu_cache", info.cpu_cache, language)
    if info.cpu_aes_ni:
        out += line("aes_ni", info.cpu_aes_ni, language)
    if info.cpu_vah:
        out += line("vah", info.cpu_vah, language)
    out += line("ram", f"{info.memory_usage} / {info.memory_total}", language)
    if info.virtio_balloon:
        out += line("virtio_balloon", info.virtio_balloon, language)
    if info.ksm:
        out += line("ksm", info.ksm, language)
    if not info.swap_total and not info.swap_usage:
        out += line("swap", i18n.message("no_swap", language), language)
    elif info.swap_total and info.swap_usage:
        out += line("swap", f"{info.swap_usage} / {info.swap_total}", language)
    out += line("disk", f"{info.disk_usage} / {info.disk_total}", language)
    if info.boot_path:
        out += line("boot_path", info.boot_path, language)
    if info.gpu_model:
        out += line("gpu_model", info.gpu_model, language)
    if info.gpu_stats:
        out += line("gpu_stats", info.gpu_stats, language)
    out += line("os_release", f"{info.platform} [{info.arch}] ", language)
    if info.kernel:
        out += line("kernel", info.kernel, language)
    out += line("uptime", info.uptime, language)
    if info.timezone:
        out += line("timezone", info.timezone, language)
    out += line("load", info.load, language)
    out += line("vm_type", info.vm_type, language)
    if info.nat_type:
        out += line("nat_type", info.nat_type, language)
    if info.tcp_acceleration:
        out += line("tcp_acceleration", info.tcp_acceleration, language)
    return out


def check_system_info(language: str, settings: Settings, provider: HostInfoProvider,
                      access: Optional[PublicAccess] = None) -> str:
    return render_system_info(get_host(settings, provider, access), language)
