from collections import namedtuple

import pytest

import hostbasics.system as system
from hostbasics.models import PublicAccess, SystemInfo
from hostbasics.system import base, linux
from hostbasics.system.base import HostInfoProvider
from hostbasics.system.bsd import BsdProvider
from hostbasics.system.darwin import DarwinProvider
from hostbasics.system.linux import LinuxProvider
from hostbasics.system.windows import WindowsProvider

Partition = namedtuple("Partition", "device mountpoint fstype opts")
Usage = namedtuple("Usage", "total used free percent")

GB = 1024 ** 3


class FakeProvider(HostInfoProvider):
    def __init__(self, fail=()):
        self.fail = fail

    def _maybe_fail(self, name):
        if name in self.fail:
            raise OSError(f"{name} unavailable")

    def cpu_info(self, info):
        self._maybe_fail("cpu")
        info.cpu_model = "Test CPU"
        info.cpu_cores = "2 Virtual CPU(s)"

    def memory_info(self, info):
        info.memory_total = "2.00 GB"
        info.memory_usage = "512.00 MB"

    def disk_info(self, info):
        info.disk_total = "40.00 GB"
        info.disk_usage = "10.00 GB"
        info.boot_path = "/"

    def gpu_info(self, info):
        pass

    def host_info(self, info):
        info.platform = "Debian GNU/Linux 12 (bookworm)"
        info.arch = "x86_64"
        info.uptime = "1 days, 02 hours, 03 minutes"
        info.load = "0.00 / 0.00 / 0.00"
        info.vm_type = "KVM"

    def tcp_acceleration(self):
        return "bbr"


@pytest.mark.parametrize("name, cls", [
    ("Linux", LinuxProvider),
    ("Darwin", DarwinProvider),
    ("FreeBSD", BsdProvider),
    ("Windows", WindowsProvider),
    ("SunOS", HostInfoProvider),
])
def test_select_provider(name, cls):
    assert type(system.select_provider(name)) is cls


def test_status_strings():
    assert HostInfoProvider().status(True) == "✔️ Enabled"
    assert HostInfoProvider().status(False) == "❌ Disabled"
    assert WindowsProvider().status(True) == "[Y] Enabled"
    assert WindowsProvider().undetected() == "[N] Undetected"


def test_get_host_collects_everything(settings):
    info = system.get_host(settings, FakeProvider())
    assert info.cpu_model == "Test CPU"
    assert info.disk_total == "40.00 GB"
    assert info.tcp_acceleration == "bbr"
    assert info.nat_type == ""


def test_get_host_runs_nat_only_when_connected(monkeypatch, settings):
    monkeypatch.setattr(system, "detect_nat_type", lambda s: "Full Cone")
    assert system.get_host(settings, FakeProvider(), PublicAccess()).nat_type == ""
    online = PublicAccess(connected=True, stack_type="IPv4")
    assert system.get_host(settings, FakeProvider(), online).nat_type == "Full Cone"


def test_get_host_single_threaded_provider(monkeypatch, settings):
    monkeypatch.setattr(system, "detect_nat_type", lambda s: "Symmetric")
    provider = FakeProvider()
    provider.thread_safe = False
    info = system.get_host(settings, provider, PublicAccess(connected=True, stack_type="IPv4"))
    assert (info.cpu_model, info.nat_type) == ("Test CPU", "Symmetric")


def test_failed_collector_leaves_its_fields_empty(settings):
    info = system.get_host(settings, FakeProvider(fail=("cpu",)))
    assert info.cpu_model == ""
    assert info.memory_total == "2.00 GB"


def test_render_system_info_order_and_swap_notice(settings):
    info = system.get_host(settings, FakeProvider())
    lines = system.render_system_info(info, "en").splitlines()
    labels = [line.split(":", 1)[0].strip() for line in lines]
    assert labels == ["CPU Model", "CPU Cores", "RAM", "Swap", "Disk", "Boot Path",
                      "OS Release", "Uptime", "Load", "VM Type", "TCP Acceleration"]
    assert lines[3] == " Swap                : [ no swap partition or swap file detected ]"
    assert lines[2] == " RAM                 : 512.00 MB / 2.00 GB"
    assert lines[6] == " OS Release          : Debian GNU/Linux 12 (bookworm) [x86_64] "


def test_render_system_info_optional_lines():
    info = SystemInfo(cpu_cache="L1: 64 KB / L2: 1 MB / L3: 8 MB", swap_total="1.00 GB", swap_usage="0.00 MB",
                      gpu_model="NVIDIA A100", gpu_stats="12.50%", nat_type="Full Cone", timezone="UTC",
                      kernel="6.1.0")
    out = system.render_system_info(info, "zh")
    assert " CPU 缓存            : L1: 64 KB / L2: 1 MB / L3: 8 MB\n" in out
    assert " 虚拟内存 Swap       : 0.00 MB / 1.00 GB\n" in out
    assert "GPU 型号" in out and "GPU 状态" in out
    assert out.index("内核") < out.index("系统在线时间") < out.index("时区") < out.index("NAT类型")


def test_linux_cpu_info(monkeypatch):
    files = {"/proc/cpuinfo": "model name\t: AMD EPYC 7B13\ncpu MHz\t\t: 2449.998\nflags\t\t: fpu aes hypervisor\n"}
    lscpu = ("L1d cache: 32768\nL1i cache: 32768\nL2 cache: 524288\nL3 cache: 33554432\n"
             "Hypervisor vendor: KVM\nVirtualization type: full\n")
    monkeypatch.setattr(linux, "read_text", lambda path: files.get(path, ""))
    monkeypatch.setattr(linux, "find_tool", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(linux, "run_cmd", lambda args, **kw: lscpu if args[0].endswith("lscpu") else "")
    monkeypatch.setattr(base.psutil, "cpu_count", lambda logical=True: 4)
    info = SystemInfo()
    LinuxProvider().cpu_info(info)
    assert info.cpu_model == "AMD EPYC 7B13 @ 2449.998 MHz"
    assert info.cpu_cores == "4 Virtual CPU(s)"
    assert info.cpu_cache == "L1: 64 KB / L2: 512 KB / L3: 32 MB"
    assert info.cpu_aes_ni == "✔️ Enabled"
    assert info.cpu_vah == "✔️ Enabled (full)"


def test_linux_vm_type_falls_back_to_dedicated(monkeypatch):
    monkeypatch.setattr(linux, "find_tool", lambda name: None)
    monkeypatch.setattr(linux, "read_text", lambda path: "")
    monkeypatch.setattr(linux.os.path, "exists", lambda path: False)
    assert LinuxProvider().vm_type() == "Dedicated (No visible signage)"


def test_linux_vm_type_from_systemd_detect_virt(monkeypatch):
    monkeypatch.setattr(linux, "find_tool", lambda name: "/usr/bin/systemd-detect-virt")
    monkeypatch.setattr(linux, "run_cmd", lambda args, **kw: "lxc\n")
    assert LinuxProvider().vm_type() == "LXC"


def test_disk_info_counts_each_device_once(monkeypatch):
    parts = [
        Partition("/dev/vda1", "/", "ext4", "rw"),
        Partition("/dev/vda1", "/var/lib/docker", "ext4", "rw"),
        Partition("/dev/vdb", "/data", "xfs", "rw"),
        Partition("/dev/vdc", "/var/lib/kubelet/pods/x", "ext4", "rw"),
        Partition("tmpfs", "/run", "tmpfs", "rw"),
    ]
    usage = {"/": Usage(40 * GB, 10 * GB, 30 * GB, 25.0), "/data": Usage(100 * GB, 1 * GB, 99 * GB, 1.0),
             "/run": Usage(GB, 0, GB, 0.0)}
    monkeypatch.setattr(base.psutil, "disk_partitions", lambda all=False: parts)
    monkeypatch.setattr(base.psutil, "disk_usage", lambda path: usage[path])
    info = SystemInfo()
    HostInfoProvider().disk_info(info)
    assert info.disk_total == "140.00 GB"
    assert info.disk_usage == "11.00 GB"
    assert info.boot_path == "/"


def test_disk_info_uses_root_fallback(monkeypatch):
    monkeypatch.setattr(base.psutil, "disk_partitions", lambda all=False: [])
    monkeypatch.setattr(linux, "run_cmd", lambda args, **kw:
                        "Filesystem 1K-blocks Used Available Use% Mounted on\n"
                        "/dev/ploop 1048576 524288 524288 50% /\n")
    info = SystemInfo()
    LinuxProvider().disk_info(info)
    assert (info.disk_total, info.disk_usage, info.boot_path) == ("1.00 GB", "512.00 MB", "")
