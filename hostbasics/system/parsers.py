"""Pure parsers over captured command output and procfs text.

Everything here takes a string and returns plain values so that each format
can be pinned by a test without the tool being installed.
"""

import re
import shlex
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set, Tuple

from hostbasics.utils import convert_bytes, normspace, safe_int, split_value

VM_TYPES = {
    "kvm": "KVM",
    "xen": "Xen Hypervisor",
    "microsoft": "Microsoft Hyper-V",
    "vmware": "VMware",
    "oracle": "Oracle VirtualBox",
    "parallels": "Parallels",
    "qemu": "QEMU",
    "amazon": "Amazon Virtualization",
    "docker": "Docker",
    "openvz": "OpenVZ (Virutozzo)",
    "lxc": "LXC",
    "lxc-libvirt": "LXC (Based on libvirt)",
    "uml": "User-mode Linux",
    "systemd-nspawn": "Systemd nspawn",
    "bochs": "BOCHS",
    "rkt": "RKT",
    "zvm": "S390 Z/VM",
    "bhyve": "bhyve",
    "wsl": "Windows Subsystem for Linux",
    "none": "",
}

# kern.vm_guest values on FreeBSD
BSD_VM_GUESTS = {
    "kvm": "kvm",
    "xen": "xen",
    "hv": "microsoft",
    "vmware": "vmware",
    "vbox": "oracle",
    "parallels": "parallels",
    "bhyve": "bhyve",
}

MAC_VIRTUAL_KEYWORDS = ("vmware", "virtualbox", "parallels", "qemu", "microsoft", "xen")
MAC_PHYSICAL_MODELS = ("mac mini", "macbook pro", "macbook air", "imac", "mac studio", "mac pro")


def vm_type_name(raw: str) -> str:
    """Maps a systemd-detect-virt style identifier to its display name ("" if unknown)."""
    return VM_TYPES.get(raw.strip().lower(), "")


# --- CPU ---

@dataclass
class CpuinfoFacts:
    model: str = ""
    cache: str = ""
    mhz: str = ""
    flags: Set[str] = field(default_factory=set)


def parse_cpuinfo(text: str) -> CpuinfoFacts:
    facts = CpuinfoFacts()
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key == "model name" and not facts.model:
            facts.model = value
        elif key == "cache size" and not facts.cache:
            facts.cache = value
        elif key == "cpu MHz" and not facts.mhz:
            facts.mhz = value
        elif key in ("flags", "Features"):
            facts.flags.update(value.split())
    return facts


def with_frequency(model: str, mhz: str, unit: str = "MHz") -> str:
    """Appends " @ <mhz> <unit>" unless the model already names a frequency."""
    if not model or not mhz or "@" in model:
        return model
    return f"{model} @ {mhz} {unit}"


@dataclass
class LscpuFacts:
    model: str = ""
    vendor: str = ""
    mhz: str = ""
    mhz_unit: str = "MHz"
    l1d: Optional[int] = None
    l1i: Optional[int] = None
    l2: Optional[int] = None
    l3: Optional[int] = None
    hypervisor: str = ""
    virtualization_type: str = ""


def parse_lscpu(text: str) -> LscpuFacts:
    """Reads `lscpu -B` (cache sizes in bytes)."""
    facts = LscpuFacts()
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key == "Model name" and not facts.model:
            facts.model = value
        elif key == "Vendor ID":
            facts.vendor = value
        elif key == "CPU MHz" and not facts.mhz:
            facts.mhz = value
        elif key in ("CPU static MHz", "CPU dynamic MHz") and not facts.mhz:
            facts.mhz, facts.mhz_unit = value, key[4:]
        elif key.startswith("L1d"):
            facts.l1d = _cache_bytes(value)
        elif key.startswith("L1i"):
            facts.l1i = _cache_bytes(value)
        elif key.startswith("L2"):
            facts.l2 = _cache_bytes(value)
        elif key.startswith("L3"):
            facts.l3 = _cache_bytes(value)
        elif key == "Hypervisor vendor" or key == "Hypervisor":
            facts.hypervisor = value
        elif key == "Virtualization type":
            facts.virtualization_type = value
    return facts


def _cache_bytes(value: str) -> Optional[int]:
    # Newer util-linux prints "49152 (2 instances)" even with -B
    return safe_int(value.split(" ", 1)[0])


def format_cache(l1d: Optional[int], l1i: Optional[int], l2: Optional[int], l3: Optional[int]) -> str:
    """"L1: 64 KB / L2: 512 KB / L3: 32 MB", or "" unless all four sizes are known."""
    if None in (l1d, l1i, l2, l3):
        return ""
    parts = []
    for name, size in (("L1", l1d + l1i), ("L2", l2), ("L3", l3)):
        unit, value = convert_bytes(size)
        parts.append(f"{name}: {value} {unit}")
    return " / ".join(parts)


def parse_sysctl_features(text: str) -> Tuple[bool, bool]:
    """Returns (aes, vmx_or_svm) from `sysctl -a` on the BSDs."""
    aes = bool(re.search(r"crypto\.aesni\s*=\s*(\d)", text) or re.search(r"dev\.aesni\.0\.%desc:\s*(.+)", text))
    virt = bool(re.search(r"(hw\.vmx|hw\.svm)\s*=\s*(\d)", text))
    return aes, virt


def parse_darwin_features(text: str) -> Tuple[bool, bool]:
    """Returns (aes, virtualization) from `sysctl -a` on macOS, Intel or Apple silicon."""
    aes = False
    virt = False
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        if key in ("machdep.cpu.features", "machdep.cpu.leaf7_features"):
            words = value.upper().split()
            aes = aes or "AES" in words
            virt = virt or "VMX" in words
        elif key == "hw.optional.arm.FEAT_AES":
            aes = aes or value == "1"
        elif key == "kern.hv_support":
            virt = virt or value == "1"
    return aes, virt


def parse_boottime(text: str) -> Optional[int]:
    """Reads the epoch seconds from kern.boottime ("{ sec = 1700000000, usec = 1 } ...")."""
    if m := re.search(r"sec = (\d+), usec = (\d+)", text):
        return int(m.group(1))
    return None


# --- macOS hardware profile ---

def parse_system_profiler(text: str) -> Dict[str, str]:
    """Flattens `system_profiler SPHardwareDataType` into {"Chip": "Apple M2", ...}."""
    profile: Dict[str, str] = {}
    for line in text.splitlines():
        key, sep, value = line.partition(":")
        key, value = key.strip(), value.strip()
        if sep and key and value and key not in profile:
            profile[key] = value
    return profile


def classify_mac_model(profile: Dict[str, str]) -> str:
    """Tells a virtualized Mac from real hardware by its model strings."""
    model_name = profile.get("Model Name", "")
    blob = " ".join(profile.get(k, "") for k in ("Model Name", "Model Identifier", "Chip", "Manufacturer", "Vendor"))
    if any(k in blob.lower() for k in MAC_VIRTUAL_KEYWORDS):
        return "virtual"
    if model_name.lower().startswith(MAC_PHYSICAL_MODELS):
        return "Physical"
    return model_name or "Unknown"


def parse_displays(text: str) -> List[str]:
    return [split_value(line) for line in text.splitlines() if line.strip().startswith("Chipset Model:")]


# --- Memory / disk ---

def mb_to_human(mb: float) -> str:
    if mb >= 1024:
        return f"{mb / 1024:.2f} GB"
    return f"{mb:.2f} MB"


def parse_swapusage(text: str) -> Optional[Tuple[str, str]]:
    """Parses "vm.swapusage: total = 2048.00M  used = 1021.25M  free = 1026.75M  (encrypted)".

    Returns (total, used) formatted, or None.
    """
    fields = text.split()
    if len(fields) < 7:
        return None
    try:
        total = float(fields[3].rstrip("M"))
        used = float(fields[6].rstrip("M"))
    except ValueError:
        return None
    return mb_to_human(total), mb_to_human(used)


def parse_df_root(text: str) -> Tuple[int, int]:
    """(total, used) bytes of "/" from plain `df` output in 1K blocks."""
    for line in text.splitlines():
        cols = line.split()
        if len(cols) == 6 and cols[5] == "/":
            total, used = safe_int(cols[1]), safe_int(cols[2])
            if total is not None and used is not None:
                return total * 1024, used * 1024
    return 0, 0


# --- Host ---

def parse_dmidecode_family(text: str) -> str:
    for line in text.lower().splitlines():
        if "family" in line:
            name = vm_type_name(line.replace("family", "").replace(":", ""))
            if name:
                return name
    return ""


def parse_lspci_gpus(text: str) -> List[str]:
    """Picks VGA / 3D controllers out of `lspci -mm`."""
    gpus = []
    for line in text.splitlines():
        try:
            cols = shlex.split(line)
        except ValueError:
            continue
        if len(cols) < 4:
            continue
        cls = cols[1]
        if "VGA" in cls or "3D" in cls:
            gpus.append(normspace(f"{cols[2]} {cols[3]}"))
    return gpus


def parse_nvidia_smi(text: str) -> Optional[float]:
    """Average of `nvidia-smi --query-gpu=utilization.gpu --format=csv,noheader,nounits` lines."""
    values = []
    for line in text.splitlines():
        try:
            values.append(float(line.strip()))
        except ValueError:
            continue
    return sum(values) / len(values) if values else None


def parse_timedatectl(text: str) -> str:
    for line in text.splitlines():
        if line.strip().startswith("Time zone"):
            return split_value(line)
    return ""


def parse_loadavg(text: str) -> Optional[Tuple[float, float, float]]:
    cols = text.split()
    if len(cols) < 3:
        return None
    try:
        return float(cols[0]), float(cols[1]), float(cols[2])
    except ValueError:
        return None


def parse_os_release(text: str) -> str:
    values = {}
    for line in text.splitlines():
        key, sep, value = line.partition("=")
        if sep:
            values[key.strip()] = value.strip().strip('"').strip("'")
    if values.get("PRETTY_NAME"):
        return values["PRETTY_NAME"]
    return normspace(f"{values.get('NAME', '')} {values.get('VERSION_ID', '')}")


def windows_vm_type(system_type: str, build_type: str) -> str:
    """Derives a VM type from Win32_ComputerSystem.SystemType and Win32_OperatingSystem.BuildType."""
    both = f"{system_type} {build_type}"
    if "Multiprocessor Free" in both:
        return "Physical-Machine(Multiprocessor Free)"
    if "Virtual Machine" in both:
        return "Hyper-V(Virtual Machine)"
    if "VMware" in both:
        return "VMware"
    if system_type and build_type:
        return f"{system_type}({build_type})"
    return system_type or build_type


def format_uptime(seconds: float) -> str:
    seconds = max(int(seconds), 0)
    days, rest = divmod(seconds, 86400)
    hours, rest = divmod(rest, 3600)
    return f"{days} days, {hours:02d} hours, {rest // 60:02d} minutes"


def format_load(load: Tuple[float, float, float]) -> str:
    return " / ".join(f"{x:.2f}" for x in load)
