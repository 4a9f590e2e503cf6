"""Report labels (English / Chinese) and the fixed-width line layout."""

from rich.cells import cell_len

LABEL_WIDTH = 20

LABELS = {
    "cpu_model": ("CPU Model", "CPU 型号"),
    "cpu_cores": ("CPU Cores", "CPU 数量"),
    "cpu_cache": ("CPU Cache", "CPU 缓存"),
    "aes_ni": ("AES-NI", "AES-NI"),
    "vah": ("VM-x/AMD-V/Hyper-V", "VM-x/AMD-V/Hyper-V"),
    "ram": ("RAM", "内存"),
    "virtio_balloon": ("Virtio Balloon", "气球驱动"),
    "ksm": ("KSM", "内核页合并"),
    "swap": ("Swap", "虚拟内存 Swap"),
    "disk": ("Disk", "硬盘空间"),
    "boot_path": ("Boot Path", "启动盘路径"),
    "gpu_model": ("GPU Model", "GPU 型号"),
    "gpu_stats": ("GPU Stats", "GPU 状态"),
    "os_release": ("OS Release", "系统"),
    "kernel": ("Kernel", "内核"),
    "uptime": ("Uptime", "系统在线时间"),
    "timezone": ("Timezone", "时区"),
    "load": ("Load", "负载"),
    "vm_type": ("VM Type", "虚拟化架构"),
    "nat_type": ("NAT Type", "NAT类型"),
    "tcp_acceleration": ("TCP Acceleration", "TCP加速方式"),
    "ipv4_asn": ("IPV4 ASN", "IPV4 ASN"),
    "ipv4_location": ("IPV4 Location", "IPV4 位置"),
    "ipv6_asn": ("IPV6 ASN", "IPV6 ASN"),
    "ipv6_location": ("IPV6 Location", "IPV6 位置"),
    "ipv6_mask": ("IPv6 Mask", "IPv6 子网掩码"),
}

MESSAGES = {
    "no_swap": ("[ no swap partition or swap file detected ]", "[ 未检测到交换分区或交换文件 ]"),
    "press_enter": ("Press Enter to exit...", "按回车键退出..."),
}


def _pick(pair, language: str) -> str:
    return pair[1] if language == "zh" else pair[0]


def label(key: str, language: str) -> str:
    return _pick(LABELS[key], language)


def message(key: str, language: str) -> str:
    return _pick(MESSAGES[key], language)


def head(key: str, language: str) -> str:
    """Returns the left column for a label, e.g. " CPU Model           : "."""
    text = label(key, language)
    # CJK glyphs take two terminal columns
    pad = max(LABEL_WIDTH - cell_len(text), 1)
    return " " + text + " " * pad + ": "


def line(key: str, value: str, language: str) -> str:
    return head(key, language) + value + "\n"
