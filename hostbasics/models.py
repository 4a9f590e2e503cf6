from dataclasses import dataclass


@dataclass
class IpInfo:
    """Public identity of one address family, as reported by geo-IP sources."""
    ip: str = ""
    asn: str = ""
    org: str = ""
    country: str = ""
    region: str = ""
    city: str = ""

    def has_geo(self) -> bool:
        return bool(self.country or self.region or self.city)

    def needs_asn_fallback(self) -> bool:
        return self.has_geo() and not self.asn


@dataclass
class SystemInfo:
    """Everything collected about the host. Empty string means unknown."""
    # CPU
    cpu_model: str = ""
    cpu_cores: str = ""
    cpu_cache: str = ""
    cpu_aes_ni: str = ""
    cpu_vah: str = ""
    # Memory
    memory_total: str = ""
    memory_usage: str = ""
    swap_total: str = ""
    swap_usage: str = ""
    virtio_balloon: str = ""
    ksm: str = ""
    # Disk
    disk_total: str = ""
    disk_usage: str = ""
    boot_path: str = ""
    # GPU
    gpu_model: str = ""
    gpu_stats: str = ""
    # Host
    platform: str = ""
    kernel: str = ""
    arch: str = ""
    uptime: str = ""
    timezone: str = ""
    vm_type: str = ""
    load: str = ""
    nat_type: str = ""
    tcp_acceleration: str = ""


@dataclass
class PublicAccess:
    connected: bool = False
    stack_type: str = "None"