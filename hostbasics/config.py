"""Run configuration passed explicitly to every collector."""

import os
from dataclasses import dataclass, field
from typing import List, Optional

LANGUAGES = ("en", "zh")

DEFAULT_STUN_SERVERS = [
    "stun.voipgate.com:3478",
    "stun.miwifi.com:3478",
    "stunserver.stunprotocol.org:3478",
]

ENV_PREFIX = "HOSTBASICS_"


def _env_number(name: str, default, cast=int):
    """Reads HOSTBASICS_<name> from the environment, falling back to the default on bad input."""
    raw = os.getenv(ENV_PREFIX + name, "").strip()
    if not raw:
        return default
    try:
        return cast(raw)
    except ValueError:
        return default


@dataclass
class Settings:
    language: str = "zh"
    enable_logging: bool = False
    # Per-request timeouts, in seconds
    http_timeout: float = 12.0
    asn_timeout: float = 6.0
    precheck_timeout: float = 3.0
    stun_timeout: float = 3.0
    max_workers: int = 8
    http_retries: int = 3
    stun_servers: List[str] = field(default_factory=lambda: list(DEFAULT_STUN_SERVERS))
    send_hit: bool = True

    def __post_init__(self):
        self.language = (self.language or "zh").lower()
        if self.language not in LANGUAGES:
            raise ValueError(f"unsupported language: {self.language!r} (expected en or zh)")

    @classmethod
    def from_env(cls, language: Optional[str] = None, enable_logging: bool = False) -> "Settings":
        """Builds settings from CLI values, letting HOSTBASICS_* variables override the numeric defaults."""
        defaults = cls()
        return cls(
            language=language or defaults.language,
            enable_logging=enable_logging,
            http_timeout=_env_number("HTTP_TIMEOUT", defaults.http_timeout, float),
            asn_timeout=_env_number("ASN_TIMEOUT", defaults.asn_timeout, float),
            precheck_timeout=_env_number("PRECHECK_TIMEOUT", defaults.precheck_timeout, float),
            stun_timeout=_env_number("STUN_TIMEOUT", defaults.stun_timeout, float),
            max_workers=max(1, _env_number("MAX_WORKERS", defaults.max_workers)),
            http_retries=max(0, _env_number("HTTP_RETRIES", defaults.http_retries)),
            send_hit=os.getenv(ENV_PREFIX + "NO_HIT", "") == "",
        )
