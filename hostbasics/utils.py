"""Small helpers shared by the collectors."""

import logging
import os
import re
import shutil
import subprocess
from typing import Any, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

# Extra directories searched for admin tools that are often missing from a user's PATH
SBIN_DIRS = ["/usr/local/bin", "/usr/local/sbin", "/usr/bin", "/usr/sbin", "/sbin", "/bin", "/snap/bin"]

KB = 1024
MB = 1024 * KB
GB = 1024 * MB


def normspace(s: Optional[str]) -> str:
    """Normalizes whitespace in a string."""
    return re.sub(r"\s+", " ", s or "").strip()


def safe_int(x: Any) -> Optional[int]:
    """Safely converts a value to an integer, returning None on failure."""
    try:
        return int(x)
    except (ValueError, TypeError):
        return None


def run_cmd(args: Sequence[str], timeout: float = 10, merge_stderr: bool = False) -> str:
    """Runs a command and returns its stdout, or "" if it is missing, fails or times out."""
    try:
        result = subprocess.run(
            list(args),
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if merge_stderr else subprocess.DEVNULL,
            text=True,
            timeout=timeout,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("command %s failed: %s", args[0], exc)
        return ""
    if result.returncode != 0:
        logger.debug("command %s exited with %s", args[0], result.returncode)
        return ""
    return result.stdout


def find_tool(name: str) -> Optional[str]:
    """Locates an executable on PATH or in the usual sbin directories."""
    path = shutil.which(name)
    if path:
        return path
    for d in SBIN_DIRS:
        candidate = os.path.join(d, name)
        if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
            return candidate
    return None


def read_text(path: str) -> str:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError:
        return ""


def size_mb_gb(n: float) -> str:
    """Formats a byte count as "x.xx MB" below one GiB and "x.xx GB" above."""
    if n < GB:
        return f"{n / MB:.2f} MB"
    return f"{n / GB:.2f} GB"


def convert_bytes(n: int) -> Tuple[str, int]:
    """Picks the largest whole unit for a cache size, returning (unit, value)."""
    if n >= GB:
        return "GB", n // GB
    if n >= MB:
        return "MB", n // MB
    if n >= KB:
        return "KB", n // KB
    return "Bytes", n


def kb_to_human(size_kb: int) -> str:
    """Formats a size given in KB (as WMI reports caches)."""
    if size_kb >= 1024 * 1024:
        return f"{size_kb / (1024 * 1024):.2f} GB"
    if size_kb >= 1024:
        return f"{size_kb / 1024:.2f} MB"
    return f"{size_kb} KB"


def split_value(line: str) -> str:
    """Returns the text after the first colon of a "Key: value" line."""
    parts = line.split(":", 1)
    return parts[1].strip() if len(parts) == 2 else ""


def capture_for(args: Sequence[str], seconds: float) -> str:
    """Runs a command that never exits on its own and returns what it printed within seconds."""
    try:
        return subprocess.run(list(args), stdout=subprocess.PIPE, stderr=subprocess.DEVNULL,
                              text=True, timeout=seconds).stdout
    except subprocess.TimeoutExpired as exc:
        out = exc.stdout or b""
        return out.decode("utf-8", "replace") if isinstance(out, bytes) else out
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("command %s failed: %s", args[0], exc)
        return ""
