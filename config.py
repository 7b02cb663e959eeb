"""
PingStream configuration.
Environment-driven settings, probe tool availability flags, and platform commands.
"""

import os
import shutil
import sys
from typing import List


def _env_float(name: str, default: float) -> float:
    try:
        return float(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


def _env_int(name: str, default: int) -> int:
    try:
        return int(os.environ.get(name, default))
    except (TypeError, ValueError):
        return default


IS_WINDOWS = sys.platform.startswith("win")
IS_LINUX = sys.platform.startswith("linux")

PORT = _env_int("PORT", 3000)
DEBUG = str(os.environ.get("PINGSTREAM_DEBUG", "")).strip().lower() in ("1", "true", "yes", "on")
API_KEY = os.environ.get("PINGSTREAM_API_KEY", "").strip()
LOG_LEVEL = os.environ.get("PINGSTREAM_LOG_LEVEL", "INFO").strip().upper() or "INFO"

# Port checker budget per probe (seconds).
PROBE_TIMEOUT = _env_float("PINGSTREAM_PROBE_TIMEOUT", 3.0)
PING_ONCE_TIMEOUT = _env_float("PINGSTREAM_PING_ONCE_TIMEOUT", 10.0)
EVENT_BUFFER_SIZE = max(1, _env_int("PINGSTREAM_EVENT_BUFFER", 500))

PING_AVAILABLE = shutil.which("ping") is not None
TRACEROUTE_AVAILABLE = shutil.which("tracert" if IS_WINDOWS else "traceroute") is not None


def ping_once_command(ip: str) -> List[str]:
    return ["ping", "-n", "1", ip] if IS_WINDOWS else ["ping", "-c", "1", ip]


def ping_stream_command(ip: str) -> List[str]:
    """Continuous ping that runs until killed.

    Linux ping is silent about lost replies unless -O is given, so it is
    added there to keep timeout lines flowing into the stats.
    """
    if IS_WINDOWS:
        return ["ping", "-t", ip]
    if IS_LINUX:
        return ["ping", "-O", ip]
    return ["ping", ip]


def traceroute_command(ip: str) -> List[str]:
    return ["tracert", ip] if IS_WINDOWS else ["traceroute", ip]
