"""
PingStream one-shot ping.
Runs a single system ping and returns its raw output.
"""

import logging
import subprocess
from typing import Optional

from config import PING_ONCE_TIMEOUT, ping_once_command

logger = logging.getLogger(__name__)


class PingError(RuntimeError):
    """The ping command failed or could not be run."""


def ping_once(ip: str, timeout: Optional[float] = None) -> str:
    """Ping ip once. Returns stdout; raises PingError on failure."""
    ip = str(ip or "").strip()
    if not ip:
        raise ValueError("IP address is required")

    command = ping_once_command(ip)
    try:
        result = subprocess.run(
            command,
            capture_output=True,
            text=True,
            timeout=timeout if timeout is not None else PING_ONCE_TIMEOUT,
        )
    except subprocess.TimeoutExpired as exc:
        raise PingError(f"Ping timed out after {exc.timeout}s") from exc
    except OSError as exc:
        raise PingError(str(exc)) from exc

    logger.debug("%s -> rc=%s stdout=%r stderr=%r", " ".join(command), result.returncode, result.stdout, result.stderr)
    if result.returncode != 0:
        raise PingError(result.stderr.strip() or result.stdout.strip() or f"ping exited with status {result.returncode}")
    return result.stdout
