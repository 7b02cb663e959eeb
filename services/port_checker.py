"""
PingStream port checker.
Single TCP connect / UDP datagram probe with a fixed timeout.
"""

import logging
import socket
from typing import Optional

from config import PROBE_TIMEOUT
from models import PortCheckResult

logger = logging.getLogger(__name__)

PROTOCOLS = ("tcp", "udp")

OPEN = "open"
CLOSED = "closed"
CLOSED_TIMEOUT = "closed (timeout)"
CLOSED_ERROR = "closed (error)"


def parse_port(value) -> int:
    try:
        port = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"Invalid port: {value}") from None
    if not 1 <= port <= 65535:
        raise ValueError(f"Invalid port: {value}")
    return port


def check_tcp(ip: str, port: int, timeout: float) -> str:
    try:
        with socket.create_connection((ip, port), timeout=timeout):
            return OPEN
    except socket.timeout:
        return CLOSED_TIMEOUT
    except OSError:
        return CLOSED


def check_udp(ip: str, port: int, timeout: float) -> str:
    """UDP has no handshake: any reply within the timeout counts as open."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
            sock.settimeout(timeout)
            sock.sendto(b"ping", (ip, port))
            sock.recvfrom(1024)
            return OPEN
    except socket.timeout:
        return CLOSED_TIMEOUT
    except OSError:
        return CLOSED_ERROR


def check_port(ip: str, port, protocol: str, timeout: Optional[float] = None) -> PortCheckResult:
    """Probe ip:port once. Network failures map to a status, never raise."""
    protocol = str(protocol or "").strip().lower()
    if protocol not in PROTOCOLS:
        raise ValueError("Invalid protocol. Use tcp or udp.")
    port_num = parse_port(port)
    budget = PROBE_TIMEOUT if timeout is None else timeout

    if protocol == "tcp":
        status = check_tcp(ip, port_num, budget)
    else:
        status = check_udp(ip, port_num, budget)
    logger.debug("%s %s:%s -> %s", protocol, ip, port_num, status)
    return PortCheckResult(ip=ip, port=port_num, protocol=protocol, status=status)
