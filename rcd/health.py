from __future__ import annotations

import socket
from typing import Any, Callable

import httpx

from .db import log_event
from .settings import settings

# (target_server, port, endpoint) -> healthy?
HealthCheck = Callable[[Any, int, str], bool]


def http_status_ok(target_server: Any, port: int, endpoint: str) -> bool:
    """GET http://<host>:<port><endpoint>; any 2xx is healthy.

    Transport failures are reported as unhealthy and never raised, so the
    caller's retry loop keeps going.
    """
    url = f"http://{target_server.hostname}:{port}{endpoint}"
    try:
        with httpx.Client(timeout=settings.health_timeout_s, follow_redirects=False) as client:
            resp = client.get(url, headers={"Accept": "*/*"})
    except httpx.TransportError:
        log_event("WARN", f"Failed to connect to {url}, no socket open.", host=target_server.hostname, port=port)
        return False

    if 200 <= resp.status_code < 300:
        return True

    log_event("WARN", f"Got HTTP status: {resp.status_code}", host=target_server.hostname, port=port)
    return False


def tcp_port_open(target_server: Any, port: int, endpoint: str = "") -> bool:
    """Healthy as soon as the port accepts a TCP connection; endpoint is ignored."""
    try:
        with socket.create_connection((target_server.hostname, int(port)), timeout=settings.health_timeout_s):
            return True
    except OSError:
        log_event("WARN", f"Port {port} not accepting connections", host=target_server.hostname, port=port)
        return False
