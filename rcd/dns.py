from __future__ import annotations

import socket
from threading import Lock


class HostIpCache:
    """Forward-DNS memo keyed by hostname.

    Populated on first lookup of a hostname and never invalidated; one cache
    lives as long as the Deployer that owns it.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._ips: dict[str, str] = {}

    def resolve(self, hostname: str) -> str:
        with self._lock:
            cached = self._ips.get(hostname)
        if cached is not None:
            return cached
        ip = socket.getaddrinfo(hostname, None)[0][4][0]
        with self._lock:
            return self._ips.setdefault(hostname, ip)

    def __contains__(self, hostname: str) -> bool:
        with self._lock:
            return hostname in self._ips
