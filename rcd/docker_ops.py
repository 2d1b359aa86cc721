from __future__ import annotations

from typing import Any, Protocol

import docker
from docker.errors import NotFound

from .db import log_event
from .models import ContainerConfig, ContainerRecord, HostConfig
from .settings import settings


class TargetServer(Protocol):
    """One deployment destination. Implementations own all container state."""

    hostname: str

    def find_containers_by_public_port(self, port: int) -> list[ContainerRecord]: ...

    def old_containers_for_port(self, port: int) -> list[ContainerRecord]: ...

    def create_container(
        self, config: ContainerConfig, name: str | None = None, host_config: HostConfig | None = None
    ) -> ContainerRecord: ...

    def start_container(self, container_id: str, host_config: HostConfig) -> None: ...

    def stop_container(self, container_id: str, timeout: int) -> None: ...

    def remove_container(self, container_id: str) -> None: ...

    def inspect_container(self, container_id: str) -> dict[str, Any]: ...

    def attach(self, container_id: str) -> Any: ...


class DockerServer:
    """TargetServer backed by the Docker Engine API of a remote host."""

    def __init__(
        self,
        hostname: str,
        port: int | None = None,
        base_url: str | None = None,
        tls: Any = False,
        timeout_s: int | None = None,
    ):
        self.hostname = hostname
        self.base_url = base_url or f"tcp://{hostname}:{int(port or settings.docker_port)}"
        self.tls = tls
        self.timeout_s = timeout_s or settings.docker_timeout_s
        self._api: docker.APIClient | None = None

    def __repr__(self) -> str:
        return f"DockerServer({self.hostname!r})"

    def __str__(self) -> str:
        return self.hostname

    @property
    def api(self) -> docker.APIClient:
        if self._api is None:
            self._api = docker.APIClient(base_url=self.base_url, tls=self.tls, timeout=self.timeout_s)
        return self._api

    def _list(self, all_containers: bool) -> list[ContainerRecord]:
        return [ContainerRecord.from_api(raw) for raw in self.api.containers(all=all_containers)]

    def find_containers_by_public_port(self, port: int) -> list[ContainerRecord]:
        return [c for c in self._list(all_containers=False) if c.binds_public_port(port)]

    def old_containers_for_port(self, port: int) -> list[ContainerRecord]:
        """Every container, running or not, that ever published ``port``; newest first."""
        matches = [c for c in self._list(all_containers=True) if c.binds_public_port(port)]
        return sorted(matches, key=lambda c: c.created, reverse=True)

    def create_container(
        self, config: ContainerConfig, name: str | None = None, host_config: HostConfig | None = None
    ) -> ContainerRecord:
        payload = config.to_dict()
        # Engine API >= 1.24 only accepts HostConfig at creation time.
        if host_config is not None:
            payload["HostConfig"] = host_config.to_dict()
        resp = self.api.create_container_from_config(payload, name=name)
        for warning in resp.get("Warnings") or ():
            log_event("WARN", f"Docker: {warning}", host=self.hostname)
        return ContainerRecord(id=resp["Id"], image=config.image, names=(name,) if name else ())

    def start_container(self, container_id: str, host_config: HostConfig) -> None:
        # host_config was sent along with create_container
        self.api.start(container_id)

    def stop_container(self, container_id: str, timeout: int) -> None:
        try:
            self.api.stop(container_id, timeout=timeout)
        except NotFound:
            log_event("WARN", f"Container {container_id[:8]} vanished before stop", host=self.hostname)

    def remove_container(self, container_id: str) -> None:
        try:
            self.api.remove_container(container_id)
        except NotFound:
            return

    def inspect_container(self, container_id: str) -> dict[str, Any]:
        return self.api.inspect_container(container_id)

    def attach(self, container_id: str) -> Any:
        return self.api.attach_socket(
            container_id, params={"stdin": 1, "stdout": 1, "stderr": 1, "stream": 1}
        )
