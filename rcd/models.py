from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Mapping

# Docker-style port bindings: {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]}
PortBindings = Mapping[str, list[dict[str, str]]]


def public_port_for(port_bindings: PortBindings) -> int:
    """Host-side port of the first binding; one public port per service by convention."""
    if not port_bindings:
        raise ValueError("port_bindings must contain at least one binding")
    first = next(iter(port_bindings.values()))
    if not first:
        raise ValueError("first port binding has no host side")
    return int(first[0]["HostPort"])


def parse_port_spec(spec: str) -> tuple[str, list[dict[str, str]]]:
    """Parse ``[ip:]host_port:container_port[/proto]`` into one PortBindings item."""
    proto = "tcp"
    if "/" in spec:
        spec, proto = spec.rsplit("/", 1)
    parts = spec.split(":")
    if len(parts) == 2:
        host_ip, (host_port, container_port) = "0.0.0.0", parts
    elif len(parts) == 3:
        host_ip, host_port, container_port = parts
    else:
        raise ValueError(f"Invalid port spec {spec!r}; expected [ip:]host_port:container_port[/proto]")
    if not host_port.isdigit() or not container_port.isdigit():
        raise ValueError(f"Invalid port spec {spec!r}; ports must be numeric")
    return f"{int(container_port)}/{proto}", [{"HostIp": host_ip, "HostPort": str(int(host_port))}]


def port_bindings_from_specs(specs: list[str]) -> dict[str, list[dict[str, str]]]:
    bindings: dict[str, list[dict[str, str]]] = {}
    for spec in specs:
        key, binding = parse_port_spec(spec)
        bindings.setdefault(key, []).extend(binding)
    return bindings


@dataclass(frozen=True)
class PortMapping:
    ip: str | None
    private_port: int
    public_port: int | None
    type: str = "tcp"

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "PortMapping":
        public = raw.get("PublicPort")
        return cls(
            ip=raw.get("IP"),
            private_port=int(raw.get("PrivatePort", 0)),
            public_port=int(public) if public is not None else None,
            type=raw.get("Type", "tcp"),
        )


@dataclass(frozen=True)
class ContainerRecord:
    """One container as listed by the daemon. Never cached between calls."""

    id: str
    image: str = ""
    names: tuple[str, ...] = ()
    created: int = 0
    ports: tuple[PortMapping, ...] = ()
    status: str = ""
    state: str = ""

    @property
    def short_id(self) -> str:
        return self.id[:8]

    def describe(self) -> str:
        return f"{self.short_id} ({','.join(self.names)})"

    def binds_public_port(self, port: int) -> bool:
        return any(p.public_port == int(port) for p in self.ports)

    @classmethod
    def from_api(cls, raw: Mapping[str, Any]) -> "ContainerRecord":
        return cls(
            id=raw["Id"],
            image=raw.get("Image", ""),
            names=tuple(raw.get("Names") or ()),
            created=int(raw.get("Created") or 0),
            ports=tuple(PortMapping.from_api(p) for p in raw.get("Ports") or ()),
            status=raw.get("Status", ""),
            state=raw.get("State", ""),
        )


@dataclass(frozen=True)
class ContainerConfig:
    image: str
    hostname: str
    cmd: tuple[str, ...] | None = None
    memory: int | None = None
    cpu_shares: int | None = None
    exposed_ports: Mapping[str, dict] | None = None
    env: tuple[str, ...] | None = None
    volumes: Mapping[str, dict] | None = None
    attach_stdin: bool = False
    tty: bool = False
    open_stdin: bool = False

    def with_console(self) -> "ContainerConfig":
        return replace(self, cmd=("/bin/bash",), attach_stdin=True, tty=True, open_stdin=True)

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"Image": self.image, "Hostname": self.hostname}
        if self.cmd is not None:
            out["Cmd"] = list(self.cmd)
        if self.memory is not None:
            out["Memory"] = self.memory
        if self.cpu_shares is not None:
            out["CpuShares"] = self.cpu_shares
        if self.exposed_ports is not None:
            out["ExposedPorts"] = {k: {} for k in self.exposed_ports}
        if self.env is not None:
            out["Env"] = list(self.env)
        if self.volumes is not None:
            out["Volumes"] = {k: {} for k in self.volumes}
        if self.attach_stdin or self.tty or self.open_stdin:
            out["AttachStdin"] = self.attach_stdin
            out["Tty"] = self.tty
            out["OpenStdin"] = self.open_stdin
        return out


@dataclass(frozen=True)
class HostConfig:
    port_bindings: PortBindings
    restart_policy: Mapping[str, Any] = field(default_factory=dict)
    binds: tuple[str, ...] | None = None
    dns: tuple[str, ...] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.binds:
            out["Binds"] = list(self.binds)
        out["PortBindings"] = self.port_bindings
        if self.dns:
            out["Dns"] = list(self.dns)
        out["RestartPolicy"] = dict(self.restart_policy)
        return out
