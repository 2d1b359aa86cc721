from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, field_validator

from .models import port_bindings_from_specs, public_port_for


class DeployRequest(BaseModel):
    image: str = Field(..., min_length=1, description="Docker image (name:tag or id)")
    port_bindings: dict[str, list[dict[str, str]]] = Field(
        ..., description='Docker-style bindings, e.g. {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]}'
    )
    env: dict[str, str] = Field(default_factory=dict, description="Values may use %DOCKER_HOSTNAME% / %DOCKER_HOST_IP%")
    volumes: list[str] = Field(default_factory=list, description="host_path:container_path")
    command: list[str] | None = None
    # Left unconstrained: range checks belong to the config builder, which owns the exit codes.
    memory: Any = None
    cpu_shares: Any = None
    health_endpoint: str = "/"
    stop_timeout: int = Field(30, ge=0)
    check_retries: int = Field(12, ge=1)
    check_sleep_s: float = Field(5, ge=0)

    @field_validator("port_bindings")
    @classmethod
    def _one_public_port(cls, v: dict[str, list[dict[str, str]]]) -> dict[str, list[dict[str, str]]]:
        if not v:
            raise ValueError("at least one port binding is required")
        try:
            public_port_for(v)
        except (KeyError, IndexError, TypeError) as e:
            raise ValueError(f"first port binding has no usable HostPort: {e}") from e
        return v

    @field_validator("health_endpoint")
    @classmethod
    def _absolute_path(cls, v: str) -> str:
        # Keep it a path: the host comes from the target server.
        if not v.startswith("/") or "://" in v:
            raise ValueError("health_endpoint must be an absolute path")
        return v

    @field_validator("volumes")
    @classmethod
    def _volume_specs(cls, v: list[str]) -> list[str]:
        for spec in v:
            if ":" not in spec:
                raise ValueError(f"volume {spec!r} must be host_path:container_path")
        return v

    @property
    def public_port(self) -> int:
        return public_port_for(self.port_bindings)

    @classmethod
    def from_ports(cls, ports: list[str], **kwargs) -> "DeployRequest":
        """Build a request from ``host:container[/proto]`` port specs."""
        return cls(port_bindings=port_bindings_from_specs(ports), **kwargs)
