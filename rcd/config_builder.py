from __future__ import annotations

from typing import Any, Iterable, Mapping

from .dns import HostIpCache
from .errors import InvalidCpuSharesConstraint, InvalidMemoryConstraint
from .models import ContainerConfig, HostConfig, PortBindings
from .settings import DeployOptions

UINT64_MAX = 0xFFFFFFFFFFFFFFFF

RESTART_POLICY_NAMES = ("always", "on-failure", "no")
DEFAULT_RESTART_POLICY = "on-failure"
DEFAULT_MAX_RETRY_COUNT = 10

HOSTNAME_PLACEHOLDER = "%DOCKER_HOSTNAME%"
HOST_IP_PLACEHOLDER = "%DOCKER_HOST_IP%"


def is_a_uint64(value: Any) -> bool:
    # bool is an int subclass but never a valid cgroup value
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 <= value <= UINT64_MAX


def interpolate_var(value: Any, hostname: str, ip_cache: HostIpCache) -> str:
    """Literal substitution of the hostname / host IP placeholders."""
    out = str(value).replace(HOSTNAME_PLACEHOLDER, hostname)
    if HOST_IP_PLACEHOLDER in out:
        out = out.replace(HOST_IP_PLACEHOLDER, ip_cache.resolve(hostname))
    return out


def container_config_for(
    target_server: Any,
    image_id: str,
    port_bindings: PortBindings | None = None,
    env_vars: Mapping[str, Any] | None = None,
    volumes: Iterable[str] | None = None,
    command: Iterable[str] | None = None,
    memory: Any = None,
    cpu_shares: Any = None,
    *,
    options: DeployOptions,
    ip_cache: HostIpCache,
) -> ContainerConfig:
    """Validate and assemble the launch config for a new container.

    Raises InvalidMemoryConstraint / InvalidCpuSharesConstraint before anything
    is sent to the daemon.
    """
    if memory is not None and not is_a_uint64(memory):
        raise InvalidMemoryConstraint(memory)
    if cpu_shares is not None and not is_a_uint64(cpu_shares):
        raise InvalidCpuSharesConstraint(cpu_shares)

    hostname = target_server.hostname
    env = None
    if env_vars is not None:
        env = tuple(f"{k}={interpolate_var(v, hostname, ip_cache)}" for k, v in env_vars.items())

    mounts = None
    if volumes is not None:
        # Only the container side is kept here; the full spec goes into HostConfig.Binds.
        mounts = {v.split(":")[-1]: {} for v in volumes}

    return ContainerConfig(
        image=image_id,
        hostname=options.container_hostname or hostname,
        cmd=tuple(command) if command is not None else None,
        memory=memory,
        cpu_shares=cpu_shares,
        exposed_ports={port: {} for port in port_bindings} if port_bindings is not None else None,
        env=env,
        volumes=mounts,
    )


def restart_policy_for(options: DeployOptions) -> dict[str, Any]:
    name = options.restart_policy_name or DEFAULT_RESTART_POLICY
    if name not in RESTART_POLICY_NAMES:
        name = DEFAULT_RESTART_POLICY

    policy: dict[str, Any] = {"Name": name}
    if name == "on-failure":
        retries = options.restart_policy_max_retry_count
        policy["MaximumRetryCount"] = DEFAULT_MAX_RETRY_COUNT if retries is None else retries
    return policy


def host_config_for(
    volumes: Iterable[str] | None,
    port_bindings: PortBindings,
    options: DeployOptions,
) -> HostConfig:
    binds = tuple(volumes) if volumes else None
    dns = None
    if options.custom_dns:
        dns = tuple(options.custom_dns)
    return HostConfig(
        port_bindings=port_bindings,
        restart_policy=restart_policy_for(options),
        binds=binds,
        dns=dns,
    )
