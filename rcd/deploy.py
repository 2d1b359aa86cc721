from __future__ import annotations

import time
from typing import Any, Callable, Iterable, Mapping

import requests
from docker.errors import DockerException

from . import db
from .api_models import DeployRequest
from .config_builder import container_config_for, host_config_for
from .dns import HostIpCache
from .docker_ops import TargetServer
from .errors import ContainerValidationFailed, DeployError
from .health import HealthCheck, http_status_ok
from .models import ContainerConfig, ContainerRecord, PortBindings, public_port_for
from .retention import RetentionSweeper
from .settings import DeployOptions


class Deployer:
    """Drives stop-old / start-new / health-gate / cleanup for one host at a time.

    Holds no container state between calls; the only thing remembered is the
    resolved IP per hostname used for env interpolation.
    """

    def __init__(
        self,
        options: DeployOptions | None = None,
        health_check: HealthCheck = http_status_ok,
        ip_cache: HostIpCache | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.options = options or DeployOptions.from_settings()
        self.health_check = health_check
        self.ip_cache = ip_cache or HostIpCache()
        self.sweeper = RetentionSweeper()
        self._sleep = sleep

    def stop_containers(self, target_server: TargetServer, port_bindings: PortBindings, timeout: int = 30) -> list[ContainerRecord]:
        public_port = public_port_for(port_bindings)
        old_containers = target_server.find_containers_by_public_port(public_port)
        host = target_server.hostname
        db.log_event(
            "INFO",
            f"Stopping container(s): {[c.describe() for c in old_containers]}",
            host=host,
            port=public_port,
        )

        # Overlap windows can leave several bound; all of them go.
        for old in old_containers:
            db.log_event("INFO", f"Stopping old container {old.describe()}", host=host, port=public_port)
            target_server.stop_container(old.id, timeout)
        return old_containers

    def container_config_for(
        self,
        target_server: TargetServer,
        image_id: str,
        port_bindings: PortBindings | None = None,
        env_vars: Mapping[str, Any] | None = None,
        volumes: Iterable[str] | None = None,
        command: Iterable[str] | None = None,
        memory: Any = None,
        cpu_shares: Any = None,
    ) -> ContainerConfig:
        try:
            return container_config_for(
                target_server,
                image_id,
                port_bindings,
                env_vars,
                volumes,
                command,
                memory,
                cpu_shares,
                options=self.options,
                ip_cache=self.ip_cache,
            )
        except DeployError as e:
            db.log_event("ERROR", str(e), host=target_server.hostname)
            raise

    def start_new_container(
        self,
        target_server: TargetServer,
        image_id: str,
        port_bindings: PortBindings,
        volumes: Iterable[str] | None,
        env_vars: Mapping[str, Any] | None = None,
        command: Iterable[str] | None = None,
        memory: Any = None,
        cpu_shares: Any = None,
    ) -> ContainerRecord:
        volumes = list(volumes) if volumes is not None else None
        config = self.container_config_for(
            target_server, image_id, port_bindings, env_vars, volumes, command, memory, cpu_shares
        )
        return self._start_container_with_config(target_server, volumes, port_bindings, config)

    def launch_console(
        self,
        target_server: TargetServer,
        image_id: str,
        port_bindings: PortBindings,
        volumes: Iterable[str] | None,
        env_vars: Mapping[str, Any] | None = None,
    ) -> Any:
        """Start an interactive /bin/bash container and attach to it. No health gate."""
        volumes = list(volumes) if volumes is not None else None
        config = self.container_config_for(
            target_server, image_id, port_bindings, env_vars, volumes, ["/bin/bash"]
        ).with_console()
        container = self._start_container_with_config(target_server, volumes, port_bindings, config)
        return target_server.attach(container.id)

    def _start_container_with_config(
        self,
        target_server: TargetServer,
        volumes: list[str] | None,
        port_bindings: PortBindings,
        config: ContainerConfig,
    ) -> ContainerRecord:
        host = target_server.hostname
        host_config = host_config_for(volumes, port_bindings, self.options)

        db.log_event("INFO", f"Creating new container for {config.image[:8]}", host=host)
        new_container = target_server.create_container(config, self.options.name, host_config)

        db.log_event("INFO", f"Starting new container {new_container.short_id}", host=host)
        target_server.start_container(new_container.id, host_config)

        db.log_event("INFO", f"Inspecting new container {new_container.short_id}:", host=host)
        db.log_event("INFO", repr(target_server.inspect_container(new_container.id)), host=host)

        return new_container

    def container_up(self, target_server: TargetServer, port: int) -> bool:
        host = target_server.hostname
        try:
            running = target_server.find_containers_by_public_port(port)
        except (DockerException, requests.RequestException, OSError) as e:
            db.log_event("WARN", f"Could not list containers on {host}: {type(e).__name__}: {e}", host=host, port=port)
            return False

        if len(running) > 1:
            # Should never happen, but a half-finished earlier deploy can cause it.
            db.log_event("WARN", f"More than one container is bound to port {port} on {host}!", host=host, port=port)
            return False

        if running and running[0].binds_public_port(port):
            uptime = int(time.time()) - running[0].created
            db.log_event("INFO", f"Found container up for {uptime} seconds", host=host, port=port)
            return True

        return False

    def wait_for_health_check_ok(
        self,
        health_check: HealthCheck,
        target_server: TargetServer,
        port: int,
        endpoint: str,
        image_id: str,
        tag: str | None = None,
        sleep_time: float = 5,
        retries: int = 12,
    ) -> int:
        """Block until the new container serves ``endpoint`` or the retry budget is spent.

        Returns the number of rounds used; raises ContainerValidationFailed when
        a last health check after the final round still fails.
        """
        host = target_server.hostname
        db.log_event("INFO", "Waiting for the port to come up", host=host, port=port)

        for attempt in range(1, retries + 1):
            if self.container_up(target_server, port) and self._healthy(health_check, target_server, port, endpoint):
                db.log_event("INFO", f"Container is up! ({image_id}{':' + tag if tag else ''})", host=host, port=port)
                return attempt

            db.log_event("INFO", f"Waiting {sleep_time} seconds to test the {endpoint} endpoint...", host=host, port=port)
            self._sleep(sleep_time)

        if not self._healthy(health_check, target_server, port, endpoint):
            db.log_event("ERROR", f"Failed to validate started container on {host}:{port}", host=host, port=port)
            raise ContainerValidationFailed(host, port)
        return retries

    def _healthy(self, health_check: HealthCheck, target_server: TargetServer, port: int, endpoint: str) -> bool:
        try:
            return bool(health_check(target_server, port, endpoint))
        except (DockerException, requests.RequestException, OSError) as e:
            db.log_event("WARN", f"Health check on {endpoint} errored: {type(e).__name__}: {e}", host=target_server.hostname, port=port)
            return False

    def wait_for_load_balancer_check_interval(self) -> None:
        self._sleep(self.options.rolling_deploy_check_interval)

    def cleanup_containers(self, target_server: TargetServer, port_bindings: PortBindings) -> list[ContainerRecord]:
        return self.sweeper.cleanup_containers(target_server, port_bindings)

    def deploy_to_host(self, target_server: TargetServer, request: DeployRequest) -> ContainerRecord:
        """Stop, start, and health-gate ``request`` on one host.

        Nothing is rolled back on failure: the old containers stay stopped and
        the new one is left as-is for the operator.
        """
        host = target_server.hostname
        port = request.public_port
        new_container: ContainerRecord | None = None
        try:
            # Validate before anything on the host is touched.
            self.container_config_for(
                target_server,
                request.image,
                request.port_bindings,
                request.env,
                request.volumes,
                request.command,
                request.memory,
                request.cpu_shares,
            )
            self.stop_containers(target_server, request.port_bindings, timeout=request.stop_timeout)
            new_container = self.start_new_container(
                target_server,
                request.image,
                request.port_bindings,
                request.volumes,
                request.env,
                request.command,
                request.memory,
                request.cpu_shares,
            )
            self.wait_for_health_check_ok(
                self.health_check,
                target_server,
                port,
                request.health_endpoint,
                request.image,
                sleep_time=request.check_sleep_s,
                retries=request.check_retries,
            )
        except Exception as e:
            db.record_deployment(
                host,
                port,
                request.image,
                "failed",
                container_id=new_container.id if new_container else None,
                detail=str(e) if isinstance(e, DeployError) else f"{type(e).__name__}: {e}",
            )
            raise

        db.record_deployment(host, port, request.image, "ok", container_id=new_container.id)
        return new_container
