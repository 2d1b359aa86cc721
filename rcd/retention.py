from __future__ import annotations

from .db import log_event
from .docker_ops import TargetServer
from .models import ContainerRecord, PortBindings, public_port_for

# The running container plus the one before it, kept as a rollback buffer.
RETAINED_CONTAINERS = 2


class RetentionSweeper:
    """Removes superseded containers for a service's public port."""

    retained = RETAINED_CONTAINERS

    def cleanup_containers(self, target_server: TargetServer, port_bindings: PortBindings) -> list[ContainerRecord]:
        public_port = public_port_for(port_bindings)
        old_containers = target_server.old_containers_for_port(public_port)[self.retained :]

        log_event("INFO", f"Public port {public_port}", host=target_server.hostname, port=public_port)
        for old in old_containers:
            log_event(
                "INFO",
                f"Removing old container {old.describe()}",
                host=target_server.hostname,
                port=public_port,
            )
            target_server.remove_container(old.id)
        return old_containers
