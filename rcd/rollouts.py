from __future__ import annotations

import secrets
from typing import Sequence

from . import db
from .api_models import DeployRequest
from .deploy import Deployer
from .docker_ops import TargetServer
from .runtime import RolloutStatus, RuntimeState


class RolloutManager:
    """Deploys one request across hosts, strictly one host after another.

    Any failure on a host stops the rollout; hosts after it are left
    untouched and the error propagates to the caller.
    """

    def __init__(self, deployer: Deployer, runtime: RuntimeState | None = None):
        self.deployer = deployer
        self.runtime = runtime or RuntimeState()

    def rolling_deploy(self, servers: Sequence[TargetServer], request: DeployRequest, cleanup: bool = True) -> RolloutStatus:
        st = RolloutStatus(
            id=secrets.token_hex(6),
            image=request.image,
            port=request.public_port,
            hosts=[s.hostname for s in servers],
            state="running",
            message=f"Rolling out {request.image} to {len(servers)} host(s)",
        )
        self.runtime.upsert_rollout(st)
        db.log_event("INFO", st.message, port=st.port)

        for idx, server in enumerate(servers):
            try:
                self.deployer.deploy_to_host(server, request)
            except Exception as e:
                st.state = "failed"
                st.failed_host = server.hostname
                st.message = f"{server.hostname}: {e}"
                self.runtime.upsert_rollout(st)
                db.log_event("ERROR", f"Rollout stopped: {st.message}", host=server.hostname, port=st.port)
                raise

            st.done_hosts.append(server.hostname)
            st.message = f"Deployed to {server.hostname} ({len(st.done_hosts)}/{len(servers)})"
            self.runtime.upsert_rollout(st)
            db.log_event("INFO", st.message, host=server.hostname, port=st.port)

            if idx < len(servers) - 1:
                self.deployer.wait_for_load_balancer_check_interval()

        if cleanup:
            for server in servers:
                self.deployer.cleanup_containers(server, request.port_bindings)

        st.state = "done"
        st.message = "Rollout completed."
        self.runtime.upsert_rollout(st)
        db.log_event("INFO", st.message, port=st.port)
        return st
