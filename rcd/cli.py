from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from threading import Thread
from typing import Any

from . import db
from .api_models import DeployRequest
from .deploy import Deployer
from .docker_ops import DockerServer
from .errors import DeployError
from .health import http_status_ok, tcp_port_open
from .models import port_bindings_from_specs
from .rollouts import RolloutManager
from .settings import DeployOptions

HEALTH_CHECKS = {"http": http_status_ok, "tcp": tcp_port_open}


def _print(obj) -> None:
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


def _env_pairs(items: list[str]) -> dict[str, str]:
    out: dict[str, str] = {}
    for item in items:
        key, sep, value = item.partition("=")
        if not sep:
            raise SystemExit(f"invalid env var {item!r}, expected KEY=VALUE")
        out[key] = value
    return out


def _hosts(raw: str) -> list[str]:
    return [h.strip() for h in raw.split(",") if h.strip()]


def _add_target_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--image", required=True)
    p.add_argument("-p", "--port", action="append", default=[], required=True, help="host_port:container_port[/proto]")
    p.add_argument("-e", "--env", action="append", default=[], help="KEY=VALUE (repeatable)")
    p.add_argument("-v", "--volume", action="append", default=[], help="host_path:container_path (repeatable)")


def _build_request(args: argparse.Namespace, **extra: Any) -> DeployRequest:
    return DeployRequest.from_ports(
        args.port,
        image=args.image,
        env=_env_pairs(args.env),
        volumes=args.volume,
        **extra,
    )


def _attach_session(sock: Any) -> None:
    """Pump stdin into the container and its output back to stdout until EOF."""
    raw = getattr(sock, "_sock", sock)

    def _reader() -> None:
        while True:
            chunk = raw.recv(4096)
            if not chunk:
                break
            sys.stdout.buffer.write(chunk)
            sys.stdout.flush()

    t = Thread(target=_reader, daemon=True)
    t.start()
    for line in sys.stdin.buffer:
        raw.sendall(line)
    t.join(timeout=1)


def main(argv: list[str] | None = None) -> int:
    p = argparse.ArgumentParser(description="Rolling Container Deployer CLI")
    p.add_argument("--docker-port", type=int, default=None, help="Docker Engine API port on every host")
    p.add_argument("--name", default=None, help="Name given to the new container")
    p.add_argument("--container-hostname", default=None)
    p.add_argument("--custom-dns", default=None, help="Comma separated DNS servers")
    p.add_argument("--restart-policy", default=None, help="always|on-failure|no")
    p.add_argument("--restart-max-retries", type=int, default=None)
    p.add_argument("--check-interval", type=int, default=None, help="Seconds to wait between hosts")
    sub = p.add_subparsers(dest="cmd", required=True)

    s_dep = sub.add_parser("deploy", help="Rolling deploy to a list of hosts")
    s_dep.add_argument("--hosts", required=True, help="Comma separated list of hosts")
    _add_target_args(s_dep)
    s_dep.add_argument("--command", nargs=argparse.REMAINDER, default=None)
    s_dep.add_argument("--memory", type=int, default=None)
    s_dep.add_argument("--cpu-shares", type=int, default=None)
    s_dep.add_argument("--health-endpoint", default="/")
    s_dep.add_argument("--health-check", choices=sorted(HEALTH_CHECKS), default="http")
    s_dep.add_argument("--stop-timeout", type=int, default=30)
    s_dep.add_argument("--retries", type=int, default=12)
    s_dep.add_argument("--sleep", type=float, default=5)
    s_dep.add_argument("--no-cleanup", action="store_true", help="Keep old containers around")

    s_con = sub.add_parser("console", help="Start an interactive shell container and attach to it")
    s_con.add_argument("--host", required=True)
    _add_target_args(s_con)

    s_clean = sub.add_parser("cleanup", help="Remove old containers beyond the retention window")
    s_clean.add_argument("--hosts", required=True)
    s_clean.add_argument("-p", "--port", action="append", default=[], required=True)

    s_ev = sub.add_parser("events", help="Show events")
    s_ev.add_argument("--limit", type=int, default=20)

    s_hist = sub.add_parser("history", help="Show recorded deployments")
    s_hist.add_argument("--host", default=None)
    s_hist.add_argument("--limit", type=int, default=20)

    args = p.parse_args(argv)

    if args.cmd == "events":
        _print(db.latest_events(args.limit))
        return 0

    if args.cmd == "history":
        _print([asdict(r) for r in db.list_deployments(args.host, args.limit)])
        return 0

    options = DeployOptions.from_settings(
        name=args.name,
        container_hostname=args.container_hostname,
        custom_dns=tuple(_hosts(args.custom_dns)) if args.custom_dns else None,
        restart_policy_name=args.restart_policy,
        restart_policy_max_retry_count=args.restart_max_retries,
        rolling_deploy_check_interval=args.check_interval,
    )

    try:
        if args.cmd == "deploy":
            request = _build_request(
                args,
                command=args.command or None,
                memory=args.memory,
                cpu_shares=args.cpu_shares,
                health_endpoint=args.health_endpoint,
                stop_timeout=args.stop_timeout,
                check_retries=args.retries,
                check_sleep_s=args.sleep,
            )
            deployer = Deployer(options, health_check=HEALTH_CHECKS[args.health_check])
            servers = [DockerServer(h, port=args.docker_port) for h in _hosts(args.hosts)]
            st = RolloutManager(deployer).rolling_deploy(servers, request, cleanup=not args.no_cleanup)
            _print(asdict(st))
            return 0

        if args.cmd == "console":
            request = _build_request(args)
            deployer = Deployer(options)
            sock = deployer.launch_console(
                DockerServer(args.host, port=args.docker_port),
                request.image,
                request.port_bindings,
                request.volumes,
                request.env,
            )
            _attach_session(sock)
            return 0

        if args.cmd == "cleanup":
            port_bindings = port_bindings_from_specs(args.port)
            deployer = Deployer(options)
            removed = {}
            for h in _hosts(args.hosts):
                gone = deployer.cleanup_containers(DockerServer(h, port=args.docker_port), port_bindings)
                removed[h] = [c.id for c in gone]
            _print(removed)
            return 0
    except DeployError as e:
        print(f"error: {e}", file=sys.stderr)
        return e.exit_code
    except ValueError as e:
        # pydantic ValidationError included
        print(f"invalid request: {e}", file=sys.stderr)
        return 2

    return 2


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
