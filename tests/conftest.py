from __future__ import annotations

import itertools
import time

import pytest

from rcd import settings as settings_mod
from rcd.models import ContainerRecord, PortMapping


@pytest.fixture(autouse=True)
def isolated_db(tmp_path, monkeypatch):
    """Point the event log at a throwaway sqlite file for every test."""
    db_file = tmp_path / "rcd-test.db"
    monkeypatch.setattr(settings_mod, "settings", settings_mod.Settings(db_path=str(db_file)))
    return db_file


def make_record(cid: str, port: int | None = 8080, created: int | None = None, state: str = "running") -> ContainerRecord:
    ports = (PortMapping(ip="0.0.0.0", private_port=80, public_port=port),) if port is not None else ()
    return ContainerRecord(
        id=cid.ljust(64, "0"),
        image="app:old",
        names=(f"/{cid}",),
        created=int(time.time()) - 60 if created is None else created,
        ports=ports,
        state=state,
    )


class FakeServer:
    """In-memory TargetServer. ``containers`` is kept newest first."""

    _ids = itertools.count(1)

    def __init__(self, hostname: str = "host-a", containers: list[ContainerRecord] | None = None):
        self.hostname = hostname
        self.containers: list[ContainerRecord] = list(containers or [])
        self.running: set[str] = {c.id for c in self.containers if c.state == "running"}
        self.calls: list[tuple] = []

    def calls_named(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def find_containers_by_public_port(self, port):
        return [c for c in self.containers if c.id in self.running and c.binds_public_port(port)]

    def old_containers_for_port(self, port):
        return [c for c in self.containers if c.binds_public_port(port)]

    def create_container(self, config, name=None, host_config=None):
        cid = f"new{next(self._ids):04d}".ljust(64, "0")
        ports = ()
        if host_config is not None:
            ports = tuple(
                PortMapping(ip=b.get("HostIp"), private_port=int(key.split("/")[0]), public_port=int(b["HostPort"]))
                for key, binds in host_config.port_bindings.items()
                for b in binds
            )
        record = ContainerRecord(
            id=cid, image=config.image, names=(name,) if name else (), created=int(time.time()), ports=ports, state="created"
        )
        self.containers.insert(0, record)
        self.calls.append(("create", config, name, host_config))
        return record

    def start_container(self, container_id, host_config):
        self.running.add(container_id)
        self.calls.append(("start", container_id, host_config))

    def stop_container(self, container_id, timeout):
        self.running.discard(container_id)
        self.calls.append(("stop", container_id, timeout))

    def remove_container(self, container_id):
        self.containers = [c for c in self.containers if c.id != container_id]
        self.running.discard(container_id)
        self.calls.append(("remove", container_id))

    def inspect_container(self, container_id):
        self.calls.append(("inspect", container_id))
        return {"Id": container_id, "State": {"Running": container_id in self.running}}

    def attach(self, container_id):
        self.calls.append(("attach", container_id))
        return f"stream:{container_id}"


PORT_BINDINGS = {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}]}


@pytest.fixture
def port_bindings():
    return {k: [dict(b) for b in v] for k, v in PORT_BINDINGS.items()}


@pytest.fixture
def fake_dns(monkeypatch):
    """Resolve every hostname to 10.0.0.5 and count lookups."""
    lookups: list[str] = []

    def fake_getaddrinfo(host, port, *args, **kwargs):
        lookups.append(host)
        return [(2, 1, 6, "", ("10.0.0.5", 0))]

    monkeypatch.setattr("rcd.dns.socket.getaddrinfo", fake_getaddrinfo)
    return lookups
