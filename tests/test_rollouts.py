import pytest

from rcd.api_models import DeployRequest
from rcd.deploy import Deployer
from rcd.errors import ContainerValidationFailed
from rcd.rollouts import RolloutManager
from rcd.settings import DeployOptions

from conftest import FakeServer, make_record


def _servers(*names, history=1):
    return [
        FakeServer(hostname=n, containers=[make_record(f"{n[-1]}{i}", created=1_700_000_000 - i) for i in range(history)])
        for n in names
    ]


def test_rolling_deploy_goes_host_by_host_then_cleans_up(port_bindings):
    sleeps = []
    deployer = Deployer(
        DeployOptions(rolling_deploy_check_interval=3), health_check=lambda s, p, e: True, sleep=sleeps.append
    )
    servers = _servers("web-1", "web-2", history=3)
    request = DeployRequest(image="app:new", port_bindings=port_bindings, check_sleep_s=0)

    st = RolloutManager(deployer).rolling_deploy(servers, request)

    assert st.state == "done"
    assert st.done_hosts == ["web-1", "web-2"]
    # interval only between hosts
    assert sleeps == [3]
    for server in servers:
        # new + 3 old -> keep new and newest old
        assert len(server.calls_named("remove")) == 2
        assert len(server.containers) == 2


def test_failure_stops_the_rollout(port_bindings):
    deployer = Deployer(DeployOptions(), health_check=lambda s, p, e: False, sleep=lambda s: None)
    servers = _servers("web-1", "web-2")
    manager = RolloutManager(deployer)
    request = DeployRequest(image="app:new", port_bindings=port_bindings, check_retries=1, check_sleep_s=0)

    with pytest.raises(ContainerValidationFailed):
        manager.rolling_deploy(servers, request)

    assert servers[1].calls == []
    assert servers[0].calls_named("remove") == []
    st = manager.runtime.list_rollouts()[0]
    assert st.state == "failed"
    assert st.failed_host == "web-1"


def test_cleanup_can_be_skipped(port_bindings):
    deployer = Deployer(DeployOptions(), health_check=lambda s, p, e: True, sleep=lambda s: None)
    servers = _servers("web-1", history=4)
    request = DeployRequest(image="app:new", port_bindings=port_bindings)

    RolloutManager(deployer).rolling_deploy(servers, request, cleanup=False)

    assert servers[0].calls_named("remove") == []


class BrokenCreateServer(FakeServer):
    def create_container(self, config, name=None, host_config=None):
        raise RuntimeError("image not found")


def test_runtime_failure_marks_rollout_failed(port_bindings):
    deployer = Deployer(DeployOptions(), health_check=lambda s, p, e: True, sleep=lambda s: None)
    servers = [BrokenCreateServer(hostname="web-1"), FakeServer(hostname="web-2")]
    manager = RolloutManager(deployer)
    request = DeployRequest(image="app:new", port_bindings=port_bindings)

    with pytest.raises(RuntimeError):
        manager.rolling_deploy(servers, request)

    st = manager.runtime.list_rollouts()[0]
    assert st.state == "failed"
    assert st.failed_host == "web-1"
    assert servers[1].calls == []
