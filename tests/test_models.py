import pytest
from pydantic import ValidationError

from rcd.api_models import DeployRequest
from rcd.models import ContainerRecord, parse_port_spec, port_bindings_from_specs, public_port_for


def test_public_port_is_first_host_port():
    bindings = {"80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}], "443/tcp": [{"HostPort": "8443"}]}
    assert public_port_for(bindings) == 8080


def test_public_port_requires_a_binding():
    with pytest.raises(ValueError):
        public_port_for({})


@pytest.mark.parametrize(
    "spec,expected",
    [
        ("8080:80", ("80/tcp", [{"HostIp": "0.0.0.0", "HostPort": "8080"}])),
        ("127.0.0.1:53:53/udp", ("53/udp", [{"HostIp": "127.0.0.1", "HostPort": "53"}])),
    ],
)
def test_parse_port_spec(spec, expected):
    assert parse_port_spec(spec) == expected


@pytest.mark.parametrize("spec", ["8080", "a:b", "1:2:3:4"])
def test_parse_port_spec_rejects_garbage(spec):
    with pytest.raises(ValueError):
        parse_port_spec(spec)


def test_container_record_from_api():
    raw = {
        "Command": "script/run ",
        "Created": 1394470428,
        "Id": "41a68bda6eb0a5bb78bbde19363e543f9c4f0e845a3eb130a6253972051bffb0",
        "Image": "quay.io/example/app:5f23ac3f",
        "Names": ["/happy_pike"],
        "Ports": [{"IP": "0.0.0.0", "PrivatePort": 80, "PublicPort": 8484, "Type": "tcp"}, {"PrivatePort": 9000}],
        "Status": "Up 13 seconds",
    }
    rec = ContainerRecord.from_api(raw)
    assert rec.short_id == "41a68bda"
    assert rec.describe() == "41a68bda (/happy_pike)"
    assert rec.binds_public_port(8484)
    assert not rec.binds_public_port(9000)
    assert rec.ports[1].public_port is None


def test_deploy_request_from_ports():
    req = DeployRequest.from_ports(["8080:80", "8443:443"], image="app:1", env={"A": "1"})
    assert req.public_port == 8080
    assert list(req.port_bindings) == ["80/tcp", "443/tcp"]
    assert req.check_retries == 12
    assert req.check_sleep_s == 5
    assert req.stop_timeout == 30


@pytest.mark.parametrize(
    "overrides",
    [
        {"port_bindings": {}},
        {"health_endpoint": "http://evil/"},
        {"volumes": ["/no-separator"]},
        {"check_retries": 0},
    ],
)
def test_deploy_request_validation(overrides):
    data = {"image": "app:1", "port_bindings": {"80/tcp": [{"HostPort": "8080"}]}}
    data.update(overrides)
    with pytest.raises(ValidationError):
        DeployRequest(**data)


def test_port_bindings_from_specs_groups_by_container_port():
    bindings = port_bindings_from_specs(["8080:80", "127.0.0.1:8081:80", "53:53/udp"])
    assert bindings == {
        "80/tcp": [{"HostIp": "0.0.0.0", "HostPort": "8080"}, {"HostIp": "127.0.0.1", "HostPort": "8081"}],
        "53/udp": [{"HostIp": "0.0.0.0", "HostPort": "53"}],
    }
    assert public_port_for(bindings) == 8080
