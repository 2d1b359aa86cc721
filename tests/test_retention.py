import pytest

from rcd.retention import RETAINED_CONTAINERS, RetentionSweeper

from conftest import FakeServer, make_record


def _history(n):
    # newest first, as the listing collaborator returns them
    return [make_record(f"c{i}", created=1_700_000_000 - i, state="exited") for i in range(n)]


def test_keeps_two_newest_and_removes_the_rest(port_bindings):
    server = FakeServer(containers=_history(5))

    removed = RetentionSweeper().cleanup_containers(server, port_bindings)

    assert [c.id[:2] for c in removed] == ["c2", "c3", "c4"]
    assert [call[1][:2] for call in server.calls_named("remove")] == ["c2", "c3", "c4"]
    assert [c.id[:2] for c in server.containers] == ["c0", "c1"]


@pytest.mark.parametrize("n", [0, 1, 2])
def test_short_history_removes_nothing(port_bindings, n):
    server = FakeServer(containers=_history(n))
    assert RetentionSweeper().cleanup_containers(server, port_bindings) == []
    assert server.calls == []


def test_other_ports_are_left_alone(port_bindings):
    others = [make_record(f"o{i}", port=9090, state="exited") for i in range(4)]
    server = FakeServer(containers=_history(3) + others)

    RetentionSweeper().cleanup_containers(server, port_bindings)

    assert [call[1][:2] for call in server.calls_named("remove")] == ["c2"]


def test_retention_window_is_fixed():
    assert RETAINED_CONTAINERS == 2
