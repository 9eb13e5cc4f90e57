from types import SimpleNamespace

import pytest
from kubernetes.client.exceptions import ApiException

from clusterup.errors import ReadinessTimeout
from clusterup.kube import (
    DEFAULT_CLASS_ANNOTATION,
    ensure_namespace,
    mark_default_storage_class,
    wait_for,
    wait_for_nodes_ready,
    wait_for_pods_ready,
)
from clusterup.tests.conftest import FakeCore, FakeStorage, kube_object


def test_wait_for_times_out_with_pending_names(clock):
    with pytest.raises(ReadinessTimeout) as excinfo:
        wait_for(lambda: (False, ["node-a"]), "things", 10, interval=5, sleep=clock.sleep, clock=clock)
    assert clock.sleeps == [5, 5]
    assert excinfo.value.pending == ["node-a"]
    assert "node-a" in str(excinfo.value)


def test_wait_for_treats_errors_as_not_ready(clock):
    answers = iter([ConnectionRefusedError("refused"), (True, [])])

    def check():
        answer = next(answers)
        if isinstance(answer, Exception):
            raise answer
        return answer

    wait_for(check, "api", 30, interval=2, sleep=clock.sleep, clock=clock)
    assert clock.sleeps == [2]


def test_pods_ready_returns_without_sleeping(clock):
    core = FakeCore(pods=[kube_object("flannel-a", True), kube_object("flannel-b", True)])
    wait_for_pods_ready(core, "kube-flannel", "app=flannel", 60, sleep=clock.sleep, clock=clock)
    assert clock.sleeps == []


def test_no_pods_is_not_ready(clock):
    with pytest.raises(ReadinessTimeout, match="no pods matching app=flannel"):
        wait_for_pods_ready(FakeCore(), "kube-flannel", "app=flannel", 10, interval=5,
                            sleep=clock.sleep, clock=clock)


def test_nodes_not_ready_are_reported(clock):
    core = FakeCore(nodes=[kube_object("cp", True), kube_object("w1", False)])
    with pytest.raises(ReadinessTimeout) as excinfo:
        wait_for_nodes_ready(core, 10, interval=5, sleep=clock.sleep, clock=clock)
    assert excinfo.value.pending == ["w1"]


def test_ensure_namespace_is_idempotent():
    core = FakeCore()
    assert ensure_namespace(core, "monitoring") is True
    assert ensure_namespace(core, "monitoring") is False
    assert core.created == ["monitoring"]


def test_ensure_namespace_tolerates_concurrent_creation():
    class RacingCore(FakeCore):
        def read_namespace(self, name):
            raise ApiException(status=404, reason="Not Found")

    core = RacingCore(namespaces={"argocd"})
    assert ensure_namespace(core, "argocd") is False


def test_ensure_namespace_propagates_other_errors():
    class BrokenCore(FakeCore):
        def read_namespace(self, name):
            raise ApiException(status=403, reason="Forbidden")

    with pytest.raises(ApiException):
        ensure_namespace(BrokenCore(), "apps")


def test_mark_default_storage_class():
    storage = FakeStorage()
    mark_default_storage_class(storage, "local-path")
    assert storage.patches == [
        ("local-path", {"metadata": {"annotations": {DEFAULT_CLASS_ANNOTATION: "true"}}}),
    ]


def test_missing_status_is_not_ready(clock):
    node = SimpleNamespace(metadata=SimpleNamespace(name="new"), status=None)
    with pytest.raises(ReadinessTimeout):
        wait_for_nodes_ready(FakeCore(nodes=[node]), 0, sleep=clock.sleep, clock=clock)
