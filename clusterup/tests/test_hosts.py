import pytest

from clusterup.config import NodeSpec
from clusterup.errors import BootstrapError
from clusterup.render import render
from clusterup.steps import HostRegistry
from clusterup.steps.hosts import missing_host_entries

NODES = [NodeSpec(name="k8s-master-01", address="10.0.0.1"), NodeSpec(name="k8s-worker-01", address="10.0.0.2")]


def test_missing_entries_ignores_comments_and_partial_matches():
    text = (
        "127.0.0.1 localhost\n"
        "# 10.0.0.1 k8s-master-01\n"
        "10.0.0.2 other k8s-worker-01  # worker\n"
        "10.0.0.9 k8s-master-01\n"
    )
    assert missing_host_entries(text, NODES) == [NODES[0]]


def test_appends_entries_and_backs_up(make_context, runner):
    HostRegistry().run(make_context())
    hosts = runner.files["/etc/hosts"]
    assert hosts.startswith("127.0.0.1 localhost\n")
    assert "# Kubernetes Cluster Nodes\n" in hosts
    assert "10.0.0.1 k8s-master-01\n" in hosts
    assert "10.0.0.3 k8s-worker-02\n" in hosts
    assert runner.files["/etc/hosts.backup.20251001_123045"] == "127.0.0.1 localhost\n"


def test_rerun_does_not_duplicate(make_context, runner):
    HostRegistry().run(make_context())
    first = runner.files["/etc/hosts"]
    HostRegistry().run(make_context())
    assert runner.files["/etc/hosts"] == first
    assert first.count("10.0.0.2 k8s-worker-01") == 1


def test_partial_rerun_adds_no_second_header(make_context, runner):
    runner.files["/etc/hosts"] = (
        "127.0.0.1 localhost\n\n# Kubernetes Cluster Nodes\n10.0.0.1 k8s-master-01\n"
    )
    HostRegistry().run(make_context())
    hosts = runner.files["/etc/hosts"]
    assert hosts.count("# Kubernetes Cluster Nodes") == 1
    assert hosts.endswith("10.0.0.1 k8s-master-01\n10.0.0.2 k8s-worker-01\n10.0.0.3 k8s-worker-02\n")


def test_hosts_written_through_sudo(make_context, runner):
    HostRegistry().run(make_context())
    assert runner.elevated("cp", "/etc/hosts")
    assert runner.writes["/etc/hosts"] is True


def test_missing_template_is_a_bootstrap_error():
    with pytest.raises(BootstrapError, match="Template not found"):
        render("no-such-template.j2")
