import time

import pytest

from clusterup.models import JoinCredential, NodeRole, RunReport

JOIN_OUTPUT = (
    "kubeadm join 10.0.0.1:6443 --token abcdef.0123456789abcdef "
    "--discovery-token-ca-cert-hash sha256:1234abcd \n"
)


def test_parse_join_command():
    credential = JoinCredential.parse(JOIN_OUTPUT)
    assert credential.endpoint == "10.0.0.1:6443"
    assert credential.token == "abcdef.0123456789abcdef"
    assert credential.ca_cert_hashes == ["sha256:1234abcd"]


def test_parse_join_command_with_continuation_lines():
    text = "kubeadm join 10.0.0.1:6443 --token a.b \\\n    --discovery-token-ca-cert-hash=sha256:ff\n"
    credential = JoinCredential.parse(text)
    assert credential.token == "a.b"
    assert credential.ca_cert_hashes == ["sha256:ff"]


@pytest.mark.parametrize("text", [
    "",
    "kubectl get nodes",
    "kubeadm join --token a.b",
    "kubeadm join 10.0.0.1:6443",
])
def test_parse_rejects_unusable_output(text):
    with pytest.raises(ValueError):
        JoinCredential.parse(text)


def test_render_script_is_executable_bash():
    script = JoinCredential.parse(JOIN_OUTPUT).render_script()
    assert script.startswith("#!/usr/bin/env bash\n")
    assert script.rstrip().endswith("sha256:1234abcd")


def test_run_report_step_names_exclude_skipped():
    report = RunReport(role=NodeRole.WORKER, address="10.0.0.2")
    report.record("preflight", True)
    report.record("hosts", True, skipped=True)
    report.record("system", False, message="boom")
    assert report.step_names == ["preflight", "system"]
    assert not report.succeeded
    assert [r.name for r in report.failed()] == ["system"]


def test_run_report_elapsed_counts_from_start():
    report = RunReport(role=NodeRole.WORKER, address="10.0.0.2", start_time=time.time() - 30)
    assert 30 <= report.elapsed < 60
