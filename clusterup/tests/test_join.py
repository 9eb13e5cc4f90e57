import pytest

from clusterup.errors import JoinCommandNotFound, RemoteError, StepError
from clusterup.steps import WorkerJoin
from clusterup.steps.join import KUBELET_CONF


class FakeSession:
    """Stands in for an SSH session; behaviour is keyed by host."""

    def __init__(self, host, user, joined=False, fail=None, **kwargs):
        self.host = host
        self.user = user
        self.kwargs = kwargs
        self.joined = joined
        self.fail = fail
        self.executed = []
        self.uploads = []

    def __enter__(self):
        if self.fail == "connect":
            raise RemoteError(self.host, "SSH connection as ubuntu failed: timed out")
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, command, timeout=None):
        self.executed.append(command)
        return (0 if self.joined else 1), "", ""

    def put(self, local_path, remote_path, mode=None):
        self.uploads.append((local_path, remote_path, mode))

    def check(self, command, timeout=None):
        self.executed.append(command)
        if self.fail == "join":
            raise RemoteError(self.host, f"command {command!r} exited with 1: preflight errors")
        return ""


class SessionFactory:
    def __init__(self, **behaviour):
        self.behaviour = behaviour
        self.sessions = []

    def __call__(self, host, user, **kwargs):
        session = FakeSession(host, user, **self.behaviour.get(host, {}), **kwargs)
        self.sessions.append(session)
        return session


@pytest.fixture
def join_context(make_context, tmp_path):
    def factory(factory, policy="continue"):
        script = tmp_path / "kubeadm-join-command.sh"
        script.write_text("#!/usr/bin/env bash\nkubeadm join 10.0.0.1:6443 --token t\n")
        ctx = make_context(ssh_factory=factory)
        join = ctx.config.join.model_copy(update={"command_path": str(script), "failure_policy": policy})
        ctx.config = ctx.config.model_copy(update={"join": join})
        return ctx
    return factory


def test_missing_join_command_fails_before_ssh(make_context, tmp_path):
    factory = SessionFactory()
    ctx = make_context(ssh_factory=factory)
    join = ctx.config.join.model_copy(update={"command_path": str(tmp_path / "absent.sh")})
    ctx.config = ctx.config.model_copy(update={"join": join})

    with pytest.raises(JoinCommandNotFound, match="Run the control-plane initializer first"):
        WorkerJoin().run(ctx)
    assert factory.sessions == []


def test_joins_every_worker(join_context):
    factory = SessionFactory()
    ctx = join_context(factory)
    results = WorkerJoin().run(ctx)

    assert [r.address for r in results] == ["10.0.0.2", "10.0.0.3"]
    assert all(r.success and not r.skipped for r in results)
    for session in factory.sessions:
        assert session.user == "ubuntu"
        assert session.uploads == [(ctx.config.join.command_path, "/tmp/kubeadm-join-command.sh", 0o755)]
        assert session.executed[-1] == "sudo -n bash /tmp/kubeadm-join-command.sh"


def test_already_joined_worker_is_skipped(join_context):
    factory = SessionFactory(**{"10.0.0.2": {"joined": True}})
    results = WorkerJoin().run(join_context(factory))

    assert results[0].skipped
    assert factory.sessions[0].uploads == []
    assert factory.sessions[0].executed == [f"sudo -n test -f {KUBELET_CONF}"]
    assert results[1].success and not results[1].skipped


def test_continue_policy_attempts_all_workers(join_context):
    factory = SessionFactory(**{"10.0.0.2": {"fail": "connect"}})
    with pytest.raises(StepError, match="1 of 2 workers failed to join: k8s-worker-01"):
        WorkerJoin().run(join_context(factory))
    assert [s.host for s in factory.sessions] == ["10.0.0.2", "10.0.0.3"]
    assert factory.sessions[1].uploads


def test_abort_policy_stops_at_first_failure(join_context):
    factory = SessionFactory(**{"10.0.0.2": {"fail": "join"}})
    with pytest.raises(StepError, match="k8s-worker-01"):
        WorkerJoin().run(join_context(factory, policy="abort"))
    assert [s.host for s in factory.sessions] == ["10.0.0.2"]


def test_explicit_policy_overrides_configuration(join_context):
    factory = SessionFactory(**{"10.0.0.2": {"fail": "join"}})
    with pytest.raises(StepError):
        WorkerJoin(failure_policy="abort").run(join_context(factory, policy="continue"))
    assert len(factory.sessions) == 1


def test_dry_run_opens_no_sessions(join_context):
    factory = SessionFactory()
    ctx = join_context(factory)
    ctx.config = ctx.config.model_copy(update={"dry_run": True})
    results = WorkerJoin().run(ctx)
    assert factory.sessions == []
    assert all(r.success for r in results)
