import subprocess
from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest
from kubernetes.client.exceptions import ApiException

from clusterup.config import BootstrapConfig
from clusterup.errors import CommandError
from clusterup.runner import CommandRunner
from clusterup.steps import StepContext

TOPOLOGY = {
    "control_plane": {"name": "k8s-master-01", "address": "10.0.0.1"},
    "workers": [
        {"name": "k8s-worker-01", "address": "10.0.0.2"},
        {"name": "k8s-worker-02", "address": "10.0.0.3"},
    ],
}


class FakeRunner(CommandRunner):
    """Records commands and keeps files in memory instead of touching the host."""

    def __init__(self, files=None, responses=None, binaries=None, dry_run=False):
        super().__init__(dry_run=dry_run)
        self.files = dict(files or {})
        self.responses = dict(responses or {})
        self.binaries = dict(binaries or {})
        self.commands = []
        self.calls = []
        self.writes = {}

    def _response(self, argv):
        line = " ".join(argv)
        for prefix, response in self.responses.items():
            if line.startswith(prefix):
                return response
        return 0, ""

    def run(self, cmd, *, sudo=False, check=True, capture_output=False,
            input=None, timeout=None, mutating=True):
        argv = list(cmd)
        self.commands.append(argv)
        self.calls.append((sudo, argv))
        if self.dry_run and mutating:
            return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")
        if argv[0] == "cp" and argv[1] in self.files:
            self.files[argv[2]] = self.files[argv[1]]
        rc, out = self._response(argv)
        if check and rc != 0:
            raise CommandError(argv, rc, "")
        return subprocess.CompletedProcess(argv, rc, stdout=out, stderr="")

    def which(self, binary):
        return self.binaries.get(binary)

    def exists(self, path, sudo=False):
        return str(path) in self.files

    def read_file(self, path, sudo=False):
        return self.files.get(str(path), "")

    def write_file(self, path, content, *, sudo=True, mode=None, append=False):
        path = str(path)
        self.writes[path] = sudo
        if self.dry_run:
            return
        self.files[path] = (self.files.get(path, "") + content) if append else content

    def ensure_dir(self, path, sudo=True, mode=None):
        pass

    def ran(self, *prefix):
        """True if some recorded command starts with ``prefix``."""
        return any(tuple(c[:len(prefix)]) == prefix for c in self.commands)

    def elevated(self, *prefix):
        """True if some command starting with ``prefix`` ran through sudo."""
        return any(sudo and tuple(c[:len(prefix)]) == prefix for sudo, c in self.calls)


def condition(ready):
    return SimpleNamespace(type="Ready", status="True" if ready else "False")


def kube_object(name, ready):
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name),
        status=SimpleNamespace(conditions=[condition(ready)]),
    )


class FakeCore:
    def __init__(self, nodes=(), pods=(), namespaces=()):
        self.nodes = list(nodes)
        self.pods = list(pods)
        self.namespaces = set(namespaces)
        self.created = []

    def list_node(self):
        return SimpleNamespace(items=self.nodes)

    def list_namespaced_pod(self, namespace, label_selector=None):
        return SimpleNamespace(items=self.pods)

    def read_namespace(self, name):
        if name not in self.namespaces:
            raise ApiException(status=404, reason="Not Found")
        return SimpleNamespace(metadata=SimpleNamespace(name=name))

    def create_namespace(self, body):
        name = body.metadata.name
        if name in self.namespaces:
            raise ApiException(status=409, reason="AlreadyExists")
        self.namespaces.add(name)
        self.created.append(name)
        return body


class FakeStorage:
    def __init__(self):
        self.patches = []

    def patch_storage_class(self, name, body):
        self.patches.append((name, body))


class FakeClock:
    """Deterministic clock for readiness waits: sleeping advances time."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def config():
    return BootstrapConfig.model_validate({"topology": TOPOLOGY})


@pytest.fixture
def runner():
    return FakeRunner(files={"/etc/hosts": "127.0.0.1 localhost\n", "/etc/fstab": ""})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def kube_clients():
    return SimpleNamespace(core=FakeCore(), storage=FakeStorage())


@pytest.fixture
def make_context(config, runner, clock, kube_clients, tmp_path):
    def factory(**overrides):
        fields = dict(
            config=config,
            runner=runner,
            home=tmp_path,
            uid=1000,
            gid=1000,
            euid=1000,
            now=lambda: datetime(2025, 10, 1, 12, 30, 45),
            sleep=clock.sleep,
            clock=clock,
            kube_factory=lambda path: kube_clients,
        )
        fields.update(overrides)
        return StepContext(**fields)
    return factory
