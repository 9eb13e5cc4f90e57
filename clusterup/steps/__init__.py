"""Provisioning steps and their per-role ordering.

Each step is a small class with a ``name`` and a ``run(ctx)`` method:

- preflight: privilege, sudo and reachability checks
- hosts: /etc/hosts entries for every cluster member
- system: swap, kernel modules and sysctl settings
- runtime: containerd with the systemd cgroup driver
- tooling: pinned kubelet/kubeadm/kubectl
- control-plane: kubeadm init, admin kubeconfig, join command
- network: pod network add-on and its readiness wait
- addons: Helm, default storage class, namespaces
- join-workers: remote join of every worker over SSH
- verify: node readiness and status summary
"""
from typing import List

from ..errors import UnrecognizedRoleError
from ..models import NodeRole
from .addons import AddonInstall
from .base import Step, StepContext, run_step, run_steps
from .control_plane import ControlPlaneInit
from .hosts import HostRegistry
from .join import WorkerJoin
from .network import NetworkPlugin
from .preflight import PreflightCheck
from .runtime import RuntimeInstall
from .system import SystemTuning
from .tooling import ToolingInstall
from .verify import VerifyCluster


def common_steps() -> List[Step]:
    """Steps every node runs, in order."""
    return [
        PreflightCheck(),
        HostRegistry(),
        SystemTuning(),
        RuntimeInstall(),
        ToolingInstall(),
    ]


def select_steps(role: NodeRole, address: str = '', join_workers: bool = False) -> List[Step]:
    """Return the ordered step list for ``role``.

    Raises:
        UnrecognizedRoleError: If the role is ``UNRECOGNIZED``
    """
    if role == NodeRole.WORKER:
        return common_steps()
    if role == NodeRole.CONTROL_PLANE:
        steps = common_steps() + [ControlPlaneInit(), NetworkPlugin(), AddonInstall()]
        if join_workers:
            steps.append(WorkerJoin())
        steps.append(VerifyCluster())
        return steps
    raise UnrecognizedRoleError(address)


STEP_NAMES = [s.name for s in select_steps(NodeRole.CONTROL_PLANE, join_workers=True)]

__all__ = [
    'Step',
    'StepContext',
    'run_step',
    'run_steps',
    'common_steps',
    'select_steps',
    'STEP_NAMES',
    'PreflightCheck',
    'HostRegistry',
    'SystemTuning',
    'RuntimeInstall',
    'ToolingInstall',
    'ControlPlaneInit',
    'NetworkPlugin',
    'AddonInstall',
    'WorkerJoin',
    'VerifyCluster',
]
