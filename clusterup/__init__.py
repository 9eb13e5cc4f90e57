"""
clusterup: bootstrap a small kubeadm Kubernetes cluster.

The local machine's role (control plane or worker) is derived from its
primary address and a static topology; an ordered list of idempotent steps
then prepares the host, initializes the control plane and installs the
baseline add-ons.
"""
from .config import BootstrapConfig, ClusterTopology, NodeSpec
from .errors import BootstrapError
from .models import JoinCredential, NodeRole, RunReport
from .orchestrator import Orchestrator
from .roles import derive_role

__version__ = "0.1.0"

__all__ = [
    'BootstrapConfig',
    'BootstrapError',
    'ClusterTopology',
    'JoinCredential',
    'NodeRole',
    'NodeSpec',
    'Orchestrator',
    'RunReport',
    'derive_role',
]
