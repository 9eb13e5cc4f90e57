"""Local name resolution for cluster members (/etc/hosts)."""
import logging
from typing import Iterable, List

from ..config import NodeSpec
from ..render import render
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.hosts")

HOSTS_FILE = "/etc/hosts"
HOSTS_HEADER = "# Kubernetes Cluster Nodes"


def missing_host_entries(hosts_text: str, nodes: Iterable[NodeSpec]) -> List[NodeSpec]:
    """Return the nodes whose ``address name`` mapping is not present yet.

    A mapping is present when a non-comment line starts with the address and
    lists the name among its host names.
    """
    existing = set()
    for line in hosts_text.splitlines():
        fields = line.split('#', 1)[0].split()
        if len(fields) < 2:
            continue
        for name in fields[1:]:
            existing.add((fields[0], name))
    return [n for n in nodes if (n.address, n.name) not in existing]


class HostRegistry(Step):
    name = 'hosts'
    description = 'Setting up /etc/hosts file'

    def __init__(self, hosts_file: str = HOSTS_FILE):
        self.hosts_file = hosts_file

    def run(self, ctx: StepContext) -> None:
        backup = f"{self.hosts_file}.backup.{ctx.now():%Y%m%d_%H%M%S}"
        ctx.runner.run(["cp", self.hosts_file, backup], sudo=True)
        logger.info(f"Backed up {self.hosts_file} to {backup}")

        current = ctx.runner.read_file(self.hosts_file)
        missing = missing_host_entries(current, ctx.config.topology.members)
        if not missing:
            logger.info("Hosts file already lists every cluster node")
            return

        block = render("hosts.j2", nodes=missing, header=None if HOSTS_HEADER in current else HOSTS_HEADER)
        if current and not current.endswith("\n"):
            block = "\n" + block
        ctx.runner.write_file(self.hosts_file, block, append=True)
        for node in missing:
            logger.info(f"Added {node.address} {node.name}")
