"""kubeadm control-plane bootstrap, admin kubeconfig and worker join command."""
import logging
from typing import Optional

from ..errors import StepError
from ..models import JoinCredential
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.control_plane")

ADMIN_CONF = "/etc/kubernetes/admin.conf"


def kubeadm_init_command(ctx: StepContext) -> list:
    topology = ctx.config.topology
    return [
        "kubeadm", "init",
        f"--apiserver-advertise-address={topology.control_plane.address}",
        f"--pod-network-cidr={topology.pod_cidr}",
        f"--service-cidr={topology.service_cidr}",
        f"--kubernetes-version={topology.release}",
        f"--node-name={topology.control_plane.name}",
    ]


class ControlPlaneInit(Step):
    name = 'control-plane'
    description = 'Initializing Kubernetes control-plane node'

    def run(self, ctx: StepContext) -> None:
        runner = ctx.runner

        if runner.exists(ADMIN_CONF, sudo=True):
            logger.info(f"{ADMIN_CONF} exists, cluster already initialized; skipping kubeadm init")
        else:
            runner.run(kubeadm_init_command(ctx), sudo=True)

        self.install_kubeconfig(ctx)
        self.write_join_command(ctx)
        logger.info("Control-plane node initialized successfully!")

    def install_kubeconfig(self, ctx: StepContext) -> None:
        """Give the invoking user a copy of the admin credentials."""
        kube_dir = ctx.kubeconfig.parent
        ctx.runner.ensure_dir(kube_dir, sudo=False)
        ctx.runner.run(["cp", ADMIN_CONF, str(ctx.kubeconfig)], sudo=True)
        ctx.runner.run(["chown", f"{ctx.uid}:{ctx.gid}", str(ctx.kubeconfig)], sudo=True)
        logger.info(f"Admin kubeconfig installed at {ctx.kubeconfig}")

    def write_join_command(self, ctx: StepContext) -> Optional[JoinCredential]:
        """Create a fresh bootstrap token and persist the join command."""
        output = ctx.runner.output(
            ["kubeadm", "token", "create", "--print-join-command"],
            sudo=True,
            mutating=True,
        )
        path = ctx.config.join.command_path
        if ctx.dry_run:
            logger.info(f"[DRY RUN] Would write join command to {path}")
            return None
        try:
            credential = JoinCredential.parse(output)
        except ValueError as e:
            raise StepError(self.name, f"unexpected output from kubeadm token create: {e}") from e

        ctx.runner.write_file(path, credential.render_script(), sudo=False, mode=0o755)
        logger.info(f"Join command saved to {path}")
        return credential
