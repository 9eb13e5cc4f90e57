"""kubelet, kubeadm and kubectl from the pinned pkgs.k8s.io release line."""
import logging

from ..render import render
from .apt import apt_install, apt_update, ensure_signing_key
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.tooling")

KUBERNETES_KEYRING = "/etc/apt/keyrings/kubernetes-apt-keyring.gpg"
KUBERNETES_SOURCES = "/etc/apt/sources.list.d/kubernetes.list"
KUBERNETES_PACKAGES = ("kubelet", "kubeadm", "kubectl")


def release_key_url(minor_version: str) -> str:
    return f"https://pkgs.k8s.io/core:/stable:/{minor_version}/deb/Release.key"


class ToolingInstall(Step):
    name = 'tooling'
    description = 'Installing Kubernetes tools (kubeadm, kubelet, kubectl)'

    def run(self, ctx: StepContext) -> None:
        runner = ctx.runner
        minor = ctx.config.topology.minor_version

        # A keyring from another release line would fail signature checks
        sources = render("kubernetes.list.j2", keyring=KUBERNETES_KEYRING, minor_version=minor)
        if runner.ensure_file(KUBERNETES_SOURCES, sources, mode=0o644):
            runner.run(["rm", "-f", KUBERNETES_KEYRING], sudo=True)
        ensure_signing_key(ctx, release_key_url(minor), KUBERNETES_KEYRING, self.name)

        apt_update(ctx)
        apt_install(ctx, KUBERNETES_PACKAGES)

        held = set(runner.output(["apt-mark", "showhold"]).split())
        if held.issuperset(KUBERNETES_PACKAGES):
            logger.info("Kubernetes packages already held")
        else:
            runner.run(["apt-mark", "hold", *KUBERNETES_PACKAGES], sudo=True, capture_output=True)
            logger.info(f"Held {', '.join(KUBERNETES_PACKAGES)} against automatic upgrades")
        logger.info(f"Kubernetes tools for {minor} installed successfully!")
