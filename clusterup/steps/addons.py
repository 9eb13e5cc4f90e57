"""Baseline add-ons: Helm, default storage class and namespaces."""
import logging
import os
import tempfile

from kubernetes.client.exceptions import ApiException

from ..errors import StepError
from ..kube import ensure_namespace, mark_default_storage_class
from .apt import fetch
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.addons")


class AddonInstall(Step):
    name = 'addons'
    description = 'Installing Helm, storage class and namespaces'

    def run(self, ctx: StepContext) -> None:
        self.install_helm(ctx)
        self.setup_storage_class(ctx)
        self.create_namespaces(ctx)

    def install_helm(self, ctx: StepContext) -> None:
        """Install Helm with its official bootstrap script unless already present."""
        if ctx.runner.which("helm"):
            logger.info("Helm already installed. Skipping.")
            return
        if ctx.dry_run:
            logger.info(f"[DRY RUN] Would install Helm from {ctx.config.addons.helm_install_script_url}")
            return

        logger.info("🚀 Installing Helm...")
        script = fetch(ctx.config.addons.helm_install_script_url, self.name)
        fd, path = tempfile.mkstemp(prefix="get_helm_", suffix=".sh")
        try:
            with os.fdopen(fd, "w") as f:
                f.write(script)
            os.chmod(path, 0o700)
            ctx.runner.run(["bash", path])
        finally:
            os.unlink(path)

        ctx.runner.run(["helm", "version"], mutating=False)
        logger.info("Helm installed successfully!")

    def setup_storage_class(self, ctx: StepContext) -> None:
        addons = ctx.config.addons
        logger.info("Setting up local storage class...")
        ctx.runner.run(ctx.kubectl("apply", "-f", addons.storage_manifest_url))
        if ctx.dry_run:
            logger.info(f"[DRY RUN] Would mark {addons.storage_class} as the default storage class")
            return
        try:
            mark_default_storage_class(ctx.kube_clients().storage, addons.storage_class)
        except ApiException as e:
            raise StepError(self.name, f"failed to mark {addons.storage_class} as default: {e.reason}") from e
        logger.info(f"Storage class {addons.storage_class} is now the cluster default")

    def create_namespaces(self, ctx: StepContext) -> None:
        namespaces = ctx.config.addons.namespaces
        if ctx.dry_run:
            logger.info(f"[DRY RUN] Would ensure namespaces: {', '.join(namespaces)}")
            return
        core = ctx.kube_clients().core
        for namespace in namespaces:
            try:
                created = ensure_namespace(core, namespace)
            except ApiException as e:
                raise StepError(self.name, f"failed to create namespace {namespace}: {e.reason}") from e
            logger.info(f"Namespace {namespace} {'created' if created else 'already exists'}")
