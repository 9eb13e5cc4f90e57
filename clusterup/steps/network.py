"""Pod network add-on (Flannel by default)."""
import logging

from ..kube import wait_for_pods_ready
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.network")


class NetworkPlugin(Step):
    name = 'network'
    description = 'Installing pod network plugin'

    def run(self, ctx: StepContext) -> None:
        addons = ctx.config.addons
        ctx.runner.run(ctx.kubectl("apply", "-f", addons.network_manifest_url))

        if ctx.dry_run:
            logger.info("[DRY RUN] Would wait for network plugin pods")
            return

        wait_for_pods_ready(
            ctx.kube_clients().core,
            addons.network_namespace,
            addons.network_selector,
            ctx.config.timeouts.network_plugin,
            **ctx.poll_kwargs()
        )
        logger.info("Network plugin installed successfully!")
