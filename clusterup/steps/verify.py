"""Post-install verification: node readiness and status summary."""
import logging

import typer

from ..errors import ReadinessTimeout
from ..kube import wait_for_nodes_ready
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.verify")


class VerifyCluster(Step):
    name = 'verify'
    description = 'Verifying cluster setup'
    fatal = False

    def run(self, ctx: StepContext) -> None:
        if ctx.dry_run:
            logger.info("[DRY RUN] Would wait for nodes and print cluster status")
            return

        try:
            wait_for_nodes_ready(ctx.kube_clients().core, ctx.config.timeouts.nodes, **ctx.poll_kwargs())
        except ReadinessTimeout as e:
            logger.warning(f"⚠️  {e}")

        for title, args in (
            ("Cluster Information", ("cluster-info",)),
            ("Node Status", ("get", "nodes", "-o", "wide")),
            ("System Pods", ("get", "pods", "-n", "kube-system")),
        ):
            typer.secho(f"\n=== {title} ===", fg=typer.colors.BLUE)
            ctx.runner.run(ctx.kubectl(*args), check=False, mutating=False)
        logger.info("Cluster verification completed!")
