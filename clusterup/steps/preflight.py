"""Preflight checks: privilege level, passwordless sudo, peer reachability."""
import logging
from typing import List

from ..errors import PreflightError
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.preflight")


def unreachable_members(ctx: StepContext) -> List[str]:
    """Probe every cluster member once; return the addresses that did not answer."""
    timeout = ctx.config.timeouts.ping
    unreachable = []
    for node in ctx.config.topology.members:
        result = ctx.runner.run(
            ["ping", "-c", "1", "-W", str(timeout), node.address],
            check=False,
            capture_output=True,
            mutating=False,
        )
        if result.returncode != 0:
            logger.warning(f"⚠️  Cannot reach {node.name} ({node.address})")
            unreachable.append(node.address)
        else:
            logger.debug(f"Reached {node.name} ({node.address})")
    return unreachable


class PreflightCheck(Step):
    name = 'preflight'
    description = 'Checking prerequisites'

    def run(self, ctx: StepContext) -> None:
        if ctx.euid == 0:
            raise PreflightError(
                "This tool should not be run as root. "
                "Run it as a regular user with sudo privileges."
            )

        result = ctx.runner.run(["true"], sudo=True, check=False, capture_output=True, mutating=False)
        if result.returncode != 0:
            raise PreflightError(
                "This tool requires passwordless sudo. "
                "Please run: sudo visudo and add your user to sudoers."
            )

        unreachable = unreachable_members(ctx)
        if unreachable:
            raise PreflightError(
                f"Cannot reach {', '.join(unreachable)}. Please check network connectivity."
            )
        logger.info("Prerequisites check passed!")
