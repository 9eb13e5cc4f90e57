"""Role detection and step sequencing for one bootstrap run."""
import logging
from typing import List, Optional, Tuple

import typer

from .config import BootstrapConfig
from .errors import UnrecognizedRoleError
from .models import NodeRole, RunReport
from .roles import derive_role, detect_local_address
from .runner import CommandRunner
from .steps import Step, StepContext, run_step, run_steps, select_steps

logger = logging.getLogger("clusterup.orchestrator")


class Orchestrator:
    """Runs the ordered step list for the role of the local machine."""

    def __init__(
        self,
        config: BootstrapConfig,
        runner: Optional[CommandRunner] = None,
        join_workers: Optional[bool] = None,
        **context_overrides
    ):
        """
        Args:
            config: Loaded configuration, passed to every step
            runner: Command runner (default: a real runner honouring ``config.dry_run``)
            join_workers: Join workers over SSH after control-plane setup
                (default: ``config.join.remote``)
            **context_overrides: Extra ``StepContext`` fields (clocks, factories, ids)
        """
        self.config = config
        self.runner = runner or CommandRunner(dry_run=config.dry_run)
        self.join_workers = config.join.remote if join_workers is None else join_workers
        self.context_overrides = context_overrides

    def context(self) -> StepContext:
        return StepContext(
            config=self.config,
            runner=self.runner,
            **self.context_overrides
        )

    def detect_role(self, address: Optional[str] = None) -> Tuple[str, NodeRole]:
        """Work out which topology member this machine is.

        Raises:
            UnrecognizedRoleError: If the address is not part of the topology
        """
        address = address or detect_local_address(self.runner)
        role = derive_role(address, self.config.topology)
        if role == NodeRole.UNRECOGNIZED:
            raise UnrecognizedRoleError(address)
        logger.info(f"Local address {address} is a {role.value} node")
        return address, role

    def run(self, address: Optional[str] = None) -> RunReport:
        """Provision this machine according to its role."""
        address, role = self.detect_role(address)
        steps = select_steps(role, address, join_workers=self.join_workers)
        report = RunReport(role=role, address=address)

        logger.info(f"🚀 Setting up {role.value.upper()} node ({len(steps)} steps)...")
        run_steps(steps, self.context(), report)
        self.print_next_steps(report)
        return report

    def run_step(self, step: Step, address: Optional[str] = None) -> RunReport:
        """Run a single step outside the full flow (``preflight``, ``verify``...)."""
        role = derive_role(address, self.config.topology) if address else NodeRole.UNRECOGNIZED
        report = RunReport(role=role, address=address or '')
        run_step(step, self.context(), report)
        return report

    def next_steps(self, report: RunReport) -> List[str]:
        """Operator instructions printed once a run has finished."""
        node = f"{report.role.value} node {report.address}"
        if report.role == NodeRole.WORKER:
            return [
                f"Worker node setup completed in {report.elapsed:.0f}s ({node})!",
                "Run the join command provided by the control-plane node "
                f"(sudo bash {self.config.join.remote_path}) to join this node to the cluster.",
            ]
        return [
            f"Control-plane node setup completed in {report.elapsed:.0f}s ({node})!",
            f"Join command saved to {self.config.join.command_path}",
            "Next steps:",
            "1. Verify cluster: kubectl get nodes",
            "2. Join workers: clusterup join-workers "
            "(or run the join command on each worker)",
        ]

    def print_next_steps(self, report: RunReport) -> None:
        for line in self.next_steps(report):
            typer.secho(line, fg=typer.colors.GREEN)
