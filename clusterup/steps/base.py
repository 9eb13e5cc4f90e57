"""Provisioning step contract and sequential step runner."""
import logging
import os
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, List, Optional

from ..kube import KubeClients, connect
from ..config import BootstrapConfig
from ..errors import BootstrapError, StepError
from ..models import RunReport
from ..remote import RemoteSession
from ..runner import CommandRunner

logger = logging.getLogger("clusterup.steps")


@dataclass
class StepContext:
    """Everything a step may touch: configuration, host access and clocks."""
    config: BootstrapConfig
    runner: CommandRunner
    home: Path = field(default_factory=Path.home)
    uid: int = field(default_factory=os.getuid)
    gid: int = field(default_factory=os.getgid)
    euid: int = field(default_factory=os.geteuid)
    now: Callable[[], datetime] = datetime.now
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic
    kube_factory: Callable[[Path], KubeClients] = connect
    ssh_factory: Callable[..., RemoteSession] = RemoteSession
    _kube: Optional[KubeClients] = field(default=None, repr=False)

    @property
    def kubeconfig(self) -> Path:
        return self.home / ".kube" / "config"

    @property
    def dry_run(self) -> bool:
        return self.config.dry_run or self.runner.dry_run

    def kube_clients(self) -> KubeClients:
        """API clients for the admin kubeconfig, created on first use."""
        if self._kube is None:
            self._kube = self.kube_factory(self.kubeconfig)
        return self._kube

    def kubectl(self, *args: str) -> List[str]:
        """kubectl argv bound to the admin kubeconfig."""
        return ["kubectl", "--kubeconfig", str(self.kubeconfig), *args]

    def poll_kwargs(self) -> dict:
        return {
            "interval": self.config.timeouts.poll_interval,
            "sleep": self.sleep,
            "clock": self.clock,
        }


class Step:
    """A named, idempotent unit of provisioning work.

    Subclasses implement ``run`` and raise a ``BootstrapError`` subclass when
    the desired state cannot be reached. Non-fatal steps are reported but do
    not stop the run.
    """
    name: str = ''
    description: str = ''
    fatal: bool = True

    def run(self, ctx: StepContext) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"


def run_step(step: Step, ctx: StepContext, report: RunReport) -> None:
    """Run one step, record its outcome and re-raise fatal failures."""
    if step.name in ctx.config.skip_steps:
        logger.info(f"⏭️  Skipping step: {step.description} [{step.name}]")
        report.record(step.name, True, message="skipped by configuration", skipped=True)
        return

    logger.info(f"==> {step.description} [{step.name}]")
    start = time.time()
    try:
        step.run(ctx)
    except BootstrapError as e:
        error = e
    except Exception as e:
        logger.debug(f"Unexpected error in step {step.name}", exc_info=True)
        error = StepError(step.name, f"unexpected error: {e}")
        error.__cause__ = e
    else:
        duration = time.time() - start
        report.record(step.name, True, duration)
        logger.info(f"✅ Completed: {step.description} ({duration:.1f}s)")
        return

    duration = time.time() - start
    report.record(step.name, False, duration, str(error))
    if step.fatal:
        logger.error(f"❌ {step.description} failed: {error}")
        raise error
    logger.warning(f"⚠️  {step.description} did not complete: {error}")


def run_steps(steps: Iterable[Step], ctx: StepContext, report: RunReport) -> RunReport:
    """Run steps strictly in order; the first fatal failure aborts the run."""
    for step in steps:
        run_step(step, ctx, report)
    return report
