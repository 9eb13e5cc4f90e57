"""Remote worker join over SSH."""
import logging
import os
from typing import List

from ..config import NodeSpec
from ..errors import BootstrapError, JoinCommandNotFound, StepError
from ..models import WorkerJoinResult
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.join")

KUBELET_CONF = "/etc/kubernetes/kubelet.conf"


class WorkerJoin(Step):
    name = 'join-workers'
    description = 'Joining worker nodes'

    def __init__(self, failure_policy: str = None):
        self.failure_policy = failure_policy

    def run(self, ctx: StepContext) -> List[WorkerJoinResult]:
        join = ctx.config.join
        policy = self.failure_policy or join.failure_policy
        if not os.path.isfile(join.command_path):
            raise JoinCommandNotFound(join.command_path)

        results = []
        for worker in ctx.config.topology.workers:
            logger.info(f"Setting up worker node: {worker.name} ({worker.address})")
            try:
                result = self.join_worker(ctx, worker)
            except BootstrapError as e:
                logger.error(f"❌ Worker {worker.name} failed to join: {e}")
                result = WorkerJoinResult(worker.name, worker.address, False, error=str(e))
                results.append(result)
                if policy == 'abort':
                    raise StepError(self.name, f"worker {worker.name} ({worker.address}) failed: {e}") from e
                continue
            results.append(result)

        failed = [r for r in results if not r.success]
        if failed:
            names = ', '.join(f"{r.name} ({r.address})" for r in failed)
            raise StepError(self.name, f"{len(failed)} of {len(results)} workers failed to join: {names}")
        return results

    def join_worker(self, ctx: StepContext, worker: NodeSpec) -> WorkerJoinResult:
        """Copy the join command to one worker and execute it there."""
        ssh = ctx.config.ssh
        remote_path = ctx.config.join.remote_path
        if ctx.dry_run:
            logger.info(f"[DRY RUN] Would copy {ctx.config.join.command_path} to "
                        f"{ssh.user}@{worker.address}:{remote_path} and run it with sudo")
            return WorkerJoinResult(worker.name, worker.address, True, "dry run")

        with ctx.ssh_factory(
            worker.address,
            ssh.user,
            key_path=ssh.key_path,
            port=ssh.port,
            connect_timeout=ssh.connect_timeout,
        ) as session:
            status, _, _ = session.execute(f"sudo -n test -f {KUBELET_CONF}")
            if status == 0:
                logger.info(f"Worker {worker.name} already joined; skipping")
                return WorkerJoinResult(worker.name, worker.address, True, "already joined", skipped=True)

            session.put(ctx.config.join.command_path, remote_path, mode=0o755)
            session.check(f"sudo -n bash {remote_path}", timeout=ssh.command_timeout)

        logger.info(f"Worker node {worker.name} joined successfully!")
        return WorkerJoinResult(worker.name, worker.address, True, "joined")
