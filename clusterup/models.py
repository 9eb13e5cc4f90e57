"""Data models for the cluster bootstrapper."""

import shlex
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class NodeRole(str, Enum):
    """Role of the local machine within the cluster topology."""
    CONTROL_PLANE = 'control-plane'
    WORKER = 'worker'
    UNRECOGNIZED = 'unrecognized'


@dataclass(frozen=True)
class JoinCredential:
    """Bootstrap token plus control-plane endpoint for joining a worker."""
    endpoint: str
    token: str
    ca_cert_hashes: List[str]
    command: str

    @classmethod
    def parse(cls, text: str) -> 'JoinCredential':
        """Parse the output of ``kubeadm token create --print-join-command``.

        Raises:
            ValueError: If the text is not a usable ``kubeadm join`` command
        """
        command = " ".join(line.strip() for line in text.strip().splitlines() if line.strip())
        command = command.replace("\\ ", " ")
        args = shlex.split(command)
        if args[:2] != ["kubeadm", "join"]:
            raise ValueError(f"Not a kubeadm join command: {command!r}")

        endpoint = None
        token = None
        hashes = []
        i = 2
        while i < len(args):
            arg = args[i]
            if arg.startswith("--"):
                name, _, value = arg.partition("=")
                if not value and i + 1 < len(args) and not args[i + 1].startswith("--"):
                    i += 1
                    value = args[i]
                if name == "--token":
                    token = value
                elif name == "--discovery-token-ca-cert-hash":
                    hashes.append(value)
            elif endpoint is None:
                endpoint = arg
            i += 1

        if not endpoint:
            raise ValueError("Join command has no control-plane endpoint")
        if not token:
            raise ValueError("Join command has no --token")
        return cls(endpoint=endpoint, token=token, ca_cert_hashes=hashes, command=command)

    def render_script(self) -> str:
        """Return the join command as an executable bash script."""
        return f"#!/usr/bin/env bash\nset -euo pipefail\n{self.command}\n"


@dataclass
class StepResult:
    """Outcome of a single provisioning step."""
    name: str
    success: bool
    duration: float = 0.0
    message: str = ''
    skipped: bool = False


@dataclass
class RunReport:
    """Tracks the steps executed during one bootstrap run."""
    role: NodeRole
    address: str
    start_time: float = field(default_factory=time.time)
    results: List[StepResult] = field(default_factory=list)

    def record(self, name: str, success: bool, duration: float = 0.0,
               message: str = '', skipped: bool = False) -> StepResult:
        """Record a step outcome and return it."""
        result = StepResult(name=name, success=success, duration=duration,
                            message=message, skipped=skipped)
        self.results.append(result)
        return result

    @property
    def elapsed(self) -> float:
        """Seconds since the run started."""
        return time.time() - self.start_time

    @property
    def succeeded(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def step_names(self) -> List[str]:
        """Names of the steps that actually ran, in order."""
        return [r.name for r in self.results if not r.skipped]

    def failed(self) -> List[StepResult]:
        return [r for r in self.results if not r.success]


@dataclass
class WorkerJoinResult:
    """Outcome of joining one worker over SSH."""
    name: str
    address: str
    success: bool
    message: str = ''
    skipped: bool = False
    error: Optional[str] = None
