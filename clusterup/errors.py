"""Exception hierarchy for clusterup.

Every failure that should terminate a run derives from ``BootstrapError``;
the CLI turns any of them into exit code 1 plus a diagnostic on stderr.
"""
from typing import List, Optional, Sequence


class BootstrapError(Exception):
    """Base class for fatal provisioning errors."""
    exit_code: int = 1


class ConfigError(BootstrapError):
    """Raised when the configuration cannot be loaded or is invalid."""


class PreflightError(BootstrapError):
    """Raised when the execution environment is unsuitable."""


class CommandError(BootstrapError):
    """Raised when an external command exits non-zero or times out."""

    def __init__(self, command: Sequence[str], returncode: Optional[int], stderr: str = ""):
        self.command = list(command)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        if returncode is None:
            message = f"Command timed out: {' '.join(self.command)}"
        else:
            message = f"Command failed: {' '.join(self.command)} (exit code: {returncode})"
        if self.stderr:
            message += f"\n{self.stderr}"
        super().__init__(message)


class StepError(BootstrapError):
    """Raised by a provisioning step that could not reach its desired state."""

    def __init__(self, step: str, message: str):
        self.step = step
        super().__init__(f"{step}: {message}")


class ReadinessTimeout(BootstrapError):
    """Raised when a readiness wait elapses before its condition is met."""

    def __init__(self, what: str, timeout: float, pending: Optional[List[str]] = None):
        self.what = what
        self.timeout = timeout
        self.pending = pending or []
        message = f"Timed out after {timeout:g}s waiting for {what}"
        if self.pending:
            message += f" (not ready: {', '.join(self.pending)})"
        super().__init__(message)


class UnrecognizedRoleError(BootstrapError):
    """Raised when the local address matches no member of the topology."""

    def __init__(self, address: str):
        self.address = address
        super().__init__(
            f"Unknown node IP: {address}. Please check your network configuration."
        )


class JoinCommandNotFound(BootstrapError):
    """Raised when the worker join artifact has not been produced yet."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(
            f"Join command not found at {path}. Run the control-plane initializer first."
        )


class RemoteError(BootstrapError):
    """Raised when an SSH session, transfer or remote command fails."""

    def __init__(self, host: str, message: str):
        self.host = host
        super().__init__(f"{host}: {message}")
