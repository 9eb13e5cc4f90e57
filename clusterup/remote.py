"""SSH sessions to worker nodes, built on paramiko."""
import logging
import os
from typing import Callable, Optional, Tuple

import paramiko

from .errors import RemoteError

logger = logging.getLogger("clusterup.remote")


class RemoteSession:
    """One SSH connection to a remote host, used as a context manager.

    Example:
        with RemoteSession('10.0.0.2', 'ubuntu', '~/.ssh/id_rsa') as session:
            session.put('/tmp/join.sh', '/tmp/join.sh', mode=0o755)
            session.check('sudo bash /tmp/join.sh')
    """

    def __init__(
        self,
        host: str,
        username: str,
        key_path: Optional[str] = None,
        port: int = 22,
        connect_timeout: int = 10,
        client_factory: Callable[[], paramiko.SSHClient] = paramiko.SSHClient,
    ):
        self.host = host
        self.username = username
        self.key_path = os.path.expanduser(key_path) if key_path else None
        self.port = port
        self.connect_timeout = connect_timeout
        self.client_factory = client_factory
        self.client: Optional[paramiko.SSHClient] = None

    def __enter__(self) -> 'RemoteSession':
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def connect(self) -> None:
        """Open the SSH connection using key (or agent) authentication."""
        logger.debug(f"Connecting to {self.username}@{self.host}:{self.port}")
        client = self.client_factory()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        key_filename = self.key_path if self.key_path and os.path.exists(self.key_path) else None
        try:
            client.connect(
                hostname=self.host,
                port=self.port,
                username=self.username,
                key_filename=key_filename,
                timeout=self.connect_timeout,
                banner_timeout=self.connect_timeout,
            )
        except (paramiko.SSHException, OSError) as e:
            client.close()
            raise RemoteError(self.host, f"SSH connection as {self.username} failed: {e}") from e
        self.client = client

    def execute(self, command: str, timeout: Optional[int] = None) -> Tuple[int, str, str]:
        """Execute a command and return ``(exit_status, stdout, stderr)``."""
        if self.client is None:
            raise RemoteError(self.host, "not connected")
        logger.debug(f"[{self.host}] $ {command}")
        try:
            _, stdout, stderr = self.client.exec_command(command, timeout=timeout)
            out = stdout.read().decode("utf-8", errors="replace")
            err = stderr.read().decode("utf-8", errors="replace")
            status = stdout.channel.recv_exit_status()
        except (paramiko.SSHException, OSError) as e:
            raise RemoteError(self.host, f"command {command!r} failed: {e}") from e
        return status, out, err

    def check(self, command: str, timeout: Optional[int] = None) -> str:
        """Execute a command, raising ``RemoteError`` on a non-zero exit."""
        status, out, err = self.execute(command, timeout=timeout)
        if status != 0:
            detail = err.strip() or out.strip()
            raise RemoteError(self.host, f"command {command!r} exited with {status}: {detail}")
        return out

    def put(self, local_path: str, remote_path: str, mode: Optional[int] = None) -> None:
        """Upload a file over SFTP, optionally setting its mode."""
        if self.client is None:
            raise RemoteError(self.host, "not connected")
        try:
            sftp = self.client.open_sftp()
            try:
                sftp.put(local_path, remote_path)
                if mode is not None:
                    sftp.chmod(remote_path, mode)
            finally:
                sftp.close()
        except (paramiko.SSHException, OSError) as e:
            raise RemoteError(self.host, f"failed to upload {local_path} to {remote_path}: {e}") from e
        logger.debug(f"[{self.host}] Uploaded {local_path} to {remote_path}")

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
