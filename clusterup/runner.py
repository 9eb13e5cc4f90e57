"""External command execution.

Every provisioning step talks to the host through a ``CommandRunner`` so that
privilege elevation, logging, dry-run handling and error translation live in
one place. Commands are always argv lists; nothing is passed through a shell.
"""
import logging
import os
import shutil
import subprocess
from pathlib import Path
from typing import Optional, Sequence, Union

from .errors import CommandError

logger = logging.getLogger("clusterup.runner")

PathLike = Union[str, Path]


class CommandRunner:
    """Runs host commands, optionally through passwordless sudo."""

    def __init__(self, dry_run: bool = False, sudo: Sequence[str] = ("sudo", "-n")):
        """
        Args:
            dry_run: If True, only log mutating commands without executing them
            sudo: Prefix used for commands that need elevation
        """
        self.dry_run = dry_run
        self.sudo = list(sudo)

    def run(
        self,
        cmd: Sequence[str],
        *,
        sudo: bool = False,
        check: bool = True,
        capture_output: bool = False,
        input: Optional[str] = None,
        timeout: Optional[float] = None,
        mutating: bool = True,
    ) -> subprocess.CompletedProcess:
        """Run a command.

        Args:
            cmd: Command as a list of arguments
            sudo: Prefix the command with the sudo argv
            check: Raise ``CommandError`` on a non-zero exit code
            capture_output: Capture stdout/stderr instead of inheriting them
            input: Text fed to the command's stdin
            timeout: Seconds before the command is killed
            mutating: False for read-only commands, which still run in dry-run mode

        Returns:
            The completed process

        Raises:
            CommandError: If ``check`` is set and the command fails, or on timeout
        """
        argv = (self.sudo + list(cmd)) if sudo else list(cmd)
        cmd_str = ' '.join(argv)

        if self.dry_run and mutating:
            logger.info(f"[DRY RUN] Would execute: {cmd_str}")
            return subprocess.CompletedProcess(argv, 0, stdout="", stderr="")

        logger.debug(f"💻 Running: {cmd_str}")
        try:
            result = subprocess.run(
                argv,
                check=False,
                text=True,
                input=input,
                timeout=timeout,
                stdout=subprocess.PIPE if capture_output else None,
                stderr=subprocess.PIPE if capture_output else None,
            )
        except subprocess.TimeoutExpired as e:
            raise CommandError(argv, None, f"timed out after {timeout}s") from e
        except FileNotFoundError as e:
            raise CommandError(argv, 127, str(e)) from e

        if capture_output and result.stdout:
            logger.debug(f"🟢 Output:\n{result.stdout}")
        if check and result.returncode != 0:
            raise CommandError(argv, result.returncode, result.stderr if capture_output else "")
        return result

    def output(self, cmd: Sequence[str], **kwargs) -> str:
        """Run a command and return its stdout."""
        kwargs.setdefault("mutating", False)
        return self.run(cmd, capture_output=True, **kwargs).stdout or ""

    def which(self, binary: str) -> Optional[str]:
        return shutil.which(binary)

    def exists(self, path: PathLike, sudo: bool = False) -> bool:
        """Check whether a path exists, using ``sudo test`` for protected paths."""
        if not sudo:
            return os.path.exists(path)
        result = self.run(["test", "-e", str(path)], sudo=True, check=False,
                          capture_output=True, mutating=False)
        return result.returncode == 0

    def read_file(self, path: PathLike, sudo: bool = False) -> str:
        """Return the file's text, or an empty string if it does not exist."""
        if not sudo:
            try:
                return Path(path).read_text()
            except FileNotFoundError:
                return ""
        if not self.exists(path, sudo=True):
            return ""
        return self.output(["cat", str(path)], sudo=True)

    def write_file(
        self,
        path: PathLike,
        content: str,
        *,
        sudo: bool = True,
        mode: Optional[int] = None,
        append: bool = False,
    ) -> None:
        """Write (or append) text to a file, through ``sudo tee`` when privileged."""
        if sudo:
            cmd = ["tee", "-a", str(path)] if append else ["tee", str(path)]
            # tee echoes its input; keep it out of the operator's terminal
            self.run(cmd, sudo=True, input=content, capture_output=True)
            if mode is not None:
                self.run(["chmod", f"{mode:o}", str(path)], sudo=True)
            return

        if self.dry_run:
            logger.info(f"[DRY RUN] Would write {path}")
            return
        target = Path(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        with open(target, "a" if append else "w") as f:
            f.write(content)
        if mode is not None:
            target.chmod(mode)

    def ensure_file(
        self,
        path: PathLike,
        content: str,
        *,
        sudo: bool = True,
        mode: Optional[int] = None,
    ) -> bool:
        """Write ``content`` to ``path`` only if it differs.

        Returns:
            bool: True if the file was changed
        """
        if self.exists(path, sudo=sudo) and self.read_file(path, sudo=sudo) == content:
            logger.debug(f"{path} already up to date")
            return False
        self.write_file(path, content, sudo=sudo, mode=mode)
        logger.info(f"📝 Wrote {path}")
        return True

    def ensure_dir(self, path: PathLike, sudo: bool = True, mode: Optional[int] = None) -> None:
        cmd = ["mkdir", "-p"]
        if mode is not None:
            cmd += ["-m", f"{mode:o}"]
        cmd.append(str(path))
        if sudo:
            self.run(cmd, sudo=True)
        elif self.dry_run:
            logger.info(f"[DRY RUN] Would create directory {path}")
        else:
            Path(path).mkdir(parents=True, exist_ok=True)
            if mode is not None:
                Path(path).chmod(mode)
