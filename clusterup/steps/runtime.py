"""containerd installation and configuration."""
import logging
import re

from ..render import render
from .apt import apt_install, apt_update, ensure_signing_key
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.runtime")

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_KEYRING = "/etc/apt/keyrings/docker.gpg"
DOCKER_SOURCES = "/etc/apt/sources.list.d/docker.list"
CONTAINERD_CONFIG = "/etc/containerd/config.toml"

PREREQUISITES = ("ca-certificates", "curl", "gnupg", "lsb-release")

_CGROUP_DISABLED = re.compile(r"^([ \t]*)SystemdCgroup\s*=\s*false[ \t]*$", re.MULTILINE)
_CGROUP_ENABLED = re.compile(r"^[ \t]*SystemdCgroup\s*=\s*true[ \t]*$", re.MULTILINE)


def enable_systemd_cgroup(config_text: str) -> str:
    """Flip ``SystemdCgroup = false`` to ``true``, keeping indentation."""
    return _CGROUP_DISABLED.sub(r"\1SystemdCgroup = true", config_text)


def uses_systemd_cgroup(config_text: str) -> bool:
    return bool(_CGROUP_ENABLED.search(config_text)) and not _CGROUP_DISABLED.search(config_text)


class RuntimeInstall(Step):
    name = 'runtime'
    description = 'Installing containerd container runtime'

    def run(self, ctx: StepContext) -> None:
        runner = ctx.runner

        apt_update(ctx)
        apt_install(ctx, PREREQUISITES)

        ensure_signing_key(ctx, DOCKER_GPG_URL, DOCKER_KEYRING, self.name)
        arch = runner.output(["dpkg", "--print-architecture"]).strip()
        codename = runner.output(["lsb_release", "-cs"]).strip()
        runner.ensure_file(
            DOCKER_SOURCES,
            render("docker.list.j2", arch=arch, keyring=DOCKER_KEYRING, codename=codename),
            mode=0o644,
        )

        apt_update(ctx)
        apt_install(ctx, ["containerd.io"])

        self.configure(ctx)

        runner.run(["systemctl", "restart", "containerd"], sudo=True)
        runner.run(["systemctl", "enable", "containerd"], sudo=True)
        logger.info("Containerd installed and configured successfully!")

    def configure(self, ctx: StepContext) -> None:
        """Ensure the containerd config uses the systemd cgroup driver."""
        runner = ctx.runner
        runner.ensure_dir("/etc/containerd")

        current = runner.read_file(CONTAINERD_CONFIG, sudo=True)
        if current and uses_systemd_cgroup(current):
            logger.info(f"{CONTAINERD_CONFIG} already enables the systemd cgroup driver")
            return

        default = runner.output(["containerd", "config", "default"])
        runner.write_file(CONTAINERD_CONFIG, enable_systemd_cgroup(default), mode=0o644)
        logger.info(f"Generated {CONTAINERD_CONFIG} with SystemdCgroup = true")
