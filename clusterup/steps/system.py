"""Kernel and swap settings required by the kubelet."""
import logging

from ..render import render
from .base import Step, StepContext

logger = logging.getLogger("clusterup.steps.system")

FSTAB = "/etc/fstab"
MODULES_FILE = "/etc/modules-load.d/k8s.conf"
SYSCTL_FILE = "/etc/sysctl.d/k8s.conf"

KERNEL_MODULES = ("overlay", "br_netfilter")

SYSCTL_PARAMS = {
    "net.bridge.bridge-nf-call-iptables": "1",
    "net.bridge.bridge-nf-call-ip6tables": "1",
    "net.ipv4.ip_forward": "1",
}


def _is_swap_entry(line: str) -> bool:
    fields = line.split()
    return len(fields) >= 3 and not fields[0].startswith('#') and fields[2] == 'swap'


def comment_swap_entries(fstab_text: str) -> str:
    """Comment out active swap entries, leaving every other line untouched.

    Already commented lines are not swap entries, so applying this twice
    gives the same result as applying it once.
    """
    lines = fstab_text.splitlines(keepends=True)
    return ''.join(f"#{line}" if _is_swap_entry(line) else line for line in lines)


class SystemTuning(Step):
    name = 'system'
    description = 'Configuring system for Kubernetes'

    def run(self, ctx: StepContext) -> None:
        runner = ctx.runner

        runner.run(["swapoff", "-a"], sudo=True)
        fstab = runner.read_file(FSTAB)
        updated = comment_swap_entries(fstab)
        if updated != fstab:
            runner.write_file(FSTAB, updated)
            logger.info(f"Disabled swap entries in {FSTAB}")
        else:
            logger.info(f"No active swap entries in {FSTAB}")

        runner.ensure_file(MODULES_FILE, render("modules-load.conf.j2", modules=KERNEL_MODULES), mode=0o644)
        for module in KERNEL_MODULES:
            runner.run(["modprobe", module], sudo=True)

        runner.ensure_file(SYSCTL_FILE, render("sysctl.conf.j2", params=SYSCTL_PARAMS), mode=0o644)
        runner.run(["sysctl", "--system"], sudo=True, capture_output=True)
        logger.info("System configuration completed!")
