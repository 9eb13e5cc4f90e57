"""APT helpers shared by the package-installing steps."""
import logging
from typing import Sequence

import requests

from ..errors import StepError
from .base import StepContext

logger = logging.getLogger("clusterup.steps.apt")

KEYRING_DIR = "/etc/apt/keyrings"
DOWNLOAD_TIMEOUT = 30

APT_ENV = ["env", "DEBIAN_FRONTEND=noninteractive"]


def apt_update(ctx: StepContext) -> None:
    ctx.runner.run(APT_ENV + ["apt-get", "update"], sudo=True)


def apt_install(ctx: StepContext, packages: Sequence[str]) -> None:
    logger.info(f"📦 Installing {' '.join(packages)}")
    ctx.runner.run(APT_ENV + ["apt-get", "install", "-y", *packages], sudo=True)


def fetch(url: str, step: str) -> str:
    """Download a text resource, failing the step on any HTTP error."""
    try:
        response = requests.get(url, timeout=DOWNLOAD_TIMEOUT)
        response.raise_for_status()
    except requests.RequestException as e:
        raise StepError(step, f"failed to download {url}: {e}") from e
    return response.text


def ensure_signing_key(ctx: StepContext, url: str, keyring: str, step: str) -> bool:
    """Install a dearmored repository signing key unless it is already present.

    Returns:
        bool: True if the key was installed
    """
    ctx.runner.ensure_dir(KEYRING_DIR, mode=0o755)
    if ctx.runner.exists(keyring):
        logger.debug(f"Signing key {keyring} already present")
        return False
    if ctx.dry_run:
        logger.info(f"[DRY RUN] Would install signing key from {url} into {keyring}")
        return True

    armored = fetch(url, step)
    ctx.runner.run(["gpg", "--dearmor", "--yes", "-o", keyring], sudo=True, input=armored)
    ctx.runner.run(["chmod", "644", keyring], sudo=True)
    logger.info(f"🔑 Installed signing key {keyring}")
    return True
