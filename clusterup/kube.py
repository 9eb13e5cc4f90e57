"""Kubernetes API helpers: client setup, readiness waits and idempotent objects."""
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, List, Tuple, Union

from kubernetes import client, config
from kubernetes.client.exceptions import ApiException

from .errors import ReadinessTimeout

logger = logging.getLogger("clusterup.kube")

DEFAULT_CLASS_ANNOTATION = "storageclass.kubernetes.io/is-default-class"


@dataclass
class KubeClients:
    """API groups used by the bootstrap steps."""
    core: Any
    storage: Any


def resolve_kubeconfig(path: Union[str, Path]) -> str:
    """Return the absolute kubeconfig path, failing if it is missing."""
    resolved = Path(os.path.expanduser(str(path))).resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"❌ Kubeconfig not found: {resolved}")
    return str(resolved)


def connect(kubeconfig: Union[str, Path]) -> KubeClients:
    """Build API clients from a kubeconfig file."""
    api_client = config.new_client_from_config(config_file=resolve_kubeconfig(kubeconfig))
    return KubeClients(
        core=client.CoreV1Api(api_client),
        storage=client.StorageV1Api(api_client),
    )


def _is_ready(obj) -> bool:
    conditions = (obj.status.conditions if obj.status else None) or []
    return any(c.type == "Ready" and c.status == "True" for c in conditions)


def wait_for(
    check: Callable[[], Tuple[bool, List[str]]],
    what: str,
    timeout: float,
    interval: float = 5.0,
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Poll ``check`` until it reports done or ``timeout`` elapses.

    ``check`` returns ``(done, pending)`` where ``pending`` names the objects
    that are not ready yet. Errors raised by ``check`` (API server still
    starting, connection refused) count as "not ready".

    Raises:
        ReadinessTimeout: If the condition is not met in time
    """
    logger.info(f"⏳ Waiting for {what} (timeout: {timeout:g}s)")
    deadline = clock() + timeout
    pending: List[str] = []
    while True:
        try:
            done, pending = check()
        except Exception as e:
            logger.debug(f"{what} not ready yet: {e}")
            done, pending = False, [str(e)]
        if done:
            logger.info(f"✅ {what} ready")
            return
        if clock() >= deadline:
            raise ReadinessTimeout(what, timeout, pending)
        sleep(interval)


def wait_for_pods_ready(core, namespace: str, selector: str, timeout: float, **kwargs) -> None:
    """Block until every pod matching ``selector`` in ``namespace`` is Ready."""
    def check() -> Tuple[bool, List[str]]:
        pods = core.list_namespaced_pod(namespace, label_selector=selector).items
        if not pods:
            return False, [f"no pods matching {selector}"]
        pending = [p.metadata.name for p in pods if not _is_ready(p)]
        return not pending, pending

    wait_for(check, f"pods {selector} in {namespace}", timeout, **kwargs)


def wait_for_nodes_ready(core, timeout: float, **kwargs) -> None:
    """Block until every registered node reports Ready."""
    def check() -> Tuple[bool, List[str]]:
        nodes = core.list_node().items
        if not nodes:
            return False, ["no nodes registered"]
        pending = [n.metadata.name for n in nodes if not _is_ready(n)]
        return not pending, pending

    wait_for(check, "all nodes", timeout, **kwargs)


def ensure_namespace(core, name: str) -> bool:
    """Create ``name`` unless it already exists; never fails on existence.

    Returns:
        bool: True if the namespace was created
    """
    try:
        core.read_namespace(name)
        logger.debug(f"Namespace {name} already exists")
        return False
    except ApiException as e:
        if e.status != 404:
            raise

    body = client.V1Namespace(metadata=client.V1ObjectMeta(name=name))
    try:
        core.create_namespace(body)
    except ApiException as e:
        if e.status == 409:
            logger.debug(f"Namespace {name} created concurrently")
            return False
        raise
    return True


def mark_default_storage_class(storage, name: str) -> None:
    """Annotate ``name`` as the cluster-default storage class."""
    body = {"metadata": {"annotations": {DEFAULT_CLASS_ANNOTATION: "true"}}}
    storage.patch_storage_class(name, body)
