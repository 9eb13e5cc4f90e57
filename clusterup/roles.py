"""Role derivation: which part of the topology is this machine?"""
import ipaddress
import logging
import socket
from typing import Optional

from .config import ClusterTopology
from .errors import BootstrapError
from .models import NodeRole

logger = logging.getLogger("clusterup.roles")


def _parse(address: str) -> Optional[ipaddress._BaseAddress]:
    try:
        return ipaddress.ip_address(address.strip())
    except ValueError:
        return None


def derive_role(address: str, topology: ClusterTopology) -> NodeRole:
    """Map a local address onto the topology.

    Pure function of its inputs: the control-plane address selects
    ``CONTROL_PLANE``, any worker address ``WORKER``, anything else
    ``UNRECOGNIZED``.
    """
    local = _parse(address)
    if local is None:
        return NodeRole.UNRECOGNIZED
    if local == ipaddress.ip_address(topology.control_plane.address):
        return NodeRole.CONTROL_PLANE
    if any(local == ipaddress.ip_address(w.address) for w in topology.workers):
        return NodeRole.WORKER
    return NodeRole.UNRECOGNIZED


def _udp_source_address() -> Optional[str]:
    """Source address the kernel would use for outbound traffic."""
    s = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    try:
        s.connect(("8.8.8.8", 80))
        return s.getsockname()[0]
    except OSError as e:
        logger.warning(f"Failed to detect address from routing table: {e}")
        return None
    finally:
        s.close()


def detect_local_address(runner) -> str:
    """Return the primary address of this machine.

    Uses the first field of ``hostname -I``; falls back to the routing table.

    Raises:
        BootstrapError: If no address can be determined
    """
    result = runner.run(["hostname", "-I"], check=False, capture_output=True, mutating=False)
    fields = (result.stdout or "").split()
    if result.returncode == 0 and fields:
        return fields[0]

    address = _udp_source_address()
    if not address:
        raise BootstrapError("Could not determine the local primary address")
    return address
