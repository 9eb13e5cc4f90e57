"""Cluster bootstrap configuration.

Configuration is loaded once, at process start, from the following sources
(highest precedence first):
1. Explicitly passed parameters (CLI options)
2. Environment variables (``CLUSTERUP_`` prefix, ``__`` as nested delimiter)
3. Configuration file (YAML)
4. Default values

The resulting objects are immutable and are handed to every component
explicitly.
"""
import ipaddress
import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from jsonschema import ValidationError as SchemaValidationError
from jsonschema import validate
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .errors import ConfigError

logger = logging.getLogger("clusterup.config")

# Default configuration paths
DEFAULT_CONFIG_PATHS = [
    Path("/etc/clusterup/config.yaml"),
    Path("~/.config/clusterup/config.yaml"),
    Path("clusterup.yaml"),
]

ENV_PREFIX = "CLUSTERUP_"
ENV_NESTED_DELIMITER = "__"

HOSTNAME_RE = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
VERSION_RE = re.compile(r"^\d+\.\d+\.\d+$")

_NODE_SCHEMA = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "address": {"type": "string"},
    },
    "required": ["name", "address"],
}

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "topology": {
            "type": "object",
            "properties": {
                "control_plane": _NODE_SCHEMA,
                "workers": {"type": "array", "items": _NODE_SCHEMA},
                "pod_cidr": {"type": "string"},
                "service_cidr": {"type": "string"},
                "kubernetes_version": {"type": ["string", "number"]},
            },
        },
        "ssh": {"type": "object"},
        "timeouts": {"type": "object"},
        "join": {"type": "object"},
        "addons": {
            "type": "object",
            "properties": {
                "namespaces": {"type": "array", "items": {"type": "string"}},
            },
        },
        "logging": {"type": "object"},
        "dry_run": {"type": "boolean"},
        "skip_steps": {"type": "array", "items": {"type": "string"}},
    },
}


def _split_csv(value: Any) -> Any:
    """Accept comma separated strings (environment variables) for list fields."""
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return value


class _Model(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")


class NodeSpec(_Model):
    """A cluster member: symbolic host name and network address."""
    name: str
    address: str

    @field_validator("name")
    @classmethod
    def check_name(cls, v: str) -> str:
        v = v.strip()
        if not HOSTNAME_RE.match(v):
            raise ValueError(f"Invalid hostname: {v!r} (must be lowercase alphanumeric or hyphen)")
        return v

    @field_validator("address")
    @classmethod
    def check_address(cls, v: str) -> str:
        return str(ipaddress.ip_address(v.strip()))


class ClusterTopology(_Model):
    """Static layout of the cluster: who is who, and the address plan."""
    control_plane: NodeSpec = Field(
        default=NodeSpec(name="k8s-master-01", address="192.168.68.86"),
        description="Control-plane node"
    )
    workers: Tuple[NodeSpec, ...] = Field(
        default=(
            NodeSpec(name="k8s-worker-01", address="192.168.68.88"),
            NodeSpec(name="k8s-worker-02", address="192.168.68.83"),
        ),
        description="Worker nodes, joined in this order"
    )
    pod_cidr: str = Field(default="10.244.0.0/16", description="Pod address range")
    service_cidr: str = Field(default="10.96.0.0/12", description="Service address range")
    kubernetes_version: str = Field(default="1.34.1", description="Pinned Kubernetes release")

    @field_validator("pod_cidr", "service_cidr")
    @classmethod
    def check_cidr(cls, v: str) -> str:
        return str(ipaddress.ip_network(v.strip(), strict=True))

    @field_validator("kubernetes_version", mode="before")
    @classmethod
    def check_version(cls, v: Any) -> str:
        v = str(v).strip().lstrip("v")
        if not VERSION_RE.match(v):
            raise ValueError(f"kubernetes_version must look like 1.34.1, got {v!r}")
        return v

    @model_validator(mode="after")
    def check_members(self) -> "ClusterTopology":
        addresses = [ipaddress.ip_address(n.address) for n in self.members]
        if len(addresses) != len(set(addresses)):
            raise ValueError("Duplicate IP addresses found in topology")
        names = [n.name for n in self.members]
        if len(names) != len(set(names)):
            raise ValueError("Duplicate node names found in topology")
        if ipaddress.ip_network(self.pod_cidr).overlaps(ipaddress.ip_network(self.service_cidr)):
            raise ValueError(f"pod_cidr {self.pod_cidr} overlaps service_cidr {self.service_cidr}")
        return self

    @property
    def members(self) -> List[NodeSpec]:
        """Control plane first, then workers in configured order."""
        return [self.control_plane, *self.workers]

    @property
    def release(self) -> str:
        return f"v{self.kubernetes_version}"

    @property
    def minor_version(self) -> str:
        major, minor, _ = self.kubernetes_version.split(".")
        return f"v{major}.{minor}"


class SSHConfig(_Model):
    """SSH settings for the remote worker join path."""
    user: str = Field(default="ubuntu", description="Default SSH username")
    key_path: str = Field(default="~/.ssh/id_rsa", validate_default=True, description="Path to SSH private key")
    port: int = Field(default=22, description="SSH port number")
    connect_timeout: int = Field(default=10, description="SSH connection timeout in seconds")
    command_timeout: int = Field(default=600, description="Remote command timeout in seconds")

    @field_validator("key_path")
    @classmethod
    def expand_key_path(cls, v: str) -> str:
        """Expand the user home directory in the key path."""
        return os.path.expanduser(v)


class TimeoutConfig(_Model):
    """Bounds for probes and readiness waits, in seconds."""
    ping: int = Field(default=5, gt=0)
    network_plugin: int = Field(default=300, gt=0)
    nodes: int = Field(default=300, gt=0)
    poll_interval: float = Field(default=5.0, gt=0)


class JoinConfig(_Model):
    """Where the join command lives and how remote joins behave."""
    command_path: str = "/tmp/kubeadm-join-command.sh"
    remote_path: str = "/tmp/kubeadm-join-command.sh"
    failure_policy: str = Field(default="continue", description="continue | abort")
    remote: bool = Field(default=False, description="Join workers over SSH after control-plane setup")

    @field_validator("failure_policy")
    @classmethod
    def check_policy(cls, v: str) -> str:
        v = v.strip().lower()
        if v not in ("continue", "abort"):
            raise ValueError(f"failure_policy must be 'continue' or 'abort', got {v!r}")
        return v


class AddonConfig(_Model):
    """Upstream locations and names for the baseline add-ons."""
    network_manifest_url: str = "https://github.com/flannel-io/flannel/releases/latest/download/kube-flannel.yml"
    network_namespace: str = "kube-flannel"
    network_selector: str = "app=flannel"
    helm_install_script_url: str = "https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3"
    storage_manifest_url: str = (
        "https://raw.githubusercontent.com/rancher/local-path-provisioner/v0.0.24/deploy/local-path-storage.yaml"
    )
    storage_class: str = "local-path"
    namespaces: Tuple[str, ...] = ("applications", "monitoring", "argocd", "infrastructure")

    @field_validator("namespaces", mode="before")
    @classmethod
    def split_namespaces(cls, v: Any) -> Any:
        return _split_csv(v)


class LoggingConfig(_Model):
    """Logging configuration."""
    level: str = Field(default="INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)")
    file: Optional[str] = Field(default=None, description="Path to log file (if None, logs to stderr only)")
    max_size_mb: int = Field(default=100, description="Maximum log file size in MB before rotation")
    backup_count: int = Field(default=5, description="Number of backup log files to keep")


class BootstrapConfig(_Model):
    """Root configuration object handed to every component."""
    topology: ClusterTopology = Field(default_factory=ClusterTopology)
    ssh: SSHConfig = Field(default_factory=SSHConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    join: JoinConfig = Field(default_factory=JoinConfig)
    addons: AddonConfig = Field(default_factory=AddonConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    dry_run: bool = False
    skip_steps: Tuple[str, ...] = ()

    @field_validator("skip_steps", mode="before")
    @classmethod
    def split_skip_steps(cls, v: Any) -> Any:
        return _split_csv(v)

    @classmethod
    def load(
        cls,
        config_path: Optional[Union[str, Path]] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> "BootstrapConfig":
        """Load configuration from file and environment variables.

        Args:
            config_path: Explicit YAML file; when omitted the first existing
                entry of ``DEFAULT_CONFIG_PATHS`` is used, if any
            environ: Environment mapping; defaults to ``os.environ`` after
                loading a ``.env`` file from the working directory

        Raises:
            ConfigError: If the file is missing, unreadable or invalid
        """
        if environ is None:
            load_dotenv(find_dotenv(usecwd=True))
            environ = os.environ

        # File and environment values are layered over the defaults
        config_data: Dict[str, Any] = cls().model_dump(mode="json")
        source = find_config_file(config_path)
        if config_path and source is None:
            raise ConfigError(f"Config file not found: {Path(config_path).expanduser()}")
        if source is not None:
            config_data = merge_dicts(config_data, _load_config_file(source))
            logger.debug(f"Loaded configuration from {source}")

        config_data = merge_dicts(config_data, env_overrides(environ))
        try:
            return cls.model_validate(config_data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def to_yaml(self) -> str:
        return yaml.safe_dump(self.model_dump(mode="json"), default_flow_style=False, sort_keys=False)

    def save(self, path: Union[str, Path]) -> Path:
        """Save configuration to a YAML file readable only by its owner."""
        path = Path(path).expanduser().absolute()
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.to_yaml())
        path.chmod(0o600)
        return path


def find_config_file(config_path: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Return the configuration file that ``load`` would read, if any."""
    candidates = [Path(config_path)] if config_path else DEFAULT_CONFIG_PATHS
    for path in candidates:
        path = path.expanduser().absolute()
        if path.is_file():
            return path
    return None


def _load_config_file(path: Path) -> Dict[str, Any]:
    """Load and structurally validate a YAML configuration file."""
    try:
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    try:
        validate(instance=data, schema=CONFIG_SCHEMA)
    except SchemaValidationError as e:
        location = ".".join(str(p) for p in e.absolute_path) or "<root>"
        raise ConfigError(f"Schema validation error in {path} at {location}: {e.message}") from e
    return data


def env_overrides(environ: Mapping[str, str], prefix: str = ENV_PREFIX) -> Dict[str, Any]:
    """Turn ``CLUSTERUP_SSH__USER=admin`` style variables into a nested dict."""
    overrides: Dict[str, Any] = {}
    for key, value in environ.items():
        if not key.startswith(prefix) or len(key) == len(prefix):
            continue
        parts = key[len(prefix):].lower().split(ENV_NESTED_DELIMITER)
        target = overrides
        for part in parts[:-1]:
            target = target.setdefault(part, {})
            if not isinstance(target, dict):
                break
        else:
            target[parts[-1]] = value
    return overrides


def merge_dicts(base: Dict[Any, Any], override: Dict[Any, Any]) -> Dict[Any, Any]:
    """Recursively merge two dictionaries.

    Args:
        base: Base dictionary
        override: Dictionary with values to override

    Returns:
        dict: Merged dictionary
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_dicts(result[key], value)
        else:
            result[key] = value
    return result
