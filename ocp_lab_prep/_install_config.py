"""Projection of the resolved lab plan onto ``install-config.yaml``.

The installer template is loaded with PyYAML, edited through dot-path writes
and written back in place. A previous config at the destination is always
moved aside with a timestamp suffix first.
"""

from __future__ import annotations

import enum
import logging
import re
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from ocp_lab_prep._inventory import InventoryPath
from ocp_lab_prep._lab_errors import ConfigWriteError, PrerequisiteMissingError
from ocp_lab_prep._topology import ClusterMode, ClusterTopology, NodeRole, NodeSizing

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "install-config.yaml"
TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
_SEGMENT_PATTERN = re.compile(r"^([^\[\]]+)((?:\[\d+\])*)$")


class SchemaMode(enum.Enum):
    """Layout of the ``platform.vsphere`` block."""

    FAILURE_DOMAINS = "failure-domains"
    LEGACY_FLAT = "legacy-flat"


@dataclass(frozen=True, slots=True)
class ClusterIdentity:
    """Cluster naming and virtual IPs."""

    name: str
    base_domain: str
    api_vip: str
    ingress_vip: str


@dataclass(frozen=True, slots=True)
class InstallCredentials:
    """vCenter login and installer secrets written into the config."""

    vcenter_server: str
    username: str
    password: str = field(repr=False)
    pull_secret: str = field(repr=False)
    ssh_key: str


@dataclass(frozen=True, slots=True)
class ProjectionResult:
    """Files produced by :func:`project_install_config`."""

    config_path: Path
    previous_backup: Path | None
    snapshot: Path | None = None


class ConfigDocument:
    """Nested YAML mapping addressed with ``a.b[0].c`` style key paths.

    Examples
    --------
    >>> doc = ConfigDocument({})
    >>> doc.set("platform.vsphere.apiVIPs[0]", "10.0.0.5")
    >>> doc.get("platform.vsphere.apiVIPs[0]")
    '10.0.0.5'
    """

    def __init__(self, data: dict[str, Any] | None = None) -> None:
        self.data: dict[str, Any] = data if data is not None else {}

    @classmethod
    def load(cls, path: Path) -> ConfigDocument:
        """Parse ``path`` as a YAML mapping."""
        try:
            payload = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as exc:
            msg = f"Failed to parse {path}: {exc}"
            raise PrerequisiteMissingError(msg) from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, dict):
            msg = f"{path} must contain a YAML mapping"
            raise PrerequisiteMissingError(msg)
        return cls(payload)

    def dump(self) -> str:
        """Serialise the document, keeping key order."""
        return yaml.safe_dump(self.data, sort_keys=False, default_flow_style=False)

    def get(self, key_path: str) -> Any:
        """Return the value at ``key_path``; raises ``KeyError`` when absent."""
        node: Any = self.data
        for key, indexes in _parse_key_path(key_path):
            node = node[key]
            for index in indexes:
                node = node[index]
        return node

    def set(self, key_path: str, value: Any) -> None:
        """Write ``value`` at ``key_path``, creating mappings and list slots.

        Raises
        ------
        ConfigWriteError
            If the path is malformed or crosses a scalar.
        """
        try:
            steps = _flatten(_parse_key_path(key_path))
        except ValueError as exc:
            raise ConfigWriteError(str(exc), key_path=key_path) from exc

        node: Any = self.data
        for position, (step, next_step) in enumerate(zip(steps, [*steps[1:], None])):
            last = position == len(steps) - 1
            empty: Any = [] if isinstance(next_step, int) else {}
            try:
                node = _descend(node, step, value if last else empty, replace=last)
            except (TypeError, IndexError) as exc:
                msg = f"cannot write {key_path}: {exc}"
                raise ConfigWriteError(msg, key_path=key_path) from exc


def _parse_key_path(key_path: str) -> list[tuple[str, list[int]]]:
    if not key_path:
        msg = "key path must not be empty"
        raise ValueError(msg)
    parsed: list[tuple[str, list[int]]] = []
    for segment in key_path.split("."):
        match = _SEGMENT_PATTERN.match(segment)
        if match is None:
            msg = f"malformed key path segment {segment!r} in {key_path!r}"
            raise ValueError(msg)
        indexes = [int(item) for item in re.findall(r"\[(\d+)\]", match.group(2))]
        parsed.append((match.group(1), indexes))
    return parsed


def _flatten(parsed: list[tuple[str, list[int]]]) -> list[str | int]:
    steps: list[str | int] = []
    for key, indexes in parsed:
        steps.append(key)
        steps.extend(indexes)
    return steps


def _descend(node: Any, step: str | int, fill: Any, *, replace: bool) -> Any:
    if isinstance(step, int):
        if not isinstance(node, list):
            msg = f"expected a list at index {step}, found {type(node).__name__}"
            raise TypeError(msg)
        if step > len(node):
            msg = f"index {step} would leave a gap in a list of {len(node)}"
            raise IndexError(msg)
        if step == len(node):
            node.append(fill)
        elif replace or node[step] is None:
            node[step] = fill
        return node[step]
    if not isinstance(node, dict):
        msg = f"expected a mapping at {step!r}, found {type(node).__name__}"
        raise TypeError(msg)
    if replace or node.get(step) is None:
        node[step] = fill
    return node[step]


def build_writes(
    identity: ClusterIdentity,
    topology: ClusterTopology,
    sizing: dict[NodeRole, NodeSizing],
    inventory: InventoryPath,
    credentials: InstallCredentials,
    schema: SchemaMode,
) -> list[tuple[str, Any]]:
    """Return the ordered key-path writes for one projection.

    The order is identity, VIPs, connection, replicas, sizing and finally the
    secrets. Memory is converted to MiB here, before any write happens.
    """
    if inventory.cluster_path is None or inventory.resource_pool_path is None:
        msg = "install-config projection needs a compute cluster path"
        raise ConfigWriteError(msg, key_path="platform.vsphere")

    writes: list[tuple[str, Any]] = [
        ("metadata.name", identity.name),
        ("baseDomain", identity.base_domain),
    ]
    if schema is SchemaMode.FAILURE_DOMAINS:
        writes += [
            ("platform.vsphere.apiVIPs[0]", identity.api_vip),
            ("platform.vsphere.ingressVIPs[0]", identity.ingress_vip),
            ("platform.vsphere.failureDomains[0].server", credentials.vcenter_server),
            ("platform.vsphere.failureDomains[0].topology.datacenter", inventory.datacenter),
            ("platform.vsphere.failureDomains[0].topology.computeCluster", inventory.cluster_path),
            (
                "platform.vsphere.failureDomains[0].topology.resourcePool",
                inventory.resource_pool_path,
            ),
            ("platform.vsphere.failureDomains[0].topology.folder", inventory.folder_path),
            ("platform.vsphere.failureDomains[0].topology.datastore", inventory.datastore_path),
            (
                "platform.vsphere.failureDomains[0].topology.networks[0]",
                inventory.network_name,
            ),
            ("platform.vsphere.vcenters[0].server", credentials.vcenter_server),
            ("platform.vsphere.vcenters[0].user", credentials.username),
            ("platform.vsphere.vcenters[0].password", credentials.password),
            ("platform.vsphere.vcenters[0].datacenters[0]", inventory.datacenter),
        ]
    else:
        writes += [
            ("platform.vsphere.apiVIP", identity.api_vip),
            ("platform.vsphere.ingressVIP", identity.ingress_vip),
            ("platform.vsphere.vCenter", credentials.vcenter_server),
            ("platform.vsphere.username", credentials.username),
            ("platform.vsphere.password", credentials.password),
            ("platform.vsphere.datacenter", inventory.datacenter),
            ("platform.vsphere.defaultDatastore", inventory.datastore_name),
            ("platform.vsphere.cluster", inventory.cluster_path.rsplit("/", 1)[-1]),
            ("platform.vsphere.network", inventory.network_name),
            ("platform.vsphere.folder", inventory.folder_path),
            ("platform.vsphere.resourcePool", inventory.resource_pool_path),
        ]

    worker_replicas = 0 if topology.mode is ClusterMode.COMPACT else topology.worker_count
    writes += [
        ("controlPlane.replicas", topology.master_count),
        ("compute[0].replicas", worker_replicas),
    ]
    for prefix, role in (
        ("controlPlane.platform.vsphere", NodeRole.MASTER),
        ("compute[0].platform.vsphere", NodeRole.WORKER),
    ):
        role_sizing = sizing[role]
        memory_mb = role_sizing.ram_mb
        writes += [
            (f"{prefix}.cpus", role_sizing.cpu),
            (f"{prefix}.memoryMB", memory_mb),
            (f"{prefix}.osDisk.diskSizeGB", role_sizing.disk_gb),
        ]
    writes += [
        ("pullSecret", credentials.pull_secret),
        ("sshKey", credentials.ssh_key),
    ]
    return writes


def _unused_path(path: Path) -> Path:
    """Return ``path``, or ``path-N`` for the first ``N`` not already taken.

    Backup names only resolve to the second, so a rerun within the same
    second must not overwrite an earlier backup.
    """
    candidate = path
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}-{counter}")
        counter += 1
    return candidate


def timestamp(now: datetime | None = None) -> str:
    """Return the backup suffix timestamp, e.g. ``20250102-030405``."""
    return (now or datetime.now()).strftime(TIMESTAMP_FORMAT)


def project_install_config(
    template: Path,
    install_dir: Path,
    writes: list[tuple[str, Any]],
    *,
    now: datetime | None = None,
    snapshot: bool = True,
) -> ProjectionResult:
    """Copy ``template`` into ``install_dir`` and apply ``writes``.

    Parameters
    ----------
    template : Path
        Installer template to start from.
    install_dir : Path
        Destination directory; created when missing.
    writes : list[tuple[str, Any]]
        Ordered key-path writes from :func:`build_writes`.
    now : datetime | None, optional
        Clock override for the backup timestamp.
    snapshot : bool, optional
        Also leave an ``install-config.yaml.bak.<timestamp>`` copy of the
        result, because ``openshift-install`` consumes the original.

    Returns
    -------
    ProjectionResult
        Paths of the written config and any backups.

    Raises
    ------
    PrerequisiteMissingError
        If the template does not exist. Nothing is written in that case.
    ConfigWriteError
        If a key-path write fails; the config file is left untouched.
    """
    if not template.is_file():
        msg = f"install-config template not found: {template}"
        raise PrerequisiteMissingError(
            msg, remediation="clone the lab preparation repository into your home directory"
        )

    document = ConfigDocument.load(template)
    for key_path, value in writes:
        document.set(key_path, value)
    rendered = document.dump()

    stamp = timestamp(now)
    install_dir.mkdir(parents=True, exist_ok=True)
    config_path = install_dir / CONFIG_FILE_NAME
    previous_backup = None
    if config_path.exists():
        previous_backup = _unused_path(install_dir / f"{CONFIG_FILE_NAME}-old-{stamp}")
        config_path.replace(previous_backup)
        logger.info("Moved previous config to %s", previous_backup)

    config_path.write_text(rendered, encoding="utf-8")
    snapshot_path = None
    if snapshot:
        snapshot_path = _unused_path(install_dir / f"{CONFIG_FILE_NAME}.bak.{stamp}")
        shutil.copy2(config_path, snapshot_path)
    return ProjectionResult(
        config_path=config_path, previous_backup=previous_backup, snapshot=snapshot_path
    )


__all__ = [
    "CONFIG_FILE_NAME",
    "ClusterIdentity",
    "ConfigDocument",
    "InstallCredentials",
    "ProjectionResult",
    "SchemaMode",
    "build_writes",
    "project_install_config",
    "timestamp",
]
