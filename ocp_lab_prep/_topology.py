"""Cluster topology and node sizing resolution.

This module turns the operator's cluster-mode choice, worker count and sizing
answers into an immutable :class:`ClusterTopology`, per-role
:class:`NodeSizing` values and the :class:`NodeSpec` roster consumed by the
provisioning sequencer. Nothing here touches the network or filesystem.
"""

from __future__ import annotations

import enum
from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeAlias

from ocp_lab_prep._lab_errors import RangeError
from ocp_lab_prep._validators import validate_choice, validate_int_in_range

MASTER_COUNT = 3
DEFAULT_WORKER_COUNT = 3
WORKER_COUNT_RANGE = (1, 5)
OS_DISK_GB = 120
DEFAULT_NAME_PREFIX = "demo-ocp-mgmt"


class ClusterMode(enum.Enum):
    """Supported OpenShift topologies."""

    COMPACT = "compact"
    STANDARD = "standard"


class NodeRole(enum.Enum):
    """VM roles within the cluster."""

    MASTER = "master"
    WORKER = "worker"


MODE_CHOICES: dict[str, ClusterMode] = {
    "1": ClusterMode.COMPACT,
    "2": ClusterMode.STANDARD,
}


@dataclass(frozen=True, slots=True)
class ClusterTopology:
    """Node counts for the selected cluster mode.

    Attributes
    ----------
    mode
        Compact (three schedulable masters) or standard.
    master_count
        Always three.
    worker_count
        Zero in compact mode, 1-5 in standard mode.
    """

    mode: ClusterMode
    master_count: int
    worker_count: int

    def __post_init__(self) -> None:
        if self.mode is ClusterMode.COMPACT and self.worker_count != 0:
            msg = "compact clusters cannot have dedicated workers"
            raise ValueError(msg)
        low, high = WORKER_COUNT_RANGE
        if self.mode is ClusterMode.STANDARD and not low <= self.worker_count <= high:
            msg = f"standard clusters need {low}-{high} workers"
            raise ValueError(msg)

    @property
    def roles(self) -> tuple[NodeRole, ...]:
        """Return roles that have at least one node."""
        if self.worker_count:
            return (NodeRole.MASTER, NodeRole.WORKER)
        return (NodeRole.MASTER,)


@dataclass(frozen=True, slots=True)
class NodeSizing:
    """CPU, RAM and disk requested for one role."""

    cpu: int
    ram_gb: int
    disk_gb: int

    @property
    def ram_mb(self) -> int:
        """Return RAM in mebibytes, as vCenter and the installer expect.

        Examples
        --------
        >>> NodeSizing(cpu=4, ram_gb=16, disk_gb=120).ram_mb
        16384
        """
        return self.ram_gb * 1024


ZERO_SIZING = NodeSizing(cpu=0, ram_gb=0, disk_gb=0)


@dataclass(frozen=True, slots=True)
class SizingRange:
    """Inclusive bounds for each sizing field of a role."""

    cpu: tuple[int, int]
    ram_gb: tuple[int, int]
    disk_gb: tuple[int, int]


SizingKey: TypeAlias = tuple[ClusterMode, NodeRole]

DEFAULT_SIZING: dict[SizingKey, NodeSizing] = {
    (ClusterMode.COMPACT, NodeRole.MASTER): NodeSizing(cpu=12, ram_gb=32, disk_gb=250),
    (ClusterMode.STANDARD, NodeRole.MASTER): NodeSizing(cpu=4, ram_gb=16, disk_gb=120),
    (ClusterMode.STANDARD, NodeRole.WORKER): NodeSizing(cpu=8, ram_gb=32, disk_gb=200),
}

SIZING_RANGES: dict[SizingKey, SizingRange] = {
    (ClusterMode.COMPACT, NodeRole.MASTER): SizingRange(
        cpu=(12, 16), ram_gb=(24, 48), disk_gb=(120, 250)
    ),
    (ClusterMode.STANDARD, NodeRole.MASTER): SizingRange(
        cpu=(4, 8), ram_gb=(12, 24), disk_gb=(120, 200)
    ),
    (ClusterMode.STANDARD, NodeRole.WORKER): SizingRange(
        cpu=(8, 16), ram_gb=(16, 48), disk_gb=(120, 250)
    ),
}


def resolve_topology(mode_choice: str, worker_count_input: str | None = None) -> ClusterTopology:
    """Resolve the cluster topology from the operator's selections.

    Parameters
    ----------
    mode_choice : str
        ``"1"`` for compact or ``"2"`` for standard.
    worker_count_input : str | None, optional
        Raw worker count answer. Ignored for compact clusters; blank or
        ``None`` selects the default of three workers.

    Returns
    -------
    ClusterTopology
        The resolved, immutable topology.

    Raises
    ------
    InvalidChoiceError
        If ``mode_choice`` is not a known selector.
    RangeError, FormatError
        If a supplied worker count is not an integer in 1-5.

    Examples
    --------
    >>> resolve_topology("1", "4").worker_count
    0
    >>> resolve_topology("2", "").worker_count
    3
    """
    mode = MODE_CHOICES[validate_choice(mode_choice, tuple(MODE_CHOICES))]
    if mode is ClusterMode.COMPACT:
        return ClusterTopology(mode=mode, master_count=MASTER_COUNT, worker_count=0)

    raw = (worker_count_input or "").strip()
    if not raw:
        workers = DEFAULT_WORKER_COUNT
    else:
        workers = validate_int_in_range(raw, *WORKER_COUNT_RANGE)
    return ClusterTopology(mode=mode, master_count=MASTER_COUNT, worker_count=workers)


def second_disk_required(mode: ClusterMode, role: NodeRole) -> bool:
    """Return whether VMs of ``role`` get a separate data disk.

    Compact masters host workloads, so they get one; in standard clusters
    only the workers do.
    """
    return mode is ClusterMode.COMPACT or role is NodeRole.WORKER


@dataclass(frozen=True, slots=True)
class SizingRequest:
    """What the sizing capture callback needs to ask about one role."""

    mode: ClusterMode
    role: NodeRole
    defaults: NodeSizing
    ranges: SizingRange


SizingCapture: TypeAlias = Callable[[SizingRequest], NodeSizing | None]


def resolve_sizing(
    topology: ClusterTopology,
    capture: SizingCapture,
    *,
    defaults_table: dict[SizingKey, NodeSizing] | None = None,
    ranges_table: dict[SizingKey, SizingRange] | None = None,
) -> dict[NodeRole, NodeSizing]:
    """Resolve the sizing for every role in ``topology``.

    ``capture`` is called once per role that has nodes. It returns ``None``
    to accept the defaults, or a complete, already-confirmed
    :class:`NodeSizing` override. Partial overrides are not representable:
    the capture step restarts a role from scratch when the operator changes
    their mind. Worker sizing is zero-filled in compact mode without asking.
    """
    defaults = defaults_table or DEFAULT_SIZING
    ranges = ranges_table or SIZING_RANGES
    resolved: dict[NodeRole, NodeSizing] = {}
    for role in NodeRole:
        if role not in topology.roles:
            resolved[role] = ZERO_SIZING
            continue
        key = (topology.mode, role)
        request = SizingRequest(
            mode=topology.mode, role=role, defaults=defaults[key], ranges=ranges[key]
        )
        override = capture(request)
        sizing = request.defaults if override is None else override
        _check_within(sizing, request.ranges, role)
        resolved[role] = sizing
    return resolved


def _check_within(sizing: NodeSizing, ranges: SizingRange, role: NodeRole) -> None:
    for field_name in ("cpu", "ram_gb", "disk_gb"):
        low, high = getattr(ranges, field_name)
        value = getattr(sizing, field_name)
        if not low <= value <= high:
            msg = f"{role.value} {field_name}={value} is outside {low}-{high}"
            raise RangeError(msg)


@dataclass(frozen=True, slots=True)
class NodeSpec:
    """One VM to create in the assisted-installer flow.

    ``os_disk_gb`` is always :data:`OS_DISK_GB`; the role's requested disk size
    becomes ``second_disk_gb`` when the role needs a data disk.
    """

    name: str
    role: NodeRole
    cpu: int
    ram_gb: int
    os_disk_gb: int = OS_DISK_GB
    second_disk_gb: int | None = None

    @property
    def ram_mb(self) -> int:
        """Return RAM in mebibytes."""
        return self.ram_gb * 1024

    @property
    def second_disk_required(self) -> bool:
        """Return whether a data disk is attached."""
        return self.second_disk_gb is not None


def node_name(prefix: str, role: NodeRole, index: int) -> str:
    """Return the deterministic VM name.

    Examples
    --------
    >>> node_name("demo-ocp-mgmt", NodeRole.WORKER, 2)
    'demo-ocp-mgmt-worker-02'
    """
    return f"{prefix}-{role.value}-0{index}"


def build_node_specs(
    topology: ClusterTopology,
    sizing: dict[NodeRole, NodeSizing],
    *,
    prefix: str = DEFAULT_NAME_PREFIX,
) -> list[NodeSpec]:
    """Return masters then workers, numbered from one."""
    counts = {NodeRole.MASTER: topology.master_count, NodeRole.WORKER: topology.worker_count}
    specs: list[NodeSpec] = []
    for role in NodeRole:
        role_sizing = sizing[role]
        data_disk = (
            role_sizing.disk_gb if second_disk_required(topology.mode, role) else None
        )
        specs.extend(
            NodeSpec(
                name=node_name(prefix, role, index),
                role=role,
                cpu=role_sizing.cpu,
                ram_gb=role_sizing.ram_gb,
                second_disk_gb=data_disk,
            )
            for index in range(1, counts[role] + 1)
        )
    return specs


__all__ = [
    "DEFAULT_SIZING",
    "MASTER_COUNT",
    "OS_DISK_GB",
    "SIZING_RANGES",
    "ZERO_SIZING",
    "ClusterMode",
    "ClusterTopology",
    "NodeRole",
    "NodeSizing",
    "NodeSpec",
    "SizingRange",
    "SizingRequest",
    "build_node_specs",
    "node_name",
    "resolve_sizing",
    "resolve_topology",
    "second_disk_required",
]
