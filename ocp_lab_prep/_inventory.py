"""vSphere inventory path derivation.

Paths are composed from operator-supplied names and are never looked up in
vCenter; a wrong name only surfaces when a later govc call fails.
"""

from __future__ import annotations

from dataclasses import dataclass

from ocp_lab_prep._lab_errors import FormatError
from ocp_lab_prep._validators import validate_non_empty

WORKLOADS_FOLDER = "Workloads"


@dataclass(frozen=True, slots=True)
class InventoryNames:
    """Bare object names as typed by the operator.

    ``cluster`` is optional because the assisted-installer flow never needs a
    compute cluster path; ``folder`` is relative to ``/<dc>/vm``.
    """

    datacenter: str
    folder: str
    datastore: str
    network: str
    cluster: str | None = None


@dataclass(frozen=True, slots=True)
class InventoryPath:
    """Canonical inventory paths, all rooted at ``datacenter_path``."""

    datacenter: str
    datacenter_path: str
    folder_path: str
    datastore_path: str
    network_path: str
    cluster_path: str | None = None
    resource_pool_path: str | None = None
    datastore_name: str = ""
    network_name: str = ""


def derive(names: InventoryNames) -> InventoryPath:
    """Compose inventory paths from bare names.

    Each name may also be given as a full path under its datacenter, such as
    ``/DC1/datastore/ds1``; anything else containing ``/`` is rejected.

    Examples
    --------
    >>> paths = derive(InventoryNames("DC1", "Workloads/lab", "ds1", "net1", "C1"))
    >>> paths.resource_pool_path
    '/DC1/host/C1/Resources'
    >>> paths.folder_path
    '/DC1/vm/Workloads/lab'
    """
    datacenter = _segment(names.datacenter, "datacenter")
    folder = "/".join(
        _segment(part, "folder")
        for part in _relative(names.folder, datacenter, "vm").split("/")
    )
    datastore = validate_inventory_name(names.datastore, datacenter=datacenter, kind="datastore")
    network = validate_inventory_name(names.network, datacenter=datacenter, kind="network")

    dc_path = f"/{datacenter}"
    cluster_path = None
    resource_pool_path = None
    if names.cluster is not None:
        cluster = validate_inventory_name(names.cluster, datacenter=datacenter, kind="host")
        cluster_path = f"{dc_path}/host/{cluster}"
        resource_pool_path = f"{cluster_path}/Resources"
    return InventoryPath(
        datacenter=datacenter,
        datacenter_path=dc_path,
        folder_path=f"{dc_path}/vm/{folder}",
        datastore_path=f"{dc_path}/datastore/{datastore}",
        network_path=f"{dc_path}/network/{network}",
        cluster_path=cluster_path,
        resource_pool_path=resource_pool_path,
        datastore_name=datastore,
        network_name=network,
    )


def _relative(value: str, datacenter: str, kind: str) -> str:
    """Strip a leading ``/<datacenter>/<kind>/`` so full paths are accepted too."""
    prefix = f"/{datacenter}/{kind}/"
    candidate = value.strip()
    if candidate.startswith(prefix):
        return candidate[len(prefix) :]
    return candidate.strip("/")


def _segment(value: str, label: str) -> str:
    name = validate_non_empty(value, label=label).strip("/")
    if not name or "/" in name:
        msg = f"{label} must be a single name, not a path: {value!r}"
        raise FormatError(msg)
    return name


_KIND_LABELS = {"datastore": "datastore", "network": "network", "host": "cluster"}


def validate_inventory_name(value: str, *, datacenter: str, kind: str) -> str:
    """Return the bare name of a ``datastore``, ``network`` or ``host`` object.

    ``value`` may be the bare name or the full ``/<datacenter>/<kind>/<name>``
    path; nested names and paths under another datacenter are rejected.

    Examples
    --------
    >>> validate_inventory_name("/DC1/host/C1", datacenter="DC1", kind="host")
    'C1'
    """
    return _segment(_relative(value, datacenter, kind), _KIND_LABELS[kind])


@dataclass(frozen=True, slots=True)
class VmFolderPath:
    """Components of a full VM folder path."""

    datacenter: str
    folder: str


def parse_vm_folder_path(value: str) -> VmFolderPath:
    """Split a full VM folder path into its datacenter and folder parts.

    The expected shape is exactly ``/<datacenter>/vm/Workloads/<folder>``, for
    example ``/SDDC-Datacenter/vm/Workloads/sandbox-r5vnx``. Anything else
    raises instead of producing a malformed path.

    Raises
    ------
    FormatError
        If the path does not have that shape.

    Examples
    --------
    >>> parse_vm_folder_path("/SDDC-Datacenter/vm/Workloads/sandbox-r5vnx")
    VmFolderPath(datacenter='SDDC-Datacenter', folder='Workloads/sandbox-r5vnx')
    """
    raw = validate_non_empty(value, label="VM folder path")
    expected = f"/<datacenter>/vm/{WORKLOADS_FOLDER}/<folder>"
    if not raw.startswith("/"):
        msg = f"VM folder path must be absolute, like {expected}"
        raise FormatError(msg)
    parts = raw.rstrip("/").split("/")[1:]
    if (
        len(parts) != 4
        or not all(parts)
        or parts[1] != "vm"
        or parts[2] != WORKLOADS_FOLDER
    ):
        msg = f"VM folder path {raw!r} does not match {expected}"
        raise FormatError(msg)
    return VmFolderPath(datacenter=parts[0], folder=f"{WORKLOADS_FOLDER}/{parts[3]}")


def workload_folder(name: str) -> str:
    """Return the folder relative to ``/<dc>/vm`` for a bare workload folder name."""
    return f"{WORKLOADS_FOLDER}/{_segment(name, 'folder')}"


__all__ = [
    "InventoryNames",
    "InventoryPath",
    "VmFolderPath",
    "derive",
    "parse_vm_folder_path",
    "validate_inventory_name",
    "workload_folder",
]
