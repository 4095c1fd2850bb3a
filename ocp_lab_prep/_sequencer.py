"""Ordered VM provisioning for the assisted-installer flow.

Each node walks ``PLANNED -> CREATED -> DISK_CONFIGURED -> BOOT_CONFIGURED ->
POWERED_ON`` through eight govc steps run strictly in order. The default
:class:`FailurePolicy` aborts the whole run on the first failed step; the
``CONTINUE`` policy records the failure and moves on to the next node.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from ocp_lab_prep._inventory import InventoryPath
from ocp_lab_prep._lab_errors import LabPrepError, RemoteOperationError, WaitTimeoutError
from ocp_lab_prep._run_context import ProgressTracker
from ocp_lab_prep._topology import NodeSpec
from ocp_lab_prep._waiting import WaitPolicy, wait_until

logger = logging.getLogger(__name__)

ISO_DATASTORE_FOLDER = "DEMO-LAB-ISO"
DISK_UUID_KEY = "disk.EnableUUID"
MAC_UNAVAILABLE = "N/A"
IP_PENDING = "PENDING"
TEARDOWN_HINT = "python -m ocp_lab_prep.teardown_lab_vms"


class VSphereClient(Protocol):
    """Operations the sequencer needs from vCenter."""

    def vm_exists(self, name: str) -> bool: ...

    def vm_create(
        self,
        name: str,
        *,
        folder: str,
        datastore: str,
        network: str,
        cpu: int,
        memory_mb: int,
        disk_gb: int,
    ) -> None: ...

    def vm_power(self, name: str, *, on: bool, force: bool = False) -> None: ...

    def vm_power_state(self, name: str) -> str | None: ...

    def disk_create(self, vm: str, *, datastore: str, disk_name: str, size_gb: int) -> None: ...

    def set_extra_config(self, vm: str, key: str, value: str) -> None: ...

    def cdrom_add(self, vm: str) -> str: ...

    def cdrom_insert(self, vm: str, *, datastore: str, iso_path: str) -> None: ...

    def device_list(self, vm: str) -> list[str]: ...

    def device_connect(self, vm: str, device: str) -> None: ...

    def datastore_upload(self, *, datastore: str, source: str, destination: str) -> None: ...

    def vm_mac(self, name: str) -> str | None: ...

    def vm_ip(self, name: str, *, wait_seconds: int = 5) -> str | None: ...


class NodeState(enum.Enum):
    """Lifecycle of one VM during a run."""

    PLANNED = "planned"
    CREATED = "created"
    DISK_CONFIGURED = "disk-configured"
    BOOT_CONFIGURED = "boot-configured"
    POWERED_ON = "powered-on"
    FAILED = "failed"


class ProvisionStep(enum.Enum):
    """Per-node govc steps, in execution order."""

    CREATE_VM = "create VM"
    POWER_OFF = "power off"
    ATTACH_DATA_DISK = "attach data disk"
    ENABLE_DISK_UUID = "enable disk UUID"
    ADD_CDROM = "add CD-ROM"
    INSERT_ISO = "insert ISO"
    CONNECT_CDROM = "connect CD-ROM"
    POWER_ON = "power on"


class FailurePolicy(enum.Enum):
    """What to do when a node step fails."""

    ABORT_RUN = "abort-run"
    CONTINUE = "continue"


@dataclass(frozen=True, slots=True)
class BootMedia:
    """Discovery ISO on local disk and its target path in the datastore."""

    local_path: Path

    @property
    def datastore_path(self) -> str:
        """Return ``DEMO-LAB-ISO/<file>``."""
        return f"{ISO_DATASTORE_FOLDER}/{self.local_path.name}"


@dataclass(slots=True)
class NodeOutcome:
    """Result of provisioning one node."""

    spec: NodeSpec
    state: NodeState = NodeState.PLANNED
    failed_step: ProvisionStep | None = None
    error: str | None = None
    steps: list[ProvisionStep] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class NodeNetwork:
    """Advisory network identity shown to the operator."""

    name: str
    mac: str
    ip: str


@dataclass(slots=True)
class ProvisioningReport:
    """Outcome of a sequencer run."""

    outcomes: list[NodeOutcome] = field(default_factory=list)

    @property
    def failed(self) -> list[NodeOutcome]:
        """Return outcomes that ended in ``FAILED``."""
        return [item for item in self.outcomes if item.state is NodeState.FAILED]

    @property
    def provisioned(self) -> list[NodeOutcome]:
        """Return outcomes that reached ``POWERED_ON``."""
        return [item for item in self.outcomes if item.state is NodeState.POWERED_ON]


_STATE_AFTER: dict[ProvisionStep, NodeState] = {
    ProvisionStep.CREATE_VM: NodeState.CREATED,
    ProvisionStep.ENABLE_DISK_UUID: NodeState.DISK_CONFIGURED,
    ProvisionStep.CONNECT_CDROM: NodeState.BOOT_CONFIGURED,
    ProvisionStep.POWER_ON: NodeState.POWERED_ON,
}


class ProvisioningSequencer:
    """Runs the upload, per-node and post-loop provisioning steps."""

    def __init__(
        self,
        client: VSphereClient,
        inventory: InventoryPath,
        boot_media: BootMedia,
        *,
        policy: FailurePolicy = FailurePolicy.ABORT_RUN,
        tracker: ProgressTracker | None = None,
        power_wait: WaitPolicy | None = None,
        ip_wait: WaitPolicy | None = None,
        sleep: Callable[[float], object] | None = None,
    ) -> None:
        self.client = client
        self.inventory = inventory
        self.boot_media = boot_media
        self.policy = policy
        self.tracker = tracker or ProgressTracker()
        self.power_wait = power_wait or WaitPolicy(timeout=60, interval=1)
        self.ip_wait = ip_wait or WaitPolicy(timeout=120, interval=5)
        self._sleep = sleep

    def check_no_existing(self, specs: Iterable[NodeSpec]) -> None:
        """Refuse to start when any planned VM name is already taken."""
        taken = [spec.name for spec in specs if self.client.vm_exists(spec.name)]
        if taken:
            msg = f"VMs already exist: {', '.join(taken)}"
            raise RemoteOperationError(msg, step="preflight", remediation=TEARDOWN_HINT)

    def upload_boot_media(self) -> None:
        """Upload the discovery ISO to ``DEMO-LAB-ISO/<file>``; no retry."""
        destination = self.boot_media.datastore_path
        print(f"Uploading {self.boot_media.local_path.name} to {destination} ...")
        try:
            self.client.datastore_upload(
                datastore=self.inventory.datastore_path,
                source=str(self.boot_media.local_path),
                destination=destination,
            )
        except RemoteOperationError as exc:
            msg = f"ISO upload to {self.inventory.datastore_path} failed: {exc}"
            raise RemoteOperationError(msg, step="upload ISO") from exc
        self.tracker.step_done(f"ISO uploaded to {destination}")

    def run(self, specs: list[NodeSpec]) -> ProvisioningReport:
        """Provision every node in order.

        Under ``ABORT_RUN`` the first failure is raised immediately and later
        nodes are never started; under ``CONTINUE`` failures are collected in
        the returned report.
        """
        report = ProvisioningReport(outcomes=[NodeOutcome(spec=spec) for spec in specs])
        for outcome in report.outcomes:
            self.tracker.node_state(outcome.spec.name, outcome.state.value)
        for outcome in report.outcomes:
            print(f"\n--- Creating {outcome.spec.name} ---")
            try:
                self.provision_node(outcome)
            except LabPrepError as exc:
                if self.policy is FailurePolicy.ABORT_RUN:
                    raise
                logger.warning("Continuing after %s failed: %s", outcome.spec.name, exc)
                print(f"error: {exc}")
        return report

    def provision_node(self, outcome: NodeOutcome) -> None:
        """Run the eight steps for one node, updating ``outcome`` as it goes."""
        spec = outcome.spec
        for step in self._steps_for(spec):
            try:
                self._execute(step, spec)
            except LabPrepError as exc:
                outcome.state = NodeState.FAILED
                outcome.failed_step = step
                outcome.error = str(exc)
                self.tracker.node_state(spec.name, f"failed at {step.value}")
                msg = f"{spec.name}: {step.value} failed: {exc}"
                raise RemoteOperationError(
                    msg, node=spec.name, step=step.value, remediation=exc.remediation
                ) from exc
            outcome.steps.append(step)
            if step in _STATE_AFTER:
                outcome.state = _STATE_AFTER[step]
                self.tracker.node_state(spec.name, outcome.state.value)
        print(f"{spec.name} powered on")

    @staticmethod
    def _steps_for(spec: NodeSpec) -> list[ProvisionStep]:
        steps = list(ProvisionStep)
        if not spec.second_disk_required:
            steps.remove(ProvisionStep.ATTACH_DATA_DISK)
        return steps

    def _execute(self, step: ProvisionStep, spec: NodeSpec) -> None:
        client = self.client
        name = spec.name
        match step:
            case ProvisionStep.CREATE_VM:
                client.vm_create(
                    name,
                    folder=self.inventory.folder_path,
                    datastore=self.inventory.datastore_path,
                    network=self.inventory.network_path,
                    cpu=spec.cpu,
                    memory_mb=spec.ram_mb,
                    disk_gb=spec.os_disk_gb,
                )
            case ProvisionStep.POWER_OFF:
                try:
                    client.vm_power(name, on=False, force=True)
                except RemoteOperationError as exc:
                    logger.info("Power off of %s ignored: %s", name, exc)
                self._wait_power(name, "poweredOff")
            case ProvisionStep.ATTACH_DATA_DISK:
                client.disk_create(
                    name,
                    datastore=self.inventory.datastore_path,
                    disk_name=f"{name}-data.vmdk",
                    size_gb=spec.second_disk_gb or 0,
                )
            case ProvisionStep.ENABLE_DISK_UUID:
                client.set_extra_config(name, DISK_UUID_KEY, "TRUE")
            case ProvisionStep.ADD_CDROM:
                client.cdrom_add(name)
            case ProvisionStep.INSERT_ISO:
                client.cdrom_insert(
                    name,
                    datastore=self.inventory.datastore_name,
                    iso_path=self.boot_media.datastore_path,
                )
            case ProvisionStep.CONNECT_CDROM:
                client.device_connect(name, self._find_cdrom(name))
            case ProvisionStep.POWER_ON:
                client.vm_power(name, on=True)
                self._wait_power(name, "poweredOn")

    def _find_cdrom(self, name: str) -> str:
        for device in self.client.device_list(name):
            if device.startswith("cdrom-"):
                return device
        msg = f"no CD-ROM device found on {name}"
        raise RemoteOperationError(msg)

    def _wait_power(self, name: str, expected: str) -> None:
        wait_until(
            lambda: self.client.vm_power_state(name) == expected,
            self.power_wait,
            description=f"{name} to report {expected}",
            cancel=self.tracker.cancel,
            sleep=self._sleep,
        )

    def collect_network_identity(self, report: ProvisioningReport) -> list[NodeNetwork]:
        """Fetch MAC and IP for powered-on nodes; never fails the run."""
        identities: list[NodeNetwork] = []
        for outcome in report.provisioned:
            name = outcome.spec.name
            mac = self.client.vm_mac(name) or MAC_UNAVAILABLE
            try:
                ip = wait_until(
                    lambda name=name: self.client.vm_ip(name),
                    self.ip_wait,
                    description=f"an IP address on {name}",
                    cancel=self.tracker.cancel,
                    sleep=self._sleep,
                )
            except WaitTimeoutError:
                logger.info("No IP reported for %s yet", name)
                ip = IP_PENDING
            identities.append(NodeNetwork(name=name, mac=mac, ip=ip))
        return identities


__all__ = [
    "ISO_DATASTORE_FOLDER",
    "BootMedia",
    "FailurePolicy",
    "NodeNetwork",
    "NodeOutcome",
    "NodeState",
    "ProvisionStep",
    "ProvisioningReport",
    "ProvisioningSequencer",
    "VSphereClient",
]
