"""Unit tests for the VM provisioning sequencer."""

from __future__ import annotations

from pathlib import Path

import pytest

from ocp_lab_prep._inventory import InventoryNames, derive
from ocp_lab_prep._lab_errors import RemoteOperationError, WaitTimeoutError
from ocp_lab_prep._run_context import ProgressTracker
from ocp_lab_prep._sequencer import (
    BootMedia,
    FailurePolicy,
    NodeState,
    ProvisioningSequencer,
    ProvisionStep,
)
from ocp_lab_prep._topology import (
    NodeRole,
    NodeSizing,
    NodeSpec,
    build_node_specs,
    resolve_sizing,
    resolve_topology,
)
from ocp_lab_prep._waiting import WaitPolicy
from ocp_lab_prep.tests._fakes import FakeGovc

FULL_SEQUENCE = [
    "vm_create",
    "vm_power_off",
    "disk_create",
    "set_extra_config",
    "cdrom_add",
    "cdrom_insert",
    "device_connect",
    "vm_power_on",
]


def _inventory():
    return derive(
        InventoryNames(
            datacenter="SDDC-Datacenter",
            folder="Workloads/sandbox-r5vnx",
            datastore="WorkloadDatastore",
            network="segment-sandbox",
        )
    )


def _specs(mode: str, workers: str = "") -> list[NodeSpec]:
    topology = resolve_topology(mode, workers)
    return build_node_specs(topology, resolve_sizing(topology, lambda _request: None))


def _sequencer(
    client: FakeGovc,
    *,
    policy: FailurePolicy = FailurePolicy.ABORT_RUN,
    tracker: ProgressTracker | None = None,
) -> ProvisioningSequencer:
    return ProvisioningSequencer(
        client,
        _inventory(),
        BootMedia(local_path=Path("/isos/discovery.iso")),
        policy=policy,
        tracker=tracker,
        power_wait=WaitPolicy(timeout=1, interval=0.01),
        ip_wait=WaitPolicy(timeout=0.05, interval=0.01),
        sleep=lambda _seconds: None,
    )


def test_compact_nodes_run_every_step_in_order(fake_govc: FakeGovc) -> None:
    specs = _specs("1")
    report = _sequencer(fake_govc).run(specs)

    for spec in specs:
        assert fake_govc.methods_for(spec.name) == FULL_SEQUENCE
    assert [outcome.state for outcome in report.outcomes] == [NodeState.POWERED_ON] * 3
    assert report.failed == []


def test_standard_masters_skip_data_disk(fake_govc: FakeGovc) -> None:
    specs = _specs("2", "1")
    _sequencer(fake_govc).run(specs)

    master, worker = specs[0], specs[-1]
    assert "disk_create" not in fake_govc.methods_for(master.name)
    assert fake_govc.methods_for(worker.name) == FULL_SEQUENCE


def test_disks_keep_fixed_os_size_and_requested_data_size(fake_govc: FakeGovc) -> None:
    spec = NodeSpec(
        name="lab-worker-01", role=NodeRole.WORKER, cpu=8, ram_gb=32, second_disk_gb=240
    )
    _sequencer(fake_govc).run([spec])
    assert fake_govc.disks["lab-worker-01"] == [("os", 120), ("lab-worker-01-data.vmdk", 240)]


def test_failure_at_data_disk_aborts_whole_run(fake_govc: FakeGovc) -> None:
    specs = _specs("1")
    first = specs[0].name
    fake_govc.fail_on = {("disk_create", first)}

    with pytest.raises(RemoteOperationError) as excinfo:
        _sequencer(fake_govc).run(specs)

    assert excinfo.value.node == first
    assert excinfo.value.step == ProvisionStep.ATTACH_DATA_DISK.value
    assert fake_govc.methods_for(first) == ["vm_create", "vm_power_off", "disk_create"]
    for later in specs[1:]:
        assert fake_govc.methods_for(later.name) == [], "no later node may start"


def test_continue_policy_collects_failures(fake_govc: FakeGovc) -> None:
    specs = _specs("1")
    failing = specs[1].name
    fake_govc.fail_on = {("cdrom_insert", failing)}

    report = _sequencer(fake_govc, policy=FailurePolicy.CONTINUE).run(specs)

    assert [outcome.spec.name for outcome in report.failed] == [failing]
    assert report.failed[0].failed_step is ProvisionStep.INSERT_ISO
    assert report.failed[0].steps[-1] is ProvisionStep.ADD_CDROM
    assert len(report.provisioned) == 2
    assert fake_govc.methods_for(specs[2].name) == FULL_SEQUENCE


def test_power_off_failure_is_ignored(fake_govc: FakeGovc) -> None:
    fake_govc.fail_on = {("vm_power_off", None)}
    report = _sequencer(fake_govc).run(_specs("1"))
    assert len(report.provisioned) == 3


def test_missing_cdrom_device_is_fatal(fake_govc: FakeGovc) -> None:
    fake_govc.devices = ["ide-200", "ethernet-0"]
    specs = _specs("1")
    with pytest.raises(RemoteOperationError, match="CD-ROM") as excinfo:
        _sequencer(fake_govc).run(specs)
    assert excinfo.value.step == ProvisionStep.CONNECT_CDROM.value
    assert "vm_power_on" not in fake_govc.methods_for(specs[0].name)


def test_power_state_timeout_is_fatal(fake_govc: FakeGovc, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(fake_govc, "vm_power_state", lambda _name: "suspended")
    sequencer = _sequencer(fake_govc)
    sequencer.power_wait = WaitPolicy(timeout=0, interval=0.01)
    with pytest.raises(RemoteOperationError) as excinfo:
        sequencer.run(_specs("1"))
    assert isinstance(excinfo.value.__cause__, WaitTimeoutError)
    assert excinfo.value.step == ProvisionStep.POWER_OFF.value


def test_upload_targets_fixed_iso_path(fake_govc: FakeGovc) -> None:
    tracker = ProgressTracker()
    _sequencer(fake_govc, tracker=tracker).upload_boot_media()
    assert fake_govc.calls == [("datastore_upload", "DEMO-LAB-ISO/discovery.iso")]
    assert tracker.completed == ["ISO uploaded to DEMO-LAB-ISO/discovery.iso"]


def test_upload_failure_is_fatal(fake_govc: FakeGovc) -> None:
    fake_govc.fail_on = {("datastore_upload", None)}
    with pytest.raises(RemoteOperationError, match="ISO upload"):
        _sequencer(fake_govc).upload_boot_media()


def test_existing_vms_block_the_run(fake_govc: FakeGovc) -> None:
    specs = _specs("1")
    fake_govc.existing = {specs[0].name}
    with pytest.raises(RemoteOperationError, match=specs[0].name) as excinfo:
        _sequencer(fake_govc).check_no_existing(specs)
    assert excinfo.value.remediation is not None


def test_network_identity_is_best_effort(fake_govc: FakeGovc) -> None:
    specs = _specs("1")
    fake_govc.ips = {specs[0].name: "192.168.10.21"}
    sequencer = _sequencer(fake_govc)
    report = sequencer.run(specs)

    identities = sequencer.collect_network_identity(report)

    assert identities[0].ip == "192.168.10.21"
    assert identities[0].mac == "00:50:56:aa:bb:cc"
    assert [item.ip for item in identities[1:]] == ["PENDING", "PENDING"]


def test_tracker_records_node_states(fake_govc: FakeGovc) -> None:
    tracker = ProgressTracker()
    spec = NodeSpec(name="lab-master-01", role=NodeRole.MASTER, cpu=12, ram_gb=32)
    _sequencer(fake_govc, tracker=tracker).run([spec])
    assert tracker.node_states == {"lab-master-01": NodeState.POWERED_ON.value}


def test_ram_is_passed_in_mebibytes(fake_govc: FakeGovc, monkeypatch: pytest.MonkeyPatch) -> None:
    captured: dict[str, object] = {}
    original = fake_govc.vm_create

    def spy(name: str, **kwargs: object) -> None:
        captured.update(kwargs)
        original(name, **kwargs)

    monkeypatch.setattr(fake_govc, "vm_create", spy)
    sizing = NodeSizing(cpu=4, ram_gb=16, disk_gb=120)
    spec = NodeSpec(
        name="lab-master-01", role=NodeRole.MASTER, cpu=sizing.cpu, ram_gb=sizing.ram_gb
    )
    _sequencer(fake_govc).run([spec])
    assert captured["memory_mb"] == 16384
    assert captured["disk_gb"] == 120
    assert captured["folder"] == "/SDDC-Datacenter/vm/Workloads/sandbox-r5vnx"
