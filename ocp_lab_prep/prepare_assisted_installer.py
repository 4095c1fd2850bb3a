#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "plumbum"]
# ///
"""Create OpenShift lab VMs in vCenter for the Assisted Installer.

This script:
- prompts for vCenter access, the VM folder path and the discovery ISO;
- resolves the cluster topology and per-role sizing;
- downloads the ISO and uploads it to the datastore;
- creates, configures and powers on every VM in order; and
- writes a ``KEY=value`` summary with each VM's MAC and IP.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from cyclopts import App

from ocp_lab_prep._cli import configure_logging, prompt_connection, run_guarded
from ocp_lab_prep._govc import GovcClient, VSphereConnection
from ocp_lab_prep._inventory import (
    InventoryNames,
    InventoryPath,
    derive,
    parse_vm_folder_path,
    validate_inventory_name,
)
from ocp_lab_prep._prompts import Prompter, prompt_topology, sizing_capture
from ocp_lab_prep._run_context import ProgressTracker
from ocp_lab_prep._sequencer import (
    BootMedia,
    FailurePolicy,
    NodeNetwork,
    ProvisioningReport,
    ProvisioningSequencer,
    VSphereClient,
)
from ocp_lab_prep._state_dump import StateDump, write_dump
from ocp_lab_prep._tooling import ASSISTED_TOOLS, download_iso, ensure_tools
from ocp_lab_prep._topology import (
    DEFAULT_NAME_PREFIX,
    ClusterTopology,
    NodeRole,
    NodeSizing,
    NodeSpec,
    build_node_specs,
    resolve_sizing,
)
from ocp_lab_prep._validators import IsoDownload, validate_wget_iso_command

DEFAULT_ISO_DIR = Path.home() / "assisted-installer-iso"
DEFAULT_DUMP_FILE = Path.home() / "script-output.txt"

app = App(help="Create OpenShift lab VMs in vCenter for the Assisted Installer.")
logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AssistedInputs:
    """Everything the operator supplied for an assisted-installer run."""

    connection: VSphereConnection
    inventory: InventoryPath
    release: str
    iso: IsoDownload
    topology: ClusterTopology
    sizing: dict[NodeRole, NodeSizing]


def collect_inputs(prompter: Prompter) -> AssistedInputs:
    """Prompt for all assisted-installer inputs."""
    print("=== vCenter / GOVC ===")
    folder = prompter.ask_validated(
        "VM folder full path (e.g. /SDDC-Datacenter/vm/Workloads/sandbox-r5vnx): ",
        parse_vm_folder_path,
    )
    connection = prompt_connection(prompter, datacenter=folder.datacenter)
    datacenter = folder.datacenter
    datastore = prompter.ask_validated(
        "Datastore name (e.g. WorkloadDatastore): ",
        lambda raw: validate_inventory_name(raw, datacenter=datacenter, kind="datastore"),
    )
    network = prompter.ask_validated(
        "Network name (e.g. segment-sandbox-r5vnx): ",
        lambda raw: validate_inventory_name(raw, datacenter=datacenter, kind="network"),
    )
    inventory = derive(
        InventoryNames(
            datacenter=datacenter,
            folder=folder.folder,
            datastore=datastore,
            network=network,
        )
    )

    print("\n=== OpenShift / ISO ===")
    release = prompter.ask_text("OpenShift release (e.g. 4.16): ", label="release")
    iso = prompter.ask_validated(
        "Paste the discovery ISO wget command: ", validate_wget_iso_command
    )

    print("\n=== Cluster topology ===")
    topology = prompt_topology(prompter)
    sizing = resolve_sizing(topology, sizing_capture(prompter))
    return AssistedInputs(
        connection=connection,
        inventory=inventory,
        release=release,
        iso=iso,
        topology=topology,
        sizing=sizing,
    )


def print_plan(inputs: AssistedInputs, specs: list[NodeSpec]) -> None:
    """Show the inventory paths and the VM roster before confirmation."""
    inv = inputs.inventory
    print("\n=== Plan ===")
    print(f"  Folder:    {inv.folder_path}")
    print(f"  Datastore: {inv.datastore_path}")
    print(f"  Network:   {inv.network_path}")
    print(f"  ISO:       {inputs.iso.file_name}")
    for spec in specs:
        data_disk = f" + {spec.second_disk_gb}G data" if spec.second_disk_required else ""
        print(
            f"  {spec.name}: {spec.cpu} vCPU, {spec.ram_gb} GB RAM, "
            f"{spec.os_disk_gb}G OS{data_disk}"
        )


def build_dump(
    inputs: AssistedInputs,
    iso_path: Path,
    networks: list[NodeNetwork],
) -> StateDump:
    """Collect the run summary for the dump file."""
    dump = StateDump()
    conn = inputs.connection
    section = "vCenter / GOVC"
    dump.add(section, "GOVC_URL", conn.url)
    dump.add(section, "GOVC_USERNAME", conn.username)
    dump.add(section, "GOVC_PASSWORD", conn.password, secret=True)
    dump.add(section, "GOVC_DATACENTER", conn.datacenter)
    dump.add(section, "GOVC_INSECURE", "1" if conn.insecure else "0")

    inv = inputs.inventory
    dump.add("Paths", "DC_NAME", inv.datacenter)
    dump.add("Paths", "FOLDER_PATH", inv.folder_path)
    dump.add("Paths", "DATASTORE_PATH", inv.datastore_path)
    dump.add("Paths", "NETWORK_PATH", inv.network_path)

    dump.add("OpenShift / ISO", "OCP_RELEASE", inputs.release)
    dump.add("OpenShift / ISO", "ISO_URL", inputs.iso.url, secret=True)
    dump.add("OpenShift / ISO", "ISO_LOCAL_PATH", iso_path)
    dump.add("OpenShift / ISO", "ISO_DATASTORE_PATH", BootMedia(iso_path).datastore_path)

    topology = inputs.topology
    dump.add("Cluster Topology", "CLUSTER_MODE", topology.mode.value)
    dump.add("Cluster Topology", "MASTER_COUNT", topology.master_count)
    dump.add("Cluster Topology", "WORKER_COUNT", topology.worker_count)

    for role, sizing in inputs.sizing.items():
        prefix = role.value.upper()
        dump.add("VM Sizing", f"{prefix}_CPU", sizing.cpu)
        dump.add("VM Sizing", f"{prefix}_RAM_GB", sizing.ram_gb)
        dump.add("VM Sizing", f"{prefix}_DISK_GB", sizing.disk_gb)

    for node in networks:
        dump.add("VM List", node.name, f"MAC={node.mac} IP={node.ip}")
    return dump


def provision(
    inputs: AssistedInputs,
    specs: list[NodeSpec],
    boot_media: BootMedia,
    client: VSphereClient,
    *,
    policy: FailurePolicy,
    tracker: ProgressTracker,
) -> tuple[ProvisioningReport, list[NodeNetwork]]:
    """Upload the ISO, provision every VM and read back network identity."""
    sequencer = ProvisioningSequencer(
        client, inputs.inventory, boot_media, policy=policy, tracker=tracker
    )
    sequencer.check_no_existing(specs)
    sequencer.upload_boot_media()
    report = sequencer.run(specs)
    print("\nWaiting for VMs to report network details ...")
    return report, sequencer.collect_network_identity(report)


def print_vm_table(networks: list[NodeNetwork]) -> None:
    """Print the name/MAC/IP table."""
    print(f"\n{'VM':<32} {'MAC':<20} IP")
    for node in networks:
        print(f"{node.name:<32} {node.mac:<20} {node.ip}")


@app.command()
def main(
    iso_dir: Path = DEFAULT_ISO_DIR,
    dump_file: Path = DEFAULT_DUMP_FILE,
    dump_secrets: bool = False,
    failure_policy: Literal["abort-run", "continue"] = "abort-run",
    name_prefix: str = DEFAULT_NAME_PREFIX,
    log_level: str = "WARNING",
) -> int:
    """Create and boot the lab VMs.

    All cluster inputs are prompted for interactively; the options only
    tune where artefacts go and how failures are handled.
    """
    configure_logging(log_level)
    prompter = Prompter()

    def body(tracker: ProgressTracker) -> int:
        inputs = collect_inputs(prompter)
        specs = build_node_specs(inputs.topology, inputs.sizing, prefix=name_prefix)
        print_plan(inputs, specs)
        prompter.confirm_or_abort("\nProceed with VM creation? (y/n): ")

        ensure_tools(ASSISTED_TOOLS)
        iso_path = download_iso(inputs.iso, iso_dir)
        tracker.step_done(f"ISO available at {iso_path}")
        report, networks = provision(
            inputs,
            specs,
            BootMedia(local_path=iso_path),
            GovcClient(inputs.connection),
            policy=FailurePolicy(failure_policy),
            tracker=tracker,
        )

        written = write_dump(
            dump_file, build_dump(inputs, iso_path, networks), include_secrets=dump_secrets
        )
        print_vm_table(networks)
        print(f"\nSummary written to {written}")
        if report.failed:
            names = ", ".join(item.spec.name for item in report.failed)
            print(f"error: VMs failed to provision: {names}")
            return 1
        print("\nAll VMs are powered on. Continue in the Assisted Installer console.")
        return 0

    return run_guarded(body)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
