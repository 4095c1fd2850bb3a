#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "plumbum", "PyYAML"]
# ///
"""Prepare an ``install-config.yaml`` for an IPI OpenShift install on vSphere.

This script:
- prompts for vCenter access, inventory names, cluster identity and secrets;
- resolves the cluster topology and per-role sizing;
- copies the installer template into ``~/openshift-install-dir/<lab-id>``,
  moving any previous config aside; and
- writes every field with PyYAML before printing the install command.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from cyclopts import App

from ocp_lab_prep._cli import configure_logging, prompt_connection, run_guarded
from ocp_lab_prep._govc import VSphereConnection
from ocp_lab_prep._install_config import (
    ClusterIdentity,
    InstallCredentials,
    ProjectionResult,
    SchemaMode,
    build_writes,
    project_install_config,
)
from ocp_lab_prep._inventory import (
    InventoryNames,
    InventoryPath,
    derive,
    validate_inventory_name,
    workload_folder,
)
from ocp_lab_prep._prompts import Prompter, prompt_topology, sizing_capture
from ocp_lab_prep._run_context import ProgressTracker
from ocp_lab_prep._state_dump import StateDump, write_dump
from ocp_lab_prep._tooling import IPI_TOOLS, ensure_tools
from ocp_lab_prep._topology import ClusterTopology, NodeRole, NodeSizing, resolve_sizing
from ocp_lab_prep._validators import validate_dns_label, validate_ip_address

DEFAULT_TEMPLATE = (
    Path.home()
    / "RH-Demo-OCP-On-VM-Preparation"
    / "Option-1-Dedicated-DNS"
    / "Files"
    / "IPI-Installer"
    / "install-config.yaml"
)
DEFAULT_INSTALL_ROOT = Path.home() / "openshift-install-dir"
DEFAULT_DUMP_FILE = Path.home() / "script-output-ipi.txt"

app = App(help="Prepare install-config.yaml for an IPI OpenShift install on vSphere.")
logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class IpiInputs:
    """Everything the operator supplied for an IPI config run."""

    connection: VSphereConnection
    inventory: InventoryPath
    identity: ClusterIdentity
    release: str
    topology: ClusterTopology
    sizing: dict[NodeRole, NodeSizing]
    pull_secret: str = field(repr=False)
    ssh_key: str

    @property
    def credentials(self) -> InstallCredentials:
        """Return the credential bundle written into the config."""
        return InstallCredentials(
            vcenter_server=self.connection.server,
            username=self.connection.username,
            password=self.connection.password,
            pull_secret=self.pull_secret,
            ssh_key=self.ssh_key,
        )


def collect_inputs(prompter: Prompter) -> IpiInputs:
    """Prompt for all IPI inputs."""
    print("=== vCenter ===")
    connection = prompt_connection(prompter)
    datacenter = connection.datacenter
    cluster = prompter.ask_validated(
        "Compute cluster name: ",
        lambda raw: validate_inventory_name(raw, datacenter=datacenter, kind="host"),
    )
    folder = prompter.ask_validated(
        "VM folder name under /<dc>/vm/Workloads (e.g. sandbox-r5vnx): ", workload_folder
    )
    datastore = prompter.ask_validated(
        "Datastore name: ",
        lambda raw: validate_inventory_name(raw, datacenter=datacenter, kind="datastore"),
    )
    network = prompter.ask_validated(
        "Network name: ",
        lambda raw: validate_inventory_name(raw, datacenter=datacenter, kind="network"),
    )
    inventory = derive(
        InventoryNames(
            datacenter=datacenter,
            folder=folder,
            datastore=datastore,
            network=network,
            cluster=cluster,
        )
    )

    print("\n=== Cluster identity ===")
    base_domain = prompter.ask_text("Lab base domain (e.g. dynamic.opentlc.com): ", label="domain")
    lab_id = prompter.ask_validated(
        "Lab ID / cluster name (e.g. r5vnx): ", lambda raw: validate_dns_label(raw, label="lab ID")
    )
    api_vip = prompter.ask_validated(
        "API VIP: ", lambda raw: validate_ip_address(raw, label="API VIP")
    )
    ingress_vip = prompter.ask_validated(
        "Apps (ingress) VIP: ", lambda raw: validate_ip_address(raw, label="ingress VIP")
    )
    release = prompter.ask_text("OpenShift release (e.g. 4.16.8): ", label="release")

    print("\n=== Cluster topology ===")
    topology = prompt_topology(prompter)
    sizing = resolve_sizing(topology, sizing_capture(prompter))

    print("\n=== Secrets ===")
    pull_secret = prompter.ask_block(
        "Paste the pull secret, then press Ctrl+D on an empty line:", label="pull secret"
    )
    ssh_key = prompter.ask_ssh_key("SSH public key (single line): ")
    return IpiInputs(
        connection=connection,
        inventory=inventory,
        identity=ClusterIdentity(
            name=lab_id, base_domain=base_domain, api_vip=api_vip, ingress_vip=ingress_vip
        ),
        release=release,
        topology=topology,
        sizing=sizing,
        pull_secret=pull_secret,
        ssh_key=ssh_key,
    )


def install_dir_for(root: Path, inputs: IpiInputs) -> Path:
    """Return the per-lab install directory."""
    return root / inputs.identity.name


def install_command(install_dir: Path) -> str:
    """Return the command that starts the install.

    Examples
    --------
    >>> install_command(Path("/home/ops/openshift-install-dir/r5vnx"))
    'openshift-install create cluster --dir "/home/ops/openshift-install-dir/r5vnx" --log-level=info'
    """
    return f'openshift-install create cluster --dir "{install_dir}" --log-level=info'


def print_plan(inputs: IpiInputs, install_dir: Path) -> None:
    """Show what will be written before confirmation."""
    inv = inputs.inventory
    print("\n=== Plan ===")
    print(f"  Cluster:       {inputs.identity.name}.{inputs.identity.base_domain}")
    print(f"  Compute:       {inv.cluster_path}")
    print(f"  Resource pool: {inv.resource_pool_path}")
    print(f"  Folder:        {inv.folder_path}")
    print(f"  Datastore:     {inv.datastore_path}")
    print(f"  Network:       {inv.network_name}")
    print(f"  Masters:       {inputs.topology.master_count}")
    print(f"  Workers:       {inputs.topology.worker_count}")
    print(f"  Install dir:   {install_dir}")


def build_dump(inputs: IpiInputs, result: ProjectionResult) -> StateDump:
    """Collect the run summary for the dump file."""
    dump = StateDump()
    conn = inputs.connection
    dump.add("vCenter", "VCENTER_SERVER", conn.server)
    dump.add("vCenter", "VCENTER_USERNAME", conn.username)
    dump.add("vCenter", "VCENTER_PASSWORD", conn.password, secret=True)

    inv = inputs.inventory
    dump.add("Paths", "DC_PATH", inv.datacenter_path)
    dump.add("Paths", "CLUSTER_PATH", inv.cluster_path)
    dump.add("Paths", "RESOURCE_POOL_PATH", inv.resource_pool_path)
    dump.add("Paths", "FOLDER_PATH", inv.folder_path)
    dump.add("Paths", "DATASTORE_PATH", inv.datastore_path)
    dump.add("Paths", "NETWORK_PATH", inv.network_path)

    identity = inputs.identity
    dump.add("OpenShift", "LAB_ID", identity.name)
    dump.add("OpenShift", "BASE_DOMAIN", identity.base_domain)
    dump.add("OpenShift", "API_VIP", identity.api_vip)
    dump.add("OpenShift", "APPS_VIP", identity.ingress_vip)
    dump.add("OpenShift", "OCP_RELEASE", inputs.release)
    dump.add("OpenShift", "INSTALL_CONFIG", result.config_path)
    if result.previous_backup is not None:
        dump.add("OpenShift", "PREVIOUS_CONFIG", result.previous_backup)

    topology = inputs.topology
    dump.add("Cluster Topology", "CLUSTER_MODE", topology.mode.value)
    dump.add("Cluster Topology", "MASTER_COUNT", topology.master_count)
    dump.add("Cluster Topology", "WORKER_COUNT", topology.worker_count)
    for role, sizing in inputs.sizing.items():
        prefix = role.value.upper()
        dump.add("VM Sizing", f"{prefix}_CPU", sizing.cpu)
        dump.add("VM Sizing", f"{prefix}_MEMORY_MB", sizing.ram_mb)
        dump.add("VM Sizing", f"{prefix}_OS_DISK_GB", sizing.disk_gb)

    dump.add("Credentials", "PULL_SECRET", inputs.pull_secret, secret=True)
    dump.add("Credentials", "SSH_KEY", inputs.ssh_key)
    return dump


def prepare(
    inputs: IpiInputs,
    template: Path,
    install_dir: Path,
    schema: SchemaMode,
) -> ProjectionResult:
    """Project ``inputs`` onto the template inside ``install_dir``."""
    writes = build_writes(
        inputs.identity,
        inputs.topology,
        inputs.sizing,
        inputs.inventory,
        inputs.credentials,
        schema,
    )
    return project_install_config(template, install_dir, writes)


@app.command()
def main(
    template: Path = DEFAULT_TEMPLATE,
    install_root: Path = DEFAULT_INSTALL_ROOT,
    schema: Literal["failure-domains", "legacy-flat"] = "failure-domains",
    dump_file: Path = DEFAULT_DUMP_FILE,
    dump_secrets: bool = False,
    log_level: str = "WARNING",
) -> int:
    """Write install-config.yaml for an IPI install.

    All cluster inputs are prompted for interactively; the options select the
    template, output locations and the ``platform.vsphere`` schema.
    """
    configure_logging(log_level)
    prompter = Prompter()

    def body(tracker: ProgressTracker) -> int:
        inputs = collect_inputs(prompter)
        install_dir = install_dir_for(install_root, inputs)
        print_plan(inputs, install_dir)
        prompter.confirm_or_abort("\nWrite install-config.yaml? (y/n): ")

        ensure_tools(IPI_TOOLS)
        result = prepare(inputs, template, install_dir, SchemaMode(schema))
        tracker.step_done(f"install-config written to {result.config_path}")
        if result.previous_backup is not None:
            print(f"Previous config moved to {result.previous_backup}")
        if result.snapshot is not None:
            print(f"Backup copy written to {result.snapshot}")

        written = write_dump(dump_file, build_dump(inputs, result), include_secrets=dump_secrets)
        print(f"Summary written to {written}")
        print("\nStart the install with:")
        print(f"  {install_command(install_dir)}")
        return 0

    return run_guarded(body)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
