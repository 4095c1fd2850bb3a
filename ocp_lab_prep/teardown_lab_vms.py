#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "plumbum"]
# ///
"""Power off and delete the lab VMs in a vCenter folder, keeping the bastion."""

from __future__ import annotations

import logging
from typing import Protocol

from cyclopts import App

from ocp_lab_prep._cli import configure_logging, prompt_connection, run_guarded
from ocp_lab_prep._govc import GovcClient
from ocp_lab_prep._inventory import parse_vm_folder_path
from ocp_lab_prep._lab_errors import RemoteOperationError
from ocp_lab_prep._prompts import Prompter
from ocp_lab_prep._run_context import ProgressTracker
from ocp_lab_prep._sequencer import VSphereClient
from ocp_lab_prep._waiting import WaitPolicy, wait_until

BASTION_MARKER = "bastion"

app = App(help="Delete the OpenShift lab VMs in a vCenter folder.")
logger = logging.getLogger(__name__)


class TeardownClient(VSphereClient, Protocol):
    """Adds the listing and destroy calls teardown needs."""

    def list_folder(self, folder: str) -> list[str]: ...

    def vm_destroy(self, name: str) -> None: ...


def partition_vms(names: list[str]) -> tuple[list[str], list[str]]:
    """Split ``names`` into ``(targets, kept)``; bastion hosts are kept.

    Examples
    --------
    >>> partition_vms(["demo-ocp-mgmt-master-01", "bastion-r5vnx"])
    (['demo-ocp-mgmt-master-01'], ['bastion-r5vnx'])
    """
    targets = [name for name in names if BASTION_MARKER not in name.lower()]
    kept = [name for name in names if BASTION_MARKER in name.lower()]
    return targets, kept


def destroy_vms(
    client: TeardownClient,
    names: list[str],
    tracker: ProgressTracker,
    *,
    power_wait: WaitPolicy | None = None,
) -> None:
    """Power off and destroy each VM; a failed destroy stops the run."""
    policy = power_wait or WaitPolicy(timeout=60, interval=1)
    for name in names:
        print(f"Stopping {name} ...")
        try:
            client.vm_power(name, on=False, force=True)
        except RemoteOperationError as exc:
            logger.info("Power off of %s ignored: %s", name, exc)
        wait_until(
            lambda name=name: client.vm_power_state(name) != "poweredOn",
            policy,
            description=f"{name} to power off",
            cancel=tracker.cancel,
        )
        print(f"Deleting {name} ...")
        try:
            client.vm_destroy(name)
        except RemoteOperationError as exc:
            msg = f"deleting {name} failed: {exc}"
            raise RemoteOperationError(
                msg, node=name, step="destroy", remediation=f"govc vm.destroy {name}"
            ) from exc
        tracker.step_done(f"deleted {name}")


def teardown_folder(
    client: TeardownClient,
    folder_path: str,
    prompter: Prompter,
    tracker: ProgressTracker,
) -> int:
    """List, confirm and delete the non-bastion VMs under ``folder_path``.

    Raises
    ------
    RemoteOperationError
        If the folder holds no VMs at all, or a delete fails.
    OperatorAbort
        If the operator declines the confirmation.
    """
    names = client.list_folder(folder_path)
    if not names:
        msg = f"no VMs found in {folder_path}"
        raise RemoteOperationError(msg)
    targets, kept = partition_vms(names)
    for name in kept:
        print(f"Keeping {name}")
    if not targets:
        print("Nothing to delete.")
        return 0

    print("VMs to delete:")
    for name in targets:
        print(f"  {name}")
    prompter.confirm_or_abort(f"Delete {len(targets)} VM(s)? (y/n): ")
    destroy_vms(client, targets, tracker)
    print("Teardown complete.")
    return 0


@app.command()
def main(log_level: str = "WARNING") -> int:
    """Delete every non-bastion VM in the given folder after confirmation."""
    configure_logging(log_level)
    prompter = Prompter()

    def body(tracker: ProgressTracker) -> int:
        folder = prompter.ask_validated(
            "VM folder full path (e.g. /SDDC-Datacenter/vm/Workloads/sandbox-r5vnx): ",
            parse_vm_folder_path,
        )
        connection = prompt_connection(prompter, datacenter=folder.datacenter)
        folder_path = f"/{folder.datacenter}/vm/{folder.folder}"
        return teardown_folder(GovcClient(connection), folder_path, prompter, tracker)

    return run_guarded(body)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
