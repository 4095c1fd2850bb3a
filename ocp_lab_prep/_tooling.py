"""Presence checks and downloads for external tools and the discovery ISO."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from pathlib import Path

from plumbum import CommandNotFound, local

from ocp_lab_prep._commands import CommandContext, run_command
from ocp_lab_prep._lab_errors import PrerequisiteMissingError, RemoteOperationError
from ocp_lab_prep._validators import IsoDownload

logger = logging.getLogger(__name__)

ASSISTED_TOOLS = ("govc", "oc", "helm", "wget")
IPI_TOOLS = ("openshift-install", "govc", "oc", "helm")
ADMIN_TOOLS = ("oc", "htpasswd")

INSTALL_HINTS: dict[str, str] = {
    "govc": (
        "curl -L https://github.com/vmware/govmomi/releases/latest/download/"
        "govc_Linux_x86_64.tar.gz | tar -C ~/.local/bin -xz govc"
    ),
    "oc": (
        "curl -L https://mirror.openshift.com/pub/openshift-v4/clients/ocp/"
        "stable/openshift-client-linux.tar.gz | tar -C ~/.local/bin -xz oc"
    ),
    "openshift-install": (
        "curl -L https://mirror.openshift.com/pub/openshift-v4/clients/ocp/"
        "<release>/openshift-install-linux.tar.gz | tar -C ~/.local/bin -xz openshift-install"
    ),
    "helm": "curl -fsSL https://raw.githubusercontent.com/helm/helm/main/scripts/get-helm-3 | bash",
    "wget": "sudo dnf install -y wget",
    "htpasswd": "sudo dnf install -y httpd-tools",
}


def which(tool: str) -> str | None:
    """Return the path of ``tool`` on ``PATH``, or ``None``."""
    try:
        return str(local.which(tool))
    except CommandNotFound:
        return None


def find_missing(tools: Iterable[str]) -> list[str]:
    """Return the tools that are not on ``PATH``."""
    missing: list[str] = []
    for tool in tools:
        path = which(tool)
        if path is None:
            missing.append(tool)
        else:
            logger.debug("Found %s at %s", tool, path)
    return missing


def ensure_tools(tools: Iterable[str]) -> None:
    """Raise when any of ``tools`` is missing; safe to call repeatedly.

    Raises
    ------
    PrerequisiteMissingError
        Naming every missing tool, with install commands as remediation.
    """
    missing = find_missing(tools)
    if not missing:
        return
    hints = "; ".join(INSTALL_HINTS.get(tool, f"install {tool}") for tool in missing)
    msg = f"required tools not found on PATH: {', '.join(missing)}"
    raise PrerequisiteMissingError(msg, remediation=hints)


def download_iso(download: IsoDownload, directory: Path, *, timeout: int = 3600) -> Path:
    """Fetch the discovery ISO into ``directory`` unless it is already there.

    A ``wget --spider`` request runs first so an expired link fails fast.
    """
    target = directory / download.file_name
    if target.is_file() and target.stat().st_size > 0:
        print(f"ISO already present at {target}; skipping download")
        return target
    directory.mkdir(parents=True, exist_ok=True)
    try:
        run_command("wget", "--spider", "-q", download.url, context=CommandContext(timeout=60))
    except RemoteOperationError as exc:
        msg = f"ISO URL is not reachable: {download.url}"
        raise RemoteOperationError(
            msg, step="download ISO", remediation="copy a fresh wget command from the console"
        ) from exc
    print(f"Downloading ISO to {target} ...")
    partial = target.with_suffix(target.suffix + ".part")
    run_command(
        "wget", "-q", "-O", str(partial), download.url, context=CommandContext(timeout=timeout)
    )
    partial.replace(target)
    return target


__all__ = [
    "ADMIN_TOOLS",
    "ASSISTED_TOOLS",
    "IPI_TOOLS",
    "download_iso",
    "ensure_tools",
    "find_missing",
    "which",
]
