"""govc client bound to an explicit vCenter connection.

Credentials travel in a :class:`VSphereConnection` value and are turned into
the ``GOVC_*`` environment for each invocation; nothing is exported into the
caller's process environment.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field

from ocp_lab_prep._commands import CommandContext, run_command
from ocp_lab_prep._lab_errors import RemoteOperationError

logger = logging.getLogger(__name__)

_MAC_PATTERN = re.compile(r"MAC Address:\s*(\S+)")
_POWER_PATTERN = re.compile(r"Power state:\s*(\S+)")


@dataclass(frozen=True, slots=True)
class VSphereConnection:
    """vCenter endpoint and login.

    Examples
    --------
    >>> conn = VSphereConnection("https://vc.lab", "ops", "pw", "DC1")
    >>> conn.govc_env(base={})["GOVC_INSECURE"]
    '1'
    >>> "pw" in repr(conn)
    False
    """

    url: str
    username: str
    password: str = field(repr=False)
    datacenter: str
    insecure: bool = True

    @property
    def server(self) -> str:
        """Return the bare host name, as the installer config expects it."""
        return re.sub(r"^https?://", "", self.url).split("/", 1)[0]

    def govc_env(self, base: dict[str, str] | None = None) -> dict[str, str]:
        """Return the environment for a govc subprocess."""
        env = dict(os.environ if base is None else base)
        env.update(
            {
                "GOVC_URL": self.url,
                "GOVC_USERNAME": self.username,
                "GOVC_PASSWORD": self.password,
                "GOVC_DATACENTER": self.datacenter,
                "GOVC_INSECURE": "1" if self.insecure else "0",
            }
        )
        return env


class GovcClient:
    """Typed wrappers for the govc sub-commands the lab tooling needs."""

    def __init__(self, connection: VSphereConnection, *, timeout: int | None = 600) -> None:
        self.connection = connection
        self.timeout = timeout

    def _run(self, *args: str) -> str:
        context = CommandContext(env=self.connection.govc_env(), timeout=self.timeout)
        return run_command("govc", *args, context=context)

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
    ) -> None:
        """Create a powered-off VM shell with one OS disk and one NIC."""
        self._run(
            "vm.create",
            "-on=false",
            f"-folder={folder}",
            f"-ds={datastore}",
            f"-net={network}",
            f"-c={cpu}",
            f"-m={memory_mb}",
            f"-disk={disk_gb}G",
            name,
        )

    def vm_power(self, name: str, *, on: bool, force: bool = False) -> None:
        """Power ``name`` on or off."""
        args = ["vm.power", "-on" if on else "-off"]
        if force:
            args.append("-force")
        self._run(*args, name)

    def vm_power_state(self, name: str) -> str | None:
        """Return ``poweredOn``/``poweredOff``/``suspended`` or ``None`` when unknown."""
        match = _POWER_PATTERN.search(self._run("vm.info", name))
        return match.group(1) if match else None

    def vm_exists(self, name: str) -> bool:
        """Return whether a VM called ``name`` exists in the datacenter."""
        return bool(self._run("vm.info", name).strip())

    def disk_create(self, vm: str, *, datastore: str, disk_name: str, size_gb: int) -> None:
        """Add a new thin disk to ``vm``."""
        self._run(
            "vm.disk.create",
            f"-vm={vm}",
            f"-ds={datastore}",
            f"-name={disk_name}",
            f"-size={size_gb}G",
        )

    def set_extra_config(self, vm: str, key: str, value: str) -> None:
        """Set an advanced ``extraConfig`` option on ``vm``."""
        self._run("vm.change", f"-vm={vm}", f"-e={key}={value}")

    def cdrom_add(self, vm: str) -> str:
        """Add an empty CD-ROM device and return its name."""
        return self._run("device.cdrom.add", f"-vm={vm}").strip()

    def cdrom_insert(self, vm: str, *, datastore: str, iso_path: str) -> None:
        """Insert a datastore ISO into the VM's CD-ROM."""
        self._run("device.cdrom.insert", f"-vm={vm}", f"-ds={datastore}", iso_path)

    def device_list(self, vm: str) -> list[str]:
        """Return device names attached to ``vm``."""
        return [line.split()[0] for line in self._run("device.ls", f"-vm={vm}").splitlines() if line.strip()]

    def device_connect(self, vm: str, device: str) -> None:
        """Connect ``device`` and mark it to connect at power-on."""
        self._run("device.connect", f"-vm={vm}", device)

    def datastore_upload(self, *, datastore: str, source: str, destination: str) -> None:
        """Upload a local file to ``destination`` inside ``datastore``."""
        self._run("datastore.upload", f"-ds={datastore}", source, destination)

    def list_folder(self, folder: str) -> list[str]:
        """Return the base names of the inventory objects under ``folder``."""
        entries = self._run("ls", folder).splitlines()
        return [entry.rstrip("/").rsplit("/", 1)[-1] for entry in entries if entry.strip()]

    def vm_destroy(self, name: str) -> None:
        """Delete ``name`` and its disks."""
        self._run("vm.destroy", name)

    def vm_mac(self, name: str) -> str | None:
        """Return the first NIC's MAC address, or ``None`` when unavailable."""
        try:
            info = self._run("device.info", f"-vm={name}", "ethernet-*")
        except RemoteOperationError as exc:
            logger.debug("MAC lookup for %s failed: %s", name, exc)
            return None
        match = _MAC_PATTERN.search(info)
        return match.group(1) if match else None

    def vm_ip(self, name: str, *, wait_seconds: int = 5) -> str | None:
        """Return the guest IP reported by VMware Tools, or ``None``."""
        try:
            address = self._run("vm.ip", f"-wait={wait_seconds}s", name).strip()
        except RemoteOperationError as exc:
            logger.debug("IP lookup for %s failed: %s", name, exc)
            return None
        return address or None


__all__ = ["GovcClient", "VSphereConnection"]
