"""Unit tests for command execution, govc wrappers and tool checks."""

from __future__ import annotations

from pathlib import Path

import pytest
from ocp_lab_prep._commands import CommandContext, describe, run_command
from ocp_lab_prep._govc import GovcClient, VSphereConnection
from ocp_lab_prep._lab_errors import PrerequisiteMissingError, RemoteOperationError
from ocp_lab_prep._tooling import download_iso, ensure_tools, which
from ocp_lab_prep._validators import IsoDownload, validate_wget_iso_command


def _connection() -> VSphereConnection:
    return VSphereConnection(
        url="https://vcsa.lab.local/sdk",
        username="ops@vsphere.local",
        password="s3cret",
        datacenter="SDDC-Datacenter",
    )


def test_run_command_returns_stdout() -> None:
    assert run_command("printf", "hello") == "hello"


def test_run_command_wraps_failures() -> None:
    with pytest.raises(RemoteOperationError, match="false"):
        run_command("false")


def test_run_command_missing_binary() -> None:
    with pytest.raises(PrerequisiteMissingError):
        run_command("definitely-not-a-real-binary-for-lab-prep")


def test_run_command_passes_stdin() -> None:
    assert run_command("cat", context=CommandContext(stdin="kind: OAuth\n")) == "kind: OAuth\n"


def test_describe_masks_secret_arguments() -> None:
    assert describe("htpasswd", ("-c", "f", "admin", "pw"), (3,)) == "htpasswd -c f admin ***"


def test_connection_env_is_explicit_and_hides_password() -> None:
    conn = _connection()
    env = conn.govc_env(base={"PATH": "/usr/bin"})
    assert env == {
        "PATH": "/usr/bin",
        "GOVC_URL": "https://vcsa.lab.local/sdk",
        "GOVC_USERNAME": "ops@vsphere.local",
        "GOVC_PASSWORD": "s3cret",
        "GOVC_DATACENTER": "SDDC-Datacenter",
        "GOVC_INSECURE": "1",
    }
    assert "s3cret" not in repr(conn)
    assert conn.server == "vcsa.lab.local"


def test_govc_client_builds_commands(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[tuple[str, tuple[str, ...], dict[str, str] | None]] = []

    def fake_run(command: str, *args: str, context: CommandContext | None = None) -> str:
        calls.append((command, args, context.env if context else None))
        if args[0] == "device.info":
            return "Name: ethernet-0\n  MAC Address: 00:50:56:01:02:03\n"
        if args[0] == "ls":
            return "/DC/vm/Workloads/lab/bastion\n/DC/vm/Workloads/lab/demo-ocp-mgmt-master-01\n"
        if args[0] == "device.ls":
            return "ide-200    VirtualIDEController\ncdrom-3000 ISO [ds] x.iso\n"
        return ""

    monkeypatch.setattr("ocp_lab_prep._govc.run_command", fake_run)
    client = GovcClient(_connection())

    client.vm_create(
        "m1", folder="/DC/vm/F", datastore="/DC/datastore/D", network="/DC/network/N",
        cpu=4, memory_mb=16384, disk_gb=120,
    )
    client.disk_create("m1", datastore="/DC/datastore/D", disk_name="m1-data.vmdk", size_gb=200)
    client.set_extra_config("m1", "disk.EnableUUID", "TRUE")
    client.cdrom_insert("m1", datastore="D", iso_path="DEMO-LAB-ISO/x.iso")
    assert client.vm_mac("m1") == "00:50:56:01:02:03"
    assert client.list_folder("/DC/vm/Workloads/lab") == ["bastion", "demo-ocp-mgmt-master-01"]
    assert client.device_list("m1") == ["ide-200", "cdrom-3000"]

    create_args = calls[0][1]
    assert create_args[0] == "vm.create"
    assert "-m=16384" in create_args and "-disk=120G" in create_args
    assert calls[1][1][-1] == "-size=200G"
    assert calls[2][1] == ("vm.change", "-vm=m1", "-e=disk.EnableUUID=TRUE")
    assert calls[3][1] == ("device.cdrom.insert", "-vm=m1", "-ds=D", "DEMO-LAB-ISO/x.iso")
    assert calls[0][2] is not None and calls[0][2]["GOVC_PASSWORD"] == "s3cret"


def test_govc_lookups_degrade_to_none(monkeypatch: pytest.MonkeyPatch) -> None:
    def failing(*_args: object, **_kwargs: object) -> str:
        raise RemoteOperationError("no tools")

    monkeypatch.setattr("ocp_lab_prep._govc.run_command", failing)
    client = GovcClient(_connection())
    assert client.vm_mac("m1") is None
    assert client.vm_ip("m1") is None


def test_ensure_tools_names_missing_tools(monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_which(tool: str) -> str | None:
        if tool in {"govc", "helm"}:
            return None
        return f"/usr/local/bin/{tool}"

    monkeypatch.setattr("ocp_lab_prep._tooling.which", fake_which)
    with pytest.raises(PrerequisiteMissingError, match="govc, helm") as excinfo:
        ensure_tools(("govc", "oc", "helm"))
    assert excinfo.value.remediation is not None
    assert "govmomi" in excinfo.value.remediation


def test_ensure_tools_passes_when_present(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("ocp_lab_prep._tooling.which", lambda tool: f"/bin/{tool}")
    ensure_tools(("oc",))


def test_download_iso_skips_existing_file(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / "lab.iso").write_bytes(b"iso")

    def unexpected(*_args: object, **_kwargs: object) -> str:
        raise AssertionError("no download expected")

    monkeypatch.setattr("ocp_lab_prep._tooling.run_command", unexpected)
    path = download_iso(IsoDownload(url="https://h/lab.iso", file_name="lab.iso"), tmp_path)
    assert path == tmp_path / "lab.iso"


def test_download_iso_checks_reachability_first(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    calls: list[tuple[str, ...]] = []

    def fake_run(command: str, *args: str, context: CommandContext | None = None) -> str:
        calls.append(args)
        if "--spider" in args:
            raise RemoteOperationError("404")
        return ""

    monkeypatch.setattr("ocp_lab_prep._tooling.run_command", fake_run)
    with pytest.raises(RemoteOperationError, match="not reachable"):
        download_iso(IsoDownload(url="https://h/lab.iso", file_name="lab.iso"), tmp_path / "isos")
    assert len(calls) == 1


def test_download_iso_writes_target(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    def fake_run(command: str, *args: str, context: CommandContext | None = None) -> str:
        if "-O" in args:
            Path(args[args.index("-O") + 1]).write_bytes(b"iso")
        return ""

    monkeypatch.setattr("ocp_lab_prep._tooling.run_command", fake_run)
    path = download_iso(IsoDownload(url="https://h/lab.iso", file_name="lab.iso"), tmp_path)
    assert path.read_bytes() == b"iso"
    assert not (tmp_path / "lab.iso.part").exists()


def test_which_finds_shell_and_reports_missing() -> None:
    assert which("sh") is not None
    assert which("definitely-not-a-real-binary-for-lab-prep") is None


def test_download_iso_keeps_query_string(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    urls: list[str] = []

    def fake_run(command: str, *args: str, context: CommandContext | None = None) -> str:
        urls.append(args[-1])
        if "-O" in args:
            Path(args[args.index("-O") + 1]).write_bytes(b"iso")
        return ""

    monkeypatch.setattr("ocp_lab_prep._tooling.run_command", fake_run)
    download = validate_wget_iso_command(
        "wget -O lab.iso 'https://example.test/images/full.iso?token=abc&arch=x86_64'"
    )
    download_iso(download, tmp_path)
    assert urls == ["https://example.test/images/full.iso?token=abc&arch=x86_64"] * 2
