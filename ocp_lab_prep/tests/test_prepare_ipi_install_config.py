"""Unit tests for the IPI install-config preparation flow."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from ocp_lab_prep._install_config import CONFIG_FILE_NAME, SchemaMode
from ocp_lab_prep._state_dump import REDACTED
from ocp_lab_prep._topology import NodeRole
from ocp_lab_prep.prepare_ipi_install_config import (
    IpiInputs,
    build_dump,
    collect_inputs,
    install_command,
    install_dir_for,
    prepare,
)
from ocp_lab_prep.tests._fakes import make_prompter

PULL_SECRET = '{"auths":{"cloud.openshift.com":{"auth":"b3Blbg=="}}}'
SSH_KEY = "ssh-ed25519 AAAAC3NzaC1lZDI1NTE5AAAAIG ops@bastion"

ANSWERS = [
    "https://vcsa.lab.local/sdk",
    "ops@vsphere.local",
    "SDDC-Datacenter",
    "Cluster-1",
    "sandbox-r5vnx",
    "WorkloadDatastore",
    "segment-sandbox",
    "dynamic.opentlc.com",
    "r5vnx",
    "192.168.10.201",
    "192.168.10.202",
    "4.16.8",
    "1",
    "y",
    SSH_KEY,
]

TEMPLATE = """\
apiVersion: v1
baseDomain: example.com
metadata:
  name: placeholder
compute:
- name: worker
  replicas: 3
controlPlane:
  name: master
  replicas: 3
platform:
  vsphere: {}
pullSecret: ''
sshKey: ''
"""


@pytest.fixture
def inputs() -> IpiInputs:
    prompter = make_prompter(ANSWERS, block=PULL_SECRET + "\n", secrets=["s3cret"])
    return collect_inputs(prompter)


def test_collect_inputs(inputs: IpiInputs) -> None:
    assert inputs.connection.server == "vcsa.lab.local"
    assert inputs.inventory.cluster_path == "/SDDC-Datacenter/host/Cluster-1"
    assert inputs.inventory.folder_path == "/SDDC-Datacenter/vm/Workloads/sandbox-r5vnx"
    assert inputs.identity.name == "r5vnx"
    assert inputs.topology.worker_count == 0
    assert inputs.sizing[NodeRole.WORKER].cpu == 0
    assert inputs.pull_secret == PULL_SECRET
    assert "b3Blbg" not in repr(inputs)


def test_collect_inputs_reasks_cluster_from_another_datacenter() -> None:
    answers = [
        *ANSWERS[:3],
        "/Other-DC/host/Cluster-1",
        "/SDDC-Datacenter/host/Cluster-1",
        *ANSWERS[4:],
    ]
    prompter = make_prompter(answers, block=PULL_SECRET + "\n", secrets=["s3cret"])
    inputs = collect_inputs(prompter)
    assert inputs.inventory.cluster_path == "/SDDC-Datacenter/host/Cluster-1"
    assert inputs.ssh_key == SSH_KEY


def test_prepare_writes_config_under_lab_directory(inputs: IpiInputs, tmp_path: Path) -> None:
    template = tmp_path / "template.yaml"
    template.write_text(TEMPLATE, encoding="utf-8")
    install_dir = install_dir_for(tmp_path / "openshift-install-dir", inputs)

    result = prepare(inputs, template, install_dir, SchemaMode.FAILURE_DOMAINS)

    assert result.config_path == tmp_path / "openshift-install-dir" / "r5vnx" / CONFIG_FILE_NAME
    config = yaml.safe_load(result.config_path.read_text(encoding="utf-8"))
    assert config["metadata"]["name"] == "r5vnx"
    assert config["compute"][0]["replicas"] == 0
    assert config["pullSecret"] == PULL_SECRET
    assert config["platform"]["vsphere"]["vcenters"][0]["server"] == "vcsa.lab.local"
    assert template.read_text(encoding="utf-8") == TEMPLATE, "template must stay untouched"


def test_build_dump_redacts_pull_secret(inputs: IpiInputs, tmp_path: Path) -> None:
    template = tmp_path / "template.yaml"
    template.write_text(TEMPLATE, encoding="utf-8")
    result = prepare(inputs, template, tmp_path / "install", SchemaMode.LEGACY_FLAT)

    text = build_dump(inputs, result).render()

    assert f"PULL_SECRET={REDACTED}" in text
    assert f"VCENTER_PASSWORD={REDACTED}" in text
    assert f"SSH_KEY={SSH_KEY}" in text
    assert "PREVIOUS_CONFIG" not in text


def test_install_command_quotes_directory() -> None:
    assert install_command(Path("/home/ops/dir with space")) == (
        'openshift-install create cluster --dir "/home/ops/dir with space" --log-level=info'
    )
