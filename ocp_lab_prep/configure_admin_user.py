#!/usr/bin/env -S uv run python
# /// script
# requires-python = ">=3.13"
# dependencies = ["cyclopts>=2.9", "plumbum", "PyYAML"]
# ///
"""Add a local htpasswd ``admin`` user with cluster-admin to a new cluster.

Run after ``oc login`` as ``kubeadmin``. The script writes the htpasswd file,
publishes it as a secret, configures the OAuth provider, waits for the
authentication operator and grants ``cluster-admin``.
"""

from __future__ import annotations

import logging
from pathlib import Path

from cyclopts import App

from ocp_lab_prep._cli import configure_logging, run_guarded
from ocp_lab_prep._identity import AdminUserConfig, configure_admin_user, verify_logged_in
from ocp_lab_prep._prompts import Prompter
from ocp_lab_prep._run_context import ProgressTracker
from ocp_lab_prep._tooling import ADMIN_TOOLS, ensure_tools
from ocp_lab_prep._waiting import WaitPolicy

DEFAULT_HTPASSWD = Path.home() / "ocp-users" / "users.htpasswd"
ROLLOUT_START_TIMEOUT = 120

app = App(help="Create the local admin user on an OpenShift cluster.")
logger = logging.getLogger(__name__)


def print_plan(user: str, config: AdminUserConfig) -> None:
    """Show what will change on the cluster before confirmation."""
    print("\n=== Plan ===")
    print(f"  Logged in as:  {user}")
    print(f"  New user:      {config.username}")
    print(f"  htpasswd file: {config.htpasswd_path}")
    print(f"  Secret:        openshift-config/{config.secret_name}")
    print(f"  IdP:           {config.provider_name}")
    print("  Role:          cluster-admin")


def setup_admin_user(
    prompter: Prompter,
    tracker: ProgressTracker,
    *,
    username: str = "admin",
    htpasswd_file: Path = DEFAULT_HTPASSWD,
    rollout_timeout: int = 600,
) -> int:
    """Check the login, collect the password, confirm and apply.

    Nothing on disk or in the cluster changes before the operator confirms.
    """
    ensure_tools(ADMIN_TOOLS)
    user = verify_logged_in()
    password = prompter.ask_secret(f"Password for {username}: ", label="password")
    config = AdminUserConfig(
        password=password,
        username=username,
        htpasswd_path=htpasswd_file,
        rollout_start_wait=WaitPolicy(
            timeout=min(ROLLOUT_START_TIMEOUT, rollout_timeout), interval=5, backoff=1.0
        ),
        rollout_wait=WaitPolicy(timeout=rollout_timeout, interval=10, backoff=1.0),
    )
    print_plan(user, config)
    prompter.confirm_or_abort("\nProceed with the admin user setup? (y/n): ")
    configure_admin_user(config, tracker)
    print(f"\n{username} can now log in with the {config.provider_name} provider.")
    return 0


@app.command()
def main(
    username: str = "admin",
    htpasswd_file: Path = DEFAULT_HTPASSWD,
    rollout_timeout: int = 600,
    log_level: str = "WARNING",
) -> int:
    """Create or update the admin user and grant cluster-admin."""
    configure_logging(log_level)
    prompter = Prompter()

    def body(tracker: ProgressTracker) -> int:
        return setup_admin_user(
            prompter,
            tracker,
            username=username,
            htpasswd_file=htpasswd_file,
            rollout_timeout=rollout_timeout,
        )

    return run_guarded(body)


if __name__ == "__main__":  # pragma: no cover - CLI entrypoint
    raise SystemExit(app())
