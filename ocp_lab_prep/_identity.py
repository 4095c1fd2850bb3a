"""Post-install htpasswd identity provider and cluster-admin grant.

Every step is safe to repeat: the htpasswd file is updated in place, the
secret and OAuth resources are applied declaratively and the role binding
grant is idempotent on the cluster side.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from ocp_lab_prep._commands import CommandContext, run_command
from ocp_lab_prep._lab_errors import (
    PrerequisiteMissingError,
    RemoteOperationError,
    WaitTimeoutError,
)
from ocp_lab_prep._run_context import ProgressTracker
from ocp_lab_prep._waiting import WaitPolicy, wait_until

logger = logging.getLogger(__name__)

CONFIG_NAMESPACE = "openshift-config"
GRANT_HINT = "oc adm policy add-cluster-role-to-user cluster-admin {user}"


@dataclass(frozen=True, slots=True)
class AdminUserConfig:
    """Settings for the local admin user."""

    password: str = field(repr=False)
    username: str = "admin"
    htpasswd_path: Path = field(
        default_factory=lambda: Path.home() / "ocp-users" / "users.htpasswd"
    )
    secret_name: str = "admin-htpass-secret"
    provider_name: str = "local-htpasswd"
    rollout_start_wait: WaitPolicy = field(
        default_factory=lambda: WaitPolicy(timeout=120, interval=5, backoff=1.0)
    )
    rollout_wait: WaitPolicy = field(
        default_factory=lambda: WaitPolicy(timeout=600, interval=10, backoff=1.0)
    )

    @property
    def grant_hint(self) -> str:
        """Return the manual cluster-admin grant command."""
        return GRANT_HINT.format(user=self.username)


def verify_logged_in() -> str:
    """Return the current ``oc`` user, failing when not logged in."""
    try:
        return run_command("oc", "whoami").strip()
    except RemoteOperationError as exc:
        msg = "oc is not logged in to the cluster"
        raise PrerequisiteMissingError(
            msg, remediation="oc login -u kubeadmin <api-url>"
        ) from exc


def write_htpasswd(config: AdminUserConfig) -> None:
    """Create the htpasswd file, or update the user entry when it exists."""
    path = config.htpasswd_path
    path.parent.mkdir(parents=True, exist_ok=True)
    flags = ("-B", "-b") if path.exists() else ("-c", "-B", "-b")
    args = (*flags, str(path), config.username, config.password)
    run_command(
        "htpasswd", *args, context=CommandContext(secret_positions=(len(args) - 1,))
    )
    path.chmod(0o600)


def apply_htpasswd_secret(config: AdminUserConfig) -> None:
    """Create or replace the htpasswd secret in ``openshift-config``."""
    manifest = run_command(
        "oc",
        "create",
        "secret",
        "generic",
        config.secret_name,
        f"--from-file=htpasswd={config.htpasswd_path}",
        "-n",
        CONFIG_NAMESPACE,
        "--dry-run=client",
        "-o",
        "yaml",
    )
    run_command("oc", "apply", "-f", "-", context=CommandContext(stdin=manifest))


def render_oauth(config: AdminUserConfig) -> str:
    """Return the cluster OAuth manifest with a single htpasswd provider.

    Examples
    --------
    >>> "local-htpasswd" in render_oauth(AdminUserConfig(password="pw"))
    True
    """
    document = {
        "apiVersion": "config.openshift.io/v1",
        "kind": "OAuth",
        "metadata": {"name": "cluster"},
        "spec": {
            "identityProviders": [
                {
                    "name": config.provider_name,
                    "mappingMethod": "claim",
                    "type": "HTPasswd",
                    "htpasswd": {"fileData": {"name": config.secret_name}},
                }
            ]
        },
    }
    return yaml.safe_dump(document, sort_keys=False)


def apply_oauth(config: AdminUserConfig) -> None:
    """Apply the OAuth manifest."""
    run_command("oc", "apply", "-f", "-", context=CommandContext(stdin=render_oauth(config)))


def _authentication_status() -> list[str]:
    """Return ``[Available, Progressing]`` for the authentication operator."""
    try:
        status = run_command(
            "oc",
            "get",
            "clusteroperator",
            "authentication",
            "-o",
            'jsonpath={.status.conditions[?(@.type=="Available")].status}'
            '{" "}{.status.conditions[?(@.type=="Progressing")].status}',
        )
    except RemoteOperationError as exc:
        logger.debug("authentication operator status unavailable: %s", exc)
        return []
    return status.split()


def _authentication_progressing() -> bool:
    status = _authentication_status()
    return len(status) == 2 and status[1] == "True"


def _authentication_settled() -> bool:
    return _authentication_status() == ["True", "False"]


def wait_for_oauth_rollout(config: AdminUserConfig, tracker: ProgressTracker) -> None:
    """Wait for the authentication operator to pick up and finish the rollout.

    Right after ``oc apply`` the operator still reports the settled state of
    the previous configuration, so the rollout has to be seen starting before
    the settled state counts. An unchanged OAuth resource never starts a
    rollout; that case is logged once ``rollout_start_wait`` expires.
    """
    try:
        wait_until(
            _authentication_progressing,
            config.rollout_start_wait,
            description="the authentication operator to start rolling out",
            cancel=tracker.cancel,
        )
    except WaitTimeoutError:
        logger.info("No authentication rollout observed; the OAuth config may be unchanged")
    wait_until(
        _authentication_settled,
        config.rollout_wait,
        description="the authentication operator to settle",
        cancel=tracker.cancel,
    )


def grant_cluster_admin(config: AdminUserConfig) -> None:
    """Bind ``cluster-admin`` to the admin user."""
    try:
        run_command(
            "oc", "adm", "policy", "add-cluster-role-to-user", "cluster-admin", config.username
        )
    except RemoteOperationError as exc:
        msg = f"granting cluster-admin to {config.username} failed: {exc}"
        raise RemoteOperationError(msg, remediation=config.grant_hint) from exc


def _can_i(*args: str) -> bool:
    try:
        return run_command("oc", "auth", "can-i", *args).strip() == "yes"
    except RemoteOperationError:
        return False


def verify_permissions(config: AdminUserConfig) -> None:
    """Check the admin user can browse OperatorHub content."""
    checks = (
        (
            "get",
            "packagemanifests",
            "-n",
            "openshift-marketplace",
            f"--as={config.username}",
        ),
        (
            "list",
            "catalogsources",
            "-n",
            "openshift-marketplace",
            f"--as={config.username}",
        ),
    )
    denied = [" ".join(check[:2]) for check in checks if not _can_i(*check)]
    if denied:
        msg = f"{config.username} is missing permissions: {', '.join(denied)}"
        raise RemoteOperationError(msg, step="verify permissions", remediation=config.grant_hint)


def configure_admin_user(config: AdminUserConfig, tracker: ProgressTracker) -> None:
    """Run the mutating admin user steps; the caller checks the login first."""
    write_htpasswd(config)
    tracker.step_done(f"htpasswd entry for {config.username} written")
    apply_htpasswd_secret(config)
    tracker.step_done(f"secret {config.secret_name} applied")
    apply_oauth(config)
    tracker.step_done(f"OAuth provider {config.provider_name} applied")
    print("Waiting for the authentication operator to roll out ...")
    wait_for_oauth_rollout(config, tracker)
    grant_cluster_admin(config)
    tracker.step_done(f"cluster-admin granted to {config.username}")
    verify_permissions(config)
    tracker.step_done("permissions verified")


__all__ = [
    "AdminUserConfig",
    "apply_htpasswd_secret",
    "apply_oauth",
    "configure_admin_user",
    "grant_cluster_admin",
    "render_oauth",
    "verify_logged_in",
    "verify_permissions",
    "wait_for_oauth_rollout",
    "write_htpasswd",
]
