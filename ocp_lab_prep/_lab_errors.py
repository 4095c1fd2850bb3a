"""Exception hierarchy for the OpenShift lab preparation helpers.

Validation errors are recoverable and handled where input is captured; every
other error propagates to the entrypoint, which prints the message and the
remediation hint before exiting non-zero.

Examples
--------
>>> raise RangeError("value 9 is outside 1..5")
"""

from __future__ import annotations


class LabPrepError(Exception):
    """Base error for lab preparation helpers.

    Parameters
    ----------
    message
        Human-readable error message describing the failure.
    remediation
        Optional manual command or action that resolves the failure.

    Examples
    --------
    >>> err = LabPrepError("boom", remediation="retry")
    >>> err.remediation
    'retry'
    """

    def __init__(self, message: str, *, remediation: str | None = None) -> None:
        super().__init__(message)
        self.remediation = remediation


class InputValidationError(LabPrepError):
    """Raised when operator input is rejected; callers re-prompt."""


class EmptyInputError(InputValidationError):
    """Raised when a required value is empty or whitespace only."""


class RangeError(InputValidationError):
    """Raised when an integer falls outside its inclusive bounds."""


class FormatError(InputValidationError):
    """Raised when input does not have the expected shape."""


class KeyFormatError(InputValidationError):
    """Raised when an SSH public key is not recognised."""


class InvalidChoiceError(InputValidationError):
    """Raised when a selection is not one of the offered options."""


class OperatorAbort(LabPrepError):
    """Raised when the operator declines a confirmation gate.

    Entrypoints treat this as a clean cancellation and exit with status 0.
    """


class PrerequisiteMissingError(LabPrepError):
    """Raised when a required tool, template or repository is absent.

    Examples
    --------
    >>> raise PrerequisiteMissingError("govc not found", remediation="install govc")
    """


class RemoteOperationError(LabPrepError):
    """Raised when an operation against vCenter or the cluster fails.

    Parameters
    ----------
    message
        Human-readable error message describing the failure.
    node
        Name of the VM being provisioned, when the failure is node-scoped.
    step
        Name of the provisioning step that failed.
    remediation
        Optional manual command that resolves the failure.
    """

    def __init__(
        self,
        message: str,
        *,
        node: str | None = None,
        step: str | None = None,
        remediation: str | None = None,
    ) -> None:
        super().__init__(message, remediation=remediation)
        self.node = node
        self.step = step


class ConfigWriteError(LabPrepError):
    """Raised when a key-path write into the install config fails."""

    def __init__(self, message: str, *, key_path: str) -> None:
        super().__init__(message)
        self.key_path = key_path


class WaitTimeoutError(LabPrepError, TimeoutError):
    """Raised when a bounded wait expires before its condition holds."""


__all__ = [
    "ConfigWriteError",
    "EmptyInputError",
    "FormatError",
    "InputValidationError",
    "InvalidChoiceError",
    "KeyFormatError",
    "LabPrepError",
    "OperatorAbort",
    "PrerequisiteMissingError",
    "RangeError",
    "RemoteOperationError",
    "WaitTimeoutError",
]
