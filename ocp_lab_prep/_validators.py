"""Pure validators for operator-supplied scalar inputs.

Validators never prompt or loop. They either return the normalised value or
raise an :class:`InputValidationError` subclass; the prompt layer catches
those errors and asks again.
"""

from __future__ import annotations

import ipaddress
import re
from dataclasses import dataclass
from urllib.parse import urlsplit

from ocp_lab_prep._lab_errors import (
    EmptyInputError,
    FormatError,
    InvalidChoiceError,
    KeyFormatError,
    RangeError,
)

SSH_KEY_TYPES = (
    "ssh-rsa",
    "ssh-ed25519",
    "ecdsa-sha2-nistp256",
    "ecdsa-sha2-nistp384",
    "ecdsa-sha2-nistp521",
)
_SSH_KEY_PATTERN = re.compile(
    r"^(" + "|".join(re.escape(kind) for kind in SSH_KEY_TYPES) + r")\s+"
    r"[A-Za-z0-9+/=]+(\s.*)?$"
)
_DIGITS_PATTERN = re.compile(r"^[0-9]+$")
_DNS_LABEL_PATTERN = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")
_URL_PATTERN = re.compile(r"https?://[^\s'\"]+")
_ISO_OUTPUT_PATTERN = re.compile(r"(?:^|\s)-O\s+['\"]?([^\s'\"]+\.iso)['\"]?")


def validate_non_empty(value: str, *, label: str = "value") -> str:
    """Return ``value`` stripped of surrounding whitespace.

    Parameters
    ----------
    value : str
        Raw operator input.
    label : str, optional
        Field name used in the error message.

    Returns
    -------
    str
        The trimmed value.

    Raises
    ------
    EmptyInputError
        If nothing remains after trimming.

    Examples
    --------
    >>> validate_non_empty("  sandbox-r5vnx ")
    'sandbox-r5vnx'
    """
    trimmed = value.strip()
    if not trimmed:
        msg = f"{label} must not be empty"
        raise EmptyInputError(msg)
    return trimmed


def validate_int_in_range(value: str, minimum: int, maximum: int) -> int:
    """Parse ``value`` as a decimal integer within ``[minimum, maximum]``.

    Both bounds are inclusive. Signs, decimals and embedded spaces are
    rejected as format errors.

    Examples
    --------
    >>> validate_int_in_range("16", 12, 24)
    16
    >>> validate_int_in_range("12", 12, 24)
    12
    """
    candidate = value.strip()
    if not _DIGITS_PATTERN.match(candidate):
        msg = f"{value!r} is not a whole number"
        raise FormatError(msg)
    number = int(candidate)
    if number < minimum or number > maximum:
        msg = f"{number} is outside the allowed range {minimum}-{maximum}"
        raise RangeError(msg)
    return number


def validate_ssh_public_key(value: str) -> str:
    """Return the SSH public key line when it has a recognised shape.

    The key must start with one of :data:`SSH_KEY_TYPES`, followed by a
    base64 payload and an optional comment.

    Examples
    --------
    >>> validate_ssh_public_key("ssh-ed25519 AAAAC3NzaC1lZDI1NTE5 ops@lab")
    'ssh-ed25519 AAAAC3NzaC1lZDI1NTE5 ops@lab'
    """
    key = value.strip()
    if not key:
        msg = "SSH public key must not be empty"
        raise KeyFormatError(msg)
    if not _SSH_KEY_PATTERN.match(key):
        kinds = ", ".join(SSH_KEY_TYPES)
        msg = f"SSH public key must start with one of: {kinds}"
        raise KeyFormatError(msg)
    return key


def validate_yes_no(value: str) -> bool:
    """Map a single ``y``/``n`` answer (any case) to a boolean.

    Examples
    --------
    >>> validate_yes_no("Y")
    True
    >>> validate_yes_no("n")
    False
    """
    answer = value.strip()
    if answer in ("y", "Y"):
        return True
    if answer in ("n", "N"):
        return False
    msg = "please answer y or n"
    raise InvalidChoiceError(msg)


def validate_choice(value: str, choices: tuple[str, ...]) -> str:
    """Return ``value`` when it is one of ``choices``."""
    answer = value.strip()
    if answer not in choices:
        msg = f"choose one of: {', '.join(choices)}"
        raise InvalidChoiceError(msg)
    return answer


def validate_dns_label(value: str, *, label: str = "name") -> str:
    """Validate a lowercase DNS label such as a lab ID or cluster name.

    Raises
    ------
    EmptyInputError
        If the value is blank.
    FormatError
        If the value is not a valid DNS label.
    """
    name = validate_non_empty(value, label=label).lower()
    if not _DNS_LABEL_PATTERN.match(name):
        msg = f"{label} must contain only lowercase letters, numbers, and hyphens"
        raise FormatError(msg)
    return name


def validate_ip_address(value: str, *, label: str = "address") -> str:
    """Validate an IPv4 or IPv6 literal, as used for API and ingress VIPs."""
    candidate = validate_non_empty(value, label=label)
    try:
        ipaddress.ip_address(candidate)
    except ValueError as exc:
        msg = f"{label} {candidate!r} is not a valid IP address"
        raise FormatError(msg) from exc
    return candidate


def validate_url(value: str, *, label: str = "URL") -> str:
    """Validate an ``http``/``https`` URL such as the vCenter endpoint."""
    candidate = validate_non_empty(value, label=label)
    if not re.match(r"^https?://[^\s/]+", candidate):
        msg = f"{label} must start with http:// or https://"
        raise FormatError(msg)
    return candidate


@dataclass(frozen=True, slots=True)
class IsoDownload:
    """Download details extracted from a ``wget`` command line."""

    url: str
    file_name: str


def validate_wget_iso_command(value: str) -> IsoDownload:
    """Extract the ISO URL and output file from a copied ``wget`` command.

    The discovery-ISO page offers a command such as
    ``wget -O discovery_image_lab.iso 'https://.../full.iso'``.

    Examples
    --------
    >>> cmd = "wget -O lab.iso 'https://example.test/images/full.iso?x=1'"
    >>> validate_wget_iso_command(cmd).file_name
    'lab.iso'
    >>> validate_wget_iso_command(cmd).url
    'https://example.test/images/full.iso?x=1'
    """
    command = validate_non_empty(value, label="ISO wget command")
    if not command.startswith("wget "):
        msg = "the ISO command must start with 'wget '"
        raise FormatError(msg)
    output = _ISO_OUTPUT_PATTERN.search(command)
    if output is None:
        msg = "the ISO command must include '-O <file>.iso'"
        raise FormatError(msg)
    url = _URL_PATTERN.search(command)
    if url is None or not urlsplit(url.group(0)).path.endswith(".iso"):
        msg = "could not find an http(s) URL whose path ends in .iso"
        raise FormatError(msg)
    return IsoDownload(url=url.group(0), file_name=output.group(1).rsplit("/", 1)[-1])


__all__ = [
    "SSH_KEY_TYPES",
    "IsoDownload",
    "validate_choice",
    "validate_dns_label",
    "validate_int_in_range",
    "validate_ip_address",
    "validate_non_empty",
    "validate_ssh_public_key",
    "validate_url",
    "validate_wget_iso_command",
    "validate_yes_no",
]
