"""Interactive prompts that re-ask until the validators accept the answer."""

from __future__ import annotations

import getpass
import logging
import sys
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TypeAlias, TypeVar

from ocp_lab_prep._lab_errors import InputValidationError, OperatorAbort
from ocp_lab_prep._topology import (
    ClusterTopology,
    NodeSizing,
    SizingRequest,
    WORKER_COUNT_RANGE,
    resolve_topology,
)
from ocp_lab_prep._validators import (
    validate_choice,
    validate_int_in_range,
    validate_non_empty,
    validate_ssh_public_key,
    validate_yes_no,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

Reader: TypeAlias = Callable[[str], str]


def _read_stdin_to_eof() -> str:
    return sys.stdin.read()


@dataclass(slots=True)
class Prompter:
    """Prompt loop around injectable line, secret and block readers.

    Attributes
    ----------
    read_line
        Reads one line after showing a prompt; defaults to :func:`input`.
    read_secret
        Reads a line without echo; defaults to :func:`getpass.getpass`.
    read_block
        Reads until end of input; defaults to ``sys.stdin.read``.
    max_attempts
        Invalid answers tolerated before the last validation error is raised.
    """

    read_line: Reader = input
    read_secret: Reader = getpass.getpass
    read_block: Callable[[], str] = _read_stdin_to_eof
    max_attempts: int = 5
    notify: Callable[[str], None] = field(default=print)

    def _ask(self, prompt: str, parse: Callable[[str], T], *, secret: bool = False) -> T:
        reader = self.read_secret if secret else self.read_line
        last_error: InputValidationError | None = None
        for _ in range(self.max_attempts):
            try:
                raw = reader(prompt)
            except EOFError as exc:
                msg = "input closed before a value was supplied"
                raise InputValidationError(msg) from exc
            try:
                return parse(raw)
            except InputValidationError as exc:
                last_error = exc
                self.notify(f"  invalid input: {exc}")
        assert last_error is not None
        logger.warning("Giving up on %r after %d attempts", prompt, self.max_attempts)
        raise last_error

    def ask_text(self, prompt: str, *, label: str = "value") -> str:
        """Ask for a non-empty, trimmed string."""
        return self._ask(prompt, lambda raw: validate_non_empty(raw, label=label))

    def ask_validated(self, prompt: str, parse: Callable[[str], T]) -> T:
        """Ask until ``parse`` accepts the answer."""
        return self._ask(prompt, parse)

    def ask_secret(self, prompt: str, *, label: str = "secret") -> str:
        """Ask for a non-empty value without echoing it."""
        return self._ask(prompt, lambda raw: validate_non_empty(raw, label=label), secret=True)

    def ask_int(self, prompt: str, minimum: int, maximum: int) -> int:
        """Ask for an integer within the inclusive bounds."""
        return self._ask(prompt, lambda raw: validate_int_in_range(raw, minimum, maximum))

    def ask_int_with_default(self, prompt: str, minimum: int, maximum: int, default: int) -> int:
        """Ask for a bounded integer; an empty answer selects ``default``."""

        def parse(raw: str) -> int:
            if not raw.strip():
                return default
            return validate_int_in_range(raw, minimum, maximum)

        return self._ask(prompt, parse)

    def ask_yes_no(self, prompt: str) -> bool:
        """Ask a y/n question."""
        return self._ask(prompt, validate_yes_no)

    def ask_choice(self, prompt: str, choices: tuple[str, ...]) -> str:
        """Ask until one of ``choices`` is entered."""
        return self._ask(prompt, lambda raw: validate_choice(raw, choices))

    def ask_ssh_key(self, prompt: str) -> str:
        """Ask for a single-line SSH public key."""
        return self._ask(prompt, validate_ssh_public_key)

    def ask_block(self, prompt: str, *, label: str = "value") -> str:
        """Read a multi-line block terminated by end of input (Ctrl+D).

        The text is kept verbatim apart from trailing newlines; a block that
        is only whitespace is rejected and asked for again.
        """
        last_error: InputValidationError | None = None
        for _ in range(self.max_attempts):
            self.notify(prompt)
            block = self.read_block().rstrip("\n")
            try:
                validate_non_empty(block, label=label)
            except InputValidationError as exc:
                last_error = exc
                self.notify(f"  invalid input: {exc}")
                continue
            return block
        assert last_error is not None
        raise last_error

    def confirm_or_abort(self, prompt: str) -> None:
        """Raise :class:`OperatorAbort` unless the operator answers yes."""
        if not self.ask_yes_no(prompt):
            msg = "cancelled by operator"
            raise OperatorAbort(msg)


def prompt_topology(prompter: Prompter) -> ClusterTopology:
    """Ask for the cluster type and, for standard clusters, the worker count."""
    prompter.notify("Select cluster type:")
    prompter.notify("  1) Compact  - 3 masters that also run workloads")
    prompter.notify("  2) Standard - 3 masters plus dedicated workers")
    choice = prompter.ask_choice("Enter choice [1-2]: ", ("1", "2"))
    if choice == "1":
        return resolve_topology(choice)
    low, high = WORKER_COUNT_RANGE
    workers = prompter.ask_int_with_default(
        f"Number of worker nodes [{low}-{high}] (default: 3): ", low, high, 3
    )
    return resolve_topology(choice, str(workers))


def sizing_capture(prompter: Prompter) -> Callable[[SizingRequest], NodeSizing | None]:
    """Return a capture callback for :func:`~ocp_lab_prep._topology.resolve_sizing`.

    Choosing not to use the defaults asks for every field and then for a
    final confirmation; answering no starts that role over.
    """

    def capture(request: SizingRequest) -> NodeSizing | None:
        role = request.role.value
        defaults = request.defaults
        prompter.notify(
            f"\nDefault {role} sizing: {defaults.cpu} vCPU, "
            f"{defaults.ram_gb} GB RAM, {defaults.disk_gb} GB disk"
        )
        if prompter.ask_yes_no(f"Use default {role} sizing? (y/n): "):
            return None
        ranges = request.ranges
        while True:
            sizing = NodeSizing(
                cpu=prompter.ask_int(f"{role} vCPU [{ranges.cpu[0]}-{ranges.cpu[1]}]: ", *ranges.cpu),
                ram_gb=prompter.ask_int(
                    f"{role} RAM GB [{ranges.ram_gb[0]}-{ranges.ram_gb[1]}]: ", *ranges.ram_gb
                ),
                disk_gb=prompter.ask_int(
                    f"{role} disk GB [{ranges.disk_gb[0]}-{ranges.disk_gb[1]}]: ",
                    *ranges.disk_gb,
                ),
            )
            prompter.notify(
                f"{role}: {sizing.cpu} vCPU, {sizing.ram_gb} GB RAM, {sizing.disk_gb} GB disk"
            )
            if prompter.ask_yes_no(f"Confirm {role} sizing? (y/n): "):
                return sizing
            prompter.notify(f"Re-entering {role} sizing.")

    return capture


__all__ = ["Prompter", "prompt_topology", "sizing_capture"]
