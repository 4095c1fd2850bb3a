"""Flat ``KEY=value`` summary written at the end of a run for operator reference.

Secret values are redacted unless the operator explicitly opts in, and the
file is always created with mode ``0600``.
"""

from __future__ import annotations

import os
from contextlib import suppress
from dataclasses import dataclass, field
from pathlib import Path

REDACTED = "<redacted>"


@dataclass(frozen=True, slots=True)
class DumpEntry:
    """One ``KEY=value`` line."""

    key: str
    value: str
    secret: bool = False


@dataclass(slots=True)
class StateDump:
    """Ordered sections of dump entries.

    Examples
    --------
    >>> dump = StateDump()
    >>> dump.add("vCenter / GOVC", "GOVC_PASSWORD", "pw", secret=True)
    >>> "GOVC_PASSWORD=<redacted>" in dump.render()
    True
    """

    sections: dict[str, list[DumpEntry]] = field(default_factory=dict)

    def add(self, section: str, key: str, value: object, *, secret: bool = False) -> None:
        """Append an entry to ``section``, creating it on first use."""
        self.sections.setdefault(section, []).append(
            DumpEntry(key=key, value=str(value), secret=secret)
        )

    def render(self, *, include_secrets: bool = False) -> str:
        """Return the dump text with secrets redacted unless requested."""
        lines: list[str] = []
        for section, entries in self.sections.items():
            if lines:
                lines.append("")
            lines.append(f"---- {section} ----")
            for entry in entries:
                value = entry.value if include_secrets or not entry.secret else REDACTED
                lines.append(f"{entry.key}={value}")
        return "\n".join(lines) + "\n"


def write_dump(path: Path, dump: StateDump, *, include_secrets: bool = False) -> Path:
    """Write ``dump`` to ``path`` atomically with owner-only permissions."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    payload = dump.render(include_secrets=include_secrets)

    fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(payload)
            handle.flush()
            os.fsync(handle.fileno())
    except Exception:
        with suppress(FileNotFoundError):
            os.unlink(tmp_path)
        raise

    tmp_path.replace(path)
    os.chmod(path, 0o600)
    return path


__all__ = ["REDACTED", "DumpEntry", "StateDump", "write_dump"]
