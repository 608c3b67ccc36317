"""Allow-list validation of (command, args) pairs against the command catalog.

Matching is byte-exact: no shell parsing, trimming, case folding or path
resolution happens here, because every normalization step widens what the
allow-list admits.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Sequence

from core.catalog import CommandCatalog


class ViolationKind(str, Enum):
    COMMAND_NOT_ALLOWED = "command_not_allowed"
    ARGUMENT_NOT_ALLOWED = "argument_not_allowed"


@dataclass(frozen=True)
class Violation:
    kind: ViolationKind
    detail: str


def validate_command(command: str, args: Sequence[str], catalog: CommandCatalog) -> Optional[Violation]:
    """Return ``None`` when the call is allowed, else the first violation found."""
    spec = catalog.find(command)
    if spec is None:
        return Violation(ViolationKind.COMMAND_NOT_ALLOWED, f"command '{command}' is not allowed")

    for arg in args:
        if not spec.allows(arg):
            return Violation(
                ViolationKind.ARGUMENT_NOT_ALLOWED,
                f"argument '{arg}' is not allowed for command '{command}'",
            )
    return None
