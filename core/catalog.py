"""Command catalog: the immutable table of permitted commands and arguments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Iterator, List, Optional, Tuple

from core.errors import CatalogError


@dataclass(frozen=True)
class CommandSpec:
    """One allow-listed command. ``allowed_args`` is a flat set, kept in config order."""

    name: str
    description: str = ""
    allowed_args: Tuple[str, ...] = ()
    _allowed: FrozenSet[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        deduped = tuple(dict.fromkeys(self.allowed_args))
        object.__setattr__(self, "allowed_args", deduped)
        object.__setattr__(self, "_allowed", frozenset(deduped))

    def allows(self, arg: str) -> bool:
        return arg in self._allowed

    def to_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "description": self.description,
            "allowed_args": list(self.allowed_args),
        }


class CommandCatalog:
    """Ordered, read-only collection of :class:`CommandSpec` keyed by exact name."""

    __slots__ = ("_commands", "_by_name")

    def __init__(self, commands: Iterable[CommandSpec] = ()):
        ordered = tuple(commands)
        by_name: Dict[str, CommandSpec] = {}
        for spec in ordered:
            if not isinstance(spec, CommandSpec):
                raise CatalogError(f"catalog entry is not a CommandSpec: {spec!r}")
            if spec.name in by_name:
                raise CatalogError(f"duplicate command in catalog: {spec.name}")
            by_name[spec.name] = spec
        object.__setattr__(self, "_commands", ordered)
        object.__setattr__(self, "_by_name", by_name)

    def __setattr__(self, name, value):
        raise AttributeError("CommandCatalog is immutable")

    @classmethod
    def from_config(cls, entries, *, require_non_empty: bool = False) -> "CommandCatalog":
        """Build a catalog from the YAML ``commands:`` list."""
        if entries is None:
            entries = []
        if not isinstance(entries, list):
            raise CatalogError("commands must be a list")
        if require_non_empty and not entries:
            raise CatalogError("no commands defined in configuration")

        specs: List[CommandSpec] = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise CatalogError(f"commands[{index}] must be a mapping")
            name = entry.get("name")
            if not isinstance(name, str) or not name:
                raise CatalogError(f"commands[{index}].name must be a non-empty string")
            description = entry.get("description") or ""
            if not isinstance(description, str):
                raise CatalogError(f"commands[{index}].description must be a string")
            raw_args = entry.get("allowed_args") or []
            if not isinstance(raw_args, list):
                raise CatalogError(f"commands[{index}].allowed_args must be a list")
            for arg in raw_args:
                # YAML turns bare 1/true into int/bool; refuse rather than guess.
                if not isinstance(arg, str):
                    raise CatalogError(
                        f"commands[{index}].allowed_args entries must be strings (got {arg!r})"
                    )
            specs.append(CommandSpec(name=name, description=description, allowed_args=tuple(raw_args)))
        return cls(specs)

    def find(self, name: str) -> Optional[CommandSpec]:
        return self._by_name.get(name)

    @property
    def names(self) -> List[str]:
        return [spec.name for spec in self._commands]

    def projection(self) -> List[Dict[str, object]]:
        return [spec.to_dict() for spec in self._commands]

    def __len__(self) -> int:
        return len(self._commands)

    def __iter__(self) -> Iterator[CommandSpec]:
        return iter(self._commands)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and name in self._by_name

    def __repr__(self) -> str:
        return f"CommandCatalog({self.names!r})"
