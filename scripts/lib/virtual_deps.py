# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Virtual dependencies and dependency name normalisation.

Some services should not be cloned during resolution, typically because
their manifest cannot be trusted.  For those names a fixed dependency
list is used instead, supplied by a read-only
:class:`VirtualDependencyTable` that is passed to the resolver.  No
entries are built in; deployments add them through the
``VIRTUAL_DEPENDENCIES`` JSON override.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Mapping
from types import MappingProxyType

from errors import ConfigError

# Old name of the flagship service, still used by manifests that have
# not been updated.
_ALIASES = MappingProxyType({"flagship": "outreach"})


def normalize_name(name: str) -> str:
    """Return the canonical form of dependency *name*.

    Raises :class:`ConfigError` for an empty or whitespace-padded name.
    """
    if not name.strip():
        raise ConfigError("Dependency name must not be empty")
    if name != name.strip():
        raise ConfigError(
            f"Dependency name must not have surrounding whitespace: {name!r}"
        )
    return _ALIASES.get(name, name)


class VirtualDependencyTable:
    """Read-only mapping of dependency name → baked-in dependency list."""

    def __init__(self, entries: Mapping[str, Iterable[str]] | None = None) -> None:
        normalized: dict[str, tuple[str, ...]] = {}
        for name, deps in (entries or {}).items():
            normalized[normalize_name(name)] = tuple(normalize_name(d) for d in deps)
        self._entries = MappingProxyType(normalized)

    def lookup(self, name: str) -> tuple[tuple[str, ...], bool]:
        """Return ``(dependencies, found)`` for *name*."""
        if name in self._entries:
            return self._entries[name], True
        return (), False

    def merged(self, extra: Mapping[str, Iterable[str]]) -> VirtualDependencyTable:
        """Return a new table with *extra* entries layered on top."""
        combined: dict[str, Iterable[str]] = dict(self._entries)
        combined.update(extra)
        return VirtualDependencyTable(combined)

    @classmethod
    def from_json(cls, text: str) -> VirtualDependencyTable:
        """Parse a JSON object of ``name → [dependency, …]``."""
        try:
            raw = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"VIRTUAL_DEPENDENCIES is not valid JSON: {exc}") from exc

        if not isinstance(raw, dict):
            raise ConfigError("VIRTUAL_DEPENDENCIES must be a JSON object")
        for name, deps in raw.items():
            if not isinstance(deps, list) or not all(isinstance(d, str) for d in deps):
                raise ConfigError(
                    f"VIRTUAL_DEPENDENCIES entry '{name}' must be a list of strings"
                )
        return cls(raw)

    @property
    def entries(self) -> Mapping[str, tuple[str, ...]]:
        return self._entries

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        return f"VirtualDependencyTable({dict(self._entries)!r})"


DEFAULT_VIRTUAL_DEPENDENCIES = VirtualDependencyTable()


def build_table(overrides_json: str = "") -> VirtualDependencyTable:
    """Return the default table, extended by a JSON override if given."""
    if not overrides_json.strip():
        return DEFAULT_VIRTUAL_DEPENDENCIES
    return DEFAULT_VIRTUAL_DEPENDENCIES.merged(
        VirtualDependencyTable.from_json(overrides_json).entries
    )
