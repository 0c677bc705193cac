# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Dependency manifest loading.

A repository declares the services it needs in ``devenv.yaml``::

    service: true
    dependencies:
      required:
        - mint
      optional:
        - clerk

Older repositories still use ``noncompat-service.yaml`` or
``service.yaml`` with the same fields, so :func:`find_manifest` probes
each candidate in priority order.

Absence and malformation are reported separately
(:class:`~errors.ConfigNotFoundError` vs.
:class:`~errors.ConfigMalformedError`) because callers treat them
differently.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from errors import ConfigMalformedError, ConfigNotFoundError

logger = logging.getLogger(__name__)

# Candidate manifest filenames, highest priority first
MANIFEST_CANDIDATES = ("devenv.yaml", "noncompat-service.yaml", "service.yaml")


@dataclass(frozen=True)
class Manifest:
    """Parsed dependency declaration of one repository."""

    required: tuple[str, ...] = ()
    optional: tuple[str, ...] = ()
    service: bool = False

    @property
    def dependencies(self) -> tuple[str, ...]:
        """Required then optional dependencies, in declaration order."""
        return self.required + self.optional

    @classmethod
    def from_dict(cls, data: Any, source: str = "<string>") -> Manifest:
        """Build a :class:`Manifest` from a YAML-decoded document.

        ``None`` (an empty document) yields an empty manifest.  Any
        other shape that does not match the manifest layout raises
        :class:`ConfigMalformedError`.
        """
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ConfigMalformedError(
                f"{source}: expected a mapping at the top level, "
                f"got {type(data).__name__}",
                path=source,
            )

        deps = data.get("dependencies")
        if deps is None:
            deps = {}
        if not isinstance(deps, dict):
            raise ConfigMalformedError(
                f"{source}: 'dependencies' must be a mapping",
                path=source,
            )

        service = data.get("service", False)
        if not isinstance(service, bool):
            raise ConfigMalformedError(
                f"{source}: 'service' must be a boolean, got {service!r}",
                path=source,
            )

        return cls(
            required=_name_list(deps.get("required"), "required", source),
            optional=_name_list(deps.get("optional"), "optional", source),
            service=service,
        )

    def to_dict(self) -> dict[str, Any]:
        """Return the on-disk document shape of this manifest."""
        return {
            "service": self.service,
            "dependencies": {
                "required": list(self.required),
                "optional": list(self.optional),
            },
        }


def _name_list(value: Any, field: str, source: str) -> tuple[str, ...]:
    """Validate one dependency list and return it as a tuple."""
    if value is None:
        return ()
    if not isinstance(value, list):
        raise ConfigMalformedError(
            f"{source}: 'dependencies.{field}' must be a list",
            path=source,
        )
    for item in value:
        if not isinstance(item, str) or not item or item != item.strip():
            raise ConfigMalformedError(
                f"{source}: 'dependencies.{field}' contains an invalid "
                f"dependency name: {item!r}",
                path=source,
            )
    return tuple(value)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def parse_manifest(text: str, source: str = "<string>") -> Manifest:
    """Parse manifest YAML *text*.

    Raises :class:`ConfigMalformedError` if the text is not valid YAML
    or does not have the manifest layout.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigMalformedError(
            f"{source}: invalid YAML: {exc}", path=source
        ) from exc
    return Manifest.from_dict(data, source=source)


def load_manifest(path: Path) -> Manifest:
    """Load and parse the manifest file at *path*."""
    if not path.is_file():
        raise ConfigNotFoundError(f"Manifest not found: {path}", path=str(path))
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigMalformedError(
            f"Failed to read {path}: {exc}", path=str(path)
        ) from exc
    return parse_manifest(text, source=str(path))


def find_manifest(
    directory: Path,
    candidates: Iterable[str] = MANIFEST_CANDIDATES,
) -> Manifest:
    """Return the first candidate manifest in *directory* that parses.

    A malformed candidate is skipped in favour of a later one.  When no
    candidate parses, :class:`ConfigMalformedError` is raised if at least
    one candidate was present, :class:`ConfigNotFoundError` otherwise.
    """
    candidates = tuple(candidates)
    malformed: ConfigMalformedError | None = None

    for filename in candidates:
        path = directory / filename
        if not path.is_file():
            continue
        try:
            manifest = load_manifest(path)
        except ConfigMalformedError as exc:
            logger.debug("Skipping unparseable manifest %s: %s", path, exc)
            if malformed is None:
                malformed = exc
            continue
        logger.debug("Using manifest %s", path)
        return manifest

    if malformed is not None:
        raise malformed
    raise ConfigNotFoundError(
        f"None of {', '.join(candidates)} found in {directory}",
        path=str(directory),
    )


def dump_manifest(manifest: Manifest) -> str:
    """Serialise *manifest* back to manifest YAML."""
    return yaml.safe_dump(manifest.to_dict(), default_flow_style=False, sort_keys=False)
