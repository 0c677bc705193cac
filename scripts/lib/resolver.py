# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""Transitive dependency resolution.

Starting from the root repository's manifest, every declared dependency
is visited depth-first.  A dependency's own dependencies come either
from the virtual dependency table or from its manifest, which is read
from a fresh shallow clone.  The result is the flat, de-duplicated set
of every service the root needs.

A name is added to the visited set *before* its dependencies are
traversed, so cycles (including a dependency that names the root)
terminate, and a dependency reached from two branches is fetched once.

Failure policy:

- A clone failure (:class:`~errors.FetchError`) aborts the whole
  resolution.
- A dependency whose clone has no manifest, or only manifests that
  cannot be parsed, is kept in the closure with no dependencies of its
  own, and a warning is recorded.
- Cancellation raises :class:`~errors.CancelledError`.

Usage::

    from resolver import DependencyResolver

    resolver = DependencyResolver(fetcher.read_manifest)
    closure = resolver.resolve(root_manifest, root_name="my-service")
    for name in closure:
        print(name)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass

from config import RunnerConfig
from errors import CancelledError, ConfigMalformedError
from fetcher import RemoteFetcher
from manifest import Manifest, find_manifest
from virtual_deps import (
    DEFAULT_VIRTUAL_DEPENDENCIES,
    VirtualDependencyTable,
    build_table,
    normalize_name,
)

logger = logging.getLogger(__name__)

FLAGSHIP_TARGET = "flagship"
BASE_TARGET = "base"

ManifestReader = Callable[[str], Manifest | None]


@dataclass(frozen=True)
class DependencyClosure:
    """Every service transitively required by the root, root excluded."""

    names: frozenset[str]
    warnings: tuple[str, ...] = ()

    def sorted(self) -> list[str]:
        return sorted(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names

    def __iter__(self) -> Iterator[str]:
        return iter(self.sorted())

    def __len__(self) -> int:
        return len(self.names)


class DependencyResolver:
    """Compute the dependency closure of a root manifest.

    Parameters
    ----------
    manifest_reader:
        Called with a dependency name; returns its :class:`Manifest`,
        or *None* when the dependency has no manifest.  Usually
        :meth:`fetcher.RemoteFetcher.read_manifest`.
    table:
        Virtual dependency table consulted before *manifest_reader*.
    cancel:
        Shared cancellation event, checked before each dependency.
    """

    def __init__(
        self,
        manifest_reader: ManifestReader,
        table: VirtualDependencyTable = DEFAULT_VIRTUAL_DEPENDENCIES,
        *,
        cancel: threading.Event | None = None,
    ) -> None:
        self._read_manifest = manifest_reader
        self.table = table
        self.cancel = cancel

    def resolve(
        self,
        root_manifest: Manifest,
        root_name: str | None = None,
    ) -> DependencyClosure:
        """Resolve the closure of *root_manifest*.

        *root_name*, when given, is never fetched and never part of the
        result, even if a dependency lists it.
        """
        visited: set[str] = set()
        warnings: list[str] = []

        root = normalize_name(root_name) if root_name else None
        if root is not None:
            visited.add(root)

        for dep in root_manifest.dependencies:
            self._resolve_one(dep, visited, warnings)

        if root is not None:
            visited.discard(root)
        return DependencyClosure(names=frozenset(visited), warnings=tuple(warnings))

    def _resolve_one(self, name: str, visited: set[str], warnings: list[str]) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise CancelledError("Dependency resolution cancelled")

        name = normalize_name(name)
        if name in visited:
            return

        children, is_virtual = self.table.lookup(name)
        if is_virtual:
            logger.info("Resolving dependency %s (virtual)", name)
        else:
            logger.info("Resolving dependency %s", name)
            children = self._children_of(name, warnings)

        visited.add(name)

        for child in children:
            self._resolve_one(child, visited, warnings)

    def _children_of(self, name: str, warnings: list[str]) -> tuple[str, ...]:
        try:
            manifest = self._read_manifest(name)
        except ConfigMalformedError as exc:
            return self._no_children(
                f"Manifest of {name} is malformed ({exc}), "
                "will not calculate dependencies of this service",
                warnings,
            )

        if manifest is None:
            return self._no_children(
                f"No manifest found for {name}, "
                "will not calculate dependencies of this service",
                warnings,
            )

        logger.debug("%s depends on: %s", name, ", ".join(manifest.dependencies) or "(none)")
        return manifest.dependencies

    @staticmethod
    def _no_children(message: str, warnings: list[str]) -> tuple[str, ...]:
        logger.warning(message)
        warnings.append(message)
        return ()


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def load_root_manifest(config: RunnerConfig) -> Manifest:
    """Load the manifest of the repository under test.

    Absence (:class:`~errors.ConfigNotFoundError`) and malformation
    (:class:`~errors.ConfigMalformedError`) are both fatal here.
    """
    return find_manifest(config.repo_path)


def resolve_dependencies(
    config: RunnerConfig,
    cancel: threading.Event | None = None,
    root_manifest: Manifest | None = None,
) -> DependencyClosure:
    """Resolve the closure of the repository described by *config*."""
    if root_manifest is None:
        root_manifest = load_root_manifest(config)

    fetcher = RemoteFetcher(
        config.git_host,
        config.git_owner,
        protocol=config.git_protocol,
        token=config.git_token,
        timeout=config.clone_timeout_seconds,
        cancel=cancel,
    )
    resolver = DependencyResolver(
        fetcher.read_manifest,
        build_table(config.virtual_dependencies_json),
        cancel=cancel,
    )
    return resolver.resolve(root_manifest, root_name=config.root_name)


def select_target(closure: DependencyClosure, flagship_app: str = "outreach") -> str:
    """Pick the snapshot target profile for provisioning."""
    if flagship_app in closure:
        return FLAGSHIP_TARGET
    return BASE_TARGET
