# SPDX-License-Identifier: Apache-2.0
# SPDX-FileCopyrightText: 2025 The Linux Foundation

"""CI step outputs and step summary helpers.

All writes to ``$GITHUB_OUTPUT`` and ``$GITHUB_STEP_SUMMARY`` go
through this module.  Outside GitHub Actions (variables unset) every
call is a logged no-op, so the runner behaves the same on a laptop.

Usage::

    from outputs import emit_dependency_outputs

    emit_dependency_outputs(closure, target="base")
"""

from __future__ import annotations

import json
import logging
import os
from collections.abc import Iterable
from typing import Any

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Core helpers
# ---------------------------------------------------------------------------


def write_output(name: str, value: str) -> None:
    """Append a ``name=value`` pair to ``$GITHUB_OUTPUT``.

    Multi-line values use the heredoc syntax GitHub Actions requires::

        name<<EOF
        line 1
        line 2
        EOF
    """
    output_file = os.environ.get("GITHUB_OUTPUT")
    if not output_file:
        logger.debug("GITHUB_OUTPUT not set; would write %s=%s", name, _truncate(value))
        return

    try:
        with open(output_file, "a", encoding="utf-8") as fh:
            if "\n" in value:
                fh.write(f"{name}<<EOF\n{value}\nEOF\n")
            else:
                fh.write(f"{name}={value}\n")
        logger.debug("Wrote output %s (%d chars)", name, len(value))
    except OSError as exc:
        logger.warning("Failed to write to GITHUB_OUTPUT: %s", exc)


def write_summary(markdown: str) -> None:
    """Append *markdown* to ``$GITHUB_STEP_SUMMARY``, newline-terminated."""
    summary_file = os.environ.get("GITHUB_STEP_SUMMARY")
    if not summary_file:
        logger.debug("GITHUB_STEP_SUMMARY not set; would write %s", _truncate(markdown))
        return

    try:
        with open(summary_file, "a", encoding="utf-8") as fh:
            fh.write(markdown)
            if not markdown.endswith("\n"):
                fh.write("\n")
        logger.debug("Wrote %d chars to step summary", len(markdown))
    except OSError as exc:
        logger.warning("Failed to write to GITHUB_STEP_SUMMARY: %s", exc)


def write_json_output(name: str, value: Any) -> None:
    """Serialise *value* as compact JSON and write it as an output."""
    write_output(name, json.dumps(value, separators=(",", ":")))


def write_status_summary(title: str, body: str, *, emoji: str = "") -> None:
    """Write a ``**title**`` block followed by *body* to the step summary."""
    heading = f"**{title}**"
    if emoji:
        heading = f"{heading} {emoji}"
    write_summary("\n".join([heading, "", body, ""]))


# ---------------------------------------------------------------------------
# Dependency outputs
# ---------------------------------------------------------------------------


def dependency_summary(
    names: Iterable[str],
    target: str,
    warnings: Iterable[str] = (),
) -> str:
    """Render the resolved dependencies as a Markdown block."""
    names = sorted(names)
    lines = [
        "**Dependencies** 📦",
        "",
        f"Snapshot target: `{target}`",
        "",
    ]
    if names:
        lines.extend(["| Dependency |", "|------------|"])
        lines.extend(f"| {name} |" for name in names)
    else:
        lines.append("_No dependencies_")
    warnings = list(warnings)
    if warnings:
        lines.extend(["", "Warnings:", ""])
        lines.extend(f"- ⚠️ {warning}" for warning in warnings)
    lines.append("")
    return "\n".join(lines)


def emit_dependency_outputs(
    names: Iterable[str],
    target: str,
    warnings: Iterable[str] = (),
) -> None:
    """Publish the resolved dependencies as outputs and a summary.

    Writes ``dependencies`` (sorted JSON array), ``dependency_count``
    and ``target`` outputs.
    """
    names = sorted(names)
    write_json_output("dependencies", names)
    write_output("dependency_count", str(len(names)))
    write_output("target", target)
    write_summary(dependency_summary(names, target, warnings))


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _truncate(text: str, maxlen: int = 120) -> str:
    """Return *text* truncated to *maxlen* characters for log messages."""
    if len(text) <= maxlen:
        return text
    return text[:maxlen] + "…"
