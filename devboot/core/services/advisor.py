"""
Suggestion advisor — rule-based remediation hints (pure).

``suggest`` is a pure function of its inputs and the static rule tables
in ``devboot.core.data.suggestions``: the same (component, error,
privilege) always yields the same hint. ``None`` means "no idea", which
callers must treat as a normal outcome.
"""

from __future__ import annotations

import re

from devboot.core.data.suggestions import COMPONENT_HINTS, GENERIC_RULES, PRIVILEGE_RULES


def _matches(pattern: str, text: str) -> bool:
    if not pattern or not text:
        return False
    try:
        return bool(re.search(pattern, text, re.IGNORECASE))
    except re.error:
        return False


def suggest(
    component_name: str,
    error_message: str,
    is_privileged: bool,
    hints: dict[str, str] | None = None,
) -> str | None:
    """Look up a remediation hint for a failure.

    Cascade:
        1. Privilege rules (e.g. access denied while not elevated)
        2. Per-component hints, exact name; ``hints`` (from the
           registry's own ``hint`` fields) take priority over the table
        3. Generic error categories (network, execution policy, ...)

    Returns:
        The first matching suggestion, or None.
    """
    error = error_message or ""

    for rule in PRIVILEGE_RULES:
        if rule["privileged"] != is_privileged:
            continue
        if _matches(rule["pattern"], error):
            return rule["suggestion"]

    if hints and hints.get(component_name):
        return hints[component_name]
    if component_name in COMPONENT_HINTS:
        return COMPONENT_HINTS[component_name]

    for rule in GENERIC_RULES:
        if _matches(rule["pattern"], error):
            return rule["suggestion"]

    return None


def categorize(error_message: str) -> str | None:
    """The generic category of an error message, if any."""
    for rule in GENERIC_RULES:
        if _matches(rule["pattern"], error_message or ""):
            return rule["category"]
    return None
