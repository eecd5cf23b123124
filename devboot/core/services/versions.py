"""
Version helpers (pure).

Parses versions out of tool output and compares dotted versions.
No I/O, no subprocess.
"""

from __future__ import annotations

import re

DEFAULT_VERSION_PATTERN = r"\d+(?:\.\d+)+"


def extract_version(output: str, pattern: str = DEFAULT_VERSION_PATTERN) -> str | None:
    """Return the first version found in ``output``.

    If ``pattern`` has a capture group, the first group is returned,
    otherwise the whole match.
    """
    if not output:
        return None
    try:
        match = re.search(pattern, output)
    except re.error:
        return None
    if not match:
        return None
    return match.group(1) if match.groups() else match.group(0)


def parse_version(version: str) -> tuple[int, ...]:
    """Parse ``"v7.4.1-preview"`` into ``(7, 4, 1)``.

    Raises:
        ValueError: If no leading numeric component exists.
    """
    parts: list[int] = []
    for piece in version.strip().lstrip("vV").split("."):
        m = re.match(r"\d+", piece)
        if not m:
            break
        parts.append(int(m.group(0)))
    if not parts:
        raise ValueError(f"Not a version: {version!r}")
    return tuple(parts)


def version_at_least(version: str, minimum: str) -> bool:
    """True when ``version >= minimum``. Unparseable versions pass."""
    try:
        have = parse_version(version)
        want = parse_version(minimum)
    except ValueError:
        return True
    width = max(len(have), len(want))
    return have + (0,) * (width - len(have)) >= want + (0,) * (width - len(want))


def highest_version(versions: list[str]) -> str | None:
    """The highest parseable version in ``versions``."""
    best: tuple[tuple[int, ...], str] | None = None
    for v in versions:
        try:
            key = parse_version(v)
        except ValueError:
            continue
        if best is None or key > best[0]:
            best = (key, v)
    return best[1] if best else None
