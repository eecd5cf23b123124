"""
Component ordering — dependency validation and stable topological sort.

Components declare ``depends_on`` explicitly. The declared order is
kept wherever dependencies allow it, so a registry without any
``depends_on`` runs in exactly the order it was written.

No I/O, no subprocess.
"""

from __future__ import annotations

from devboot.core.models.component import ComponentDescriptor


def validate_dependencies(components: list[ComponentDescriptor]) -> list[str]:
    """Validate the component dependency graph.

    Checks for:
    - Duplicate component names
    - References to unknown components
    - Self-dependencies

    Cycles are reported by :func:`order_components`.

    Returns:
        List of error strings (empty = valid).
    """
    errors: list[str] = []
    names = {c.name for c in components}

    seen: set[str] = set()
    for c in components:
        if c.name in seen:
            errors.append(f"Duplicate component name: {c.name}")
        seen.add(c.name)

    for c in components:
        for dep in c.depends_on:
            if dep == c.name:
                errors.append(f"Component '{c.name}' depends on itself")
            elif dep not in names:
                errors.append(
                    f"Component '{c.name}' depends on unknown component '{dep}'"
                )

    return errors


def order_components(
    components: list[ComponentDescriptor],
) -> tuple[list[ComponentDescriptor], list[str]]:
    """Sort components so every dependency precedes its dependents.

    Kahn's algorithm, always picking the earliest-declared ready
    component, so the result is deterministic and as close to the
    declared order as the graph allows.

    Returns:
        ``(ordered, cycle_members)`` — ``cycle_members`` is empty when
        the graph is acyclic, otherwise it names the components that
        could not be scheduled.
    """
    position = {c.name: i for i, c in enumerate(components)}
    in_degree: dict[str, int] = {c.name: 0 for c in components}
    dependents: dict[str, list[str]] = {c.name: [] for c in components}

    for c in components:
        for dep in set(c.depends_on):
            if dep in dependents:
                in_degree[c.name] += 1
                dependents[dep].append(c.name)

    by_name = {c.name: c for c in components}
    ready = sorted(
        (name for name, deg in in_degree.items() if deg == 0),
        key=position.__getitem__,
    )
    ordered: list[ComponentDescriptor] = []

    while ready:
        name = ready.pop(0)
        ordered.append(by_name[name])
        for successor in dependents[name]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                ready.append(successor)
        ready.sort(key=position.__getitem__)

    if len(ordered) < len(components):
        scheduled = {c.name for c in ordered}
        stuck = [c.name for c in components if c.name not in scheduled]
        return ordered, stuck

    return ordered, []
