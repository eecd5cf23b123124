"""
Component registry — the canonical, ordered list of components.

Every operation (install, validate, update) reads the same registry, so
they all see the identical set of components in the identical order.
Building the registry is where configuration mistakes surface:
duplicate names, unknown or cyclic dependencies, unknown variants.
After that, ``list_components()`` is pure in-memory data.
"""

from __future__ import annotations

import logging

from devboot.core.config.loader import ConfigError
from devboot.core.models.component import ComponentDescriptor, ProviderKind
from devboot.core.services.ordering import order_components, validate_dependencies

logger = logging.getLogger(__name__)


class ComponentRegistry:
    """Read-only ordered collection of component descriptors.

    Variants are applied at construction: ``preferred_variants`` maps a
    component name to a flavor; otherwise the component's
    ``default_variant`` is used.
    """

    def __init__(
        self,
        components: list[ComponentDescriptor],
        preferred_variants: dict[str, str] | None = None,
    ):
        errors = validate_dependencies(components)
        if errors:
            raise ConfigError("Invalid component registry:\n  " + "\n  ".join(errors))

        preferred = dict(preferred_variants or {})
        known = {c.name for c in components}
        unknown = sorted(set(preferred) - known)
        if unknown:
            raise ConfigError(
                f"Variant requested for unknown component(s): {', '.join(unknown)}"
            )

        resolved = [_apply_variant(c, preferred.get(c.name)) for c in components]

        ordered, stuck = order_components(resolved)
        if stuck:
            raise ConfigError(
                f"Dependency cycle detected between: {', '.join(stuck)}"
            )

        self._components: tuple[ComponentDescriptor, ...] = tuple(ordered)
        logger.debug(
            "Registry built: %s",
            ", ".join(c.label for c in self._components),
        )

    def list_components(self) -> list[ComponentDescriptor]:
        """All components in execution order."""
        return list(self._components)

    def get(self, name: str) -> ComponentDescriptor | None:
        for c in self._components:
            if c.name == name:
                return c
        return None

    def kinds(self) -> set[ProviderKind]:
        """Provider kinds used by at least one component."""
        return {c.provider_kind for c in self._components}

    def __len__(self) -> int:
        return len(self._components)

    def __iter__(self):
        return iter(self._components)


def _apply_variant(
    component: ComponentDescriptor,
    requested: str | None,
) -> ComponentDescriptor:
    """Resolve the flavor to use for ``component``."""
    variant = requested or component.default_variant
    if not variant:
        return component

    if variant not in component.variants:
        available = ", ".join(sorted(component.variants)) or "none declared"
        raise ConfigError(
            f"Unknown variant '{variant}' for component '{component.name}' "
            f"(available: {available})"
        )

    try:
        return component.with_variant(variant)
    except ValueError as e:
        raise ConfigError(
            f"Variant '{variant}' of '{component.name}' is invalid: {e}"
        ) from e
