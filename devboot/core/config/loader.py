"""
Configuration loader — reads components.yml into domain models.

This is the primary entry point for loading the component registry.
It reads YAML, resolves custom action references, validates against
Pydantic schemas, and returns typed objects.

File shape::

    settings:
      native_manager: winget
      timeouts: {check: 15, install: 60}
    components:
      - name: oh-my-posh
        native: {package_id: JanDeDobbeleer.OhMyPosh}
      - name: PSReadLine
        gallery: {module_name: PSReadLine, min_version: 2.3.0}
      - name: prompt-config
        custom:
          install: deploy_file
          validate: file_deployed
          args: {source: files/theme.omp.json, target: ~/.config/theme.omp.json}
        depends_on: [oh-my-posh]

Each component names exactly one provider key.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from devboot.core.config.settings import Settings
from devboot.core.models.component import ComponentDescriptor, ProviderKind

logger = logging.getLogger(__name__)

# Default registry filename
COMPONENTS_FILE = "components.yml"
COMPONENTS_ENV = "DEVBOOT_COMPONENTS"

_DEFAULT_COMPONENTS = Path(__file__).resolve().parent.parent / "data" / "default_components.yml"

_PROVIDER_KEYS = tuple(k.value for k in ProviderKind)


class ConfigError(Exception):
    """Raised when the component registry is invalid or missing."""


@dataclass
class LoadedConfig:
    """Everything read from one registry file."""

    path: Path
    settings: Settings
    components: list[ComponentDescriptor]


def find_components_file(start_dir: Path | None = None) -> Path | None:
    """Search for components.yml starting from the given directory, walking up.

    Args:
        start_dir: Directory to start searching from (default: cwd).

    Returns:
        Path to components.yml, or None if not found.
    """
    current = (start_dir or Path.cwd()).resolve()

    for _ in range(20):  # safety limit
        candidate = current / COMPONENTS_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    return None


def default_components_file() -> Path:
    """The registry bundled with devboot."""
    return _DEFAULT_COMPONENTS


def resolve_components_path(explicit: Path | None = None) -> Path:
    """Pick the registry file: explicit > $DEVBOOT_COMPONENTS > search > bundled."""
    if explicit is not None:
        return explicit
    env = os.environ.get(COMPONENTS_ENV)
    if env:
        return Path(env).expanduser()
    return find_components_file() or default_components_file()


def load_config(path: Path) -> LoadedConfig:
    """Load and validate a registry file.

    Raises:
        ConfigError: If the file is missing or invalid.
    """
    if not path.is_file():
        raise ConfigError(f"Components file not found: {path}")

    logger.debug("Loading components from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        settings = Settings.model_validate(data.get("settings") or {})
    except ValidationError as e:
        raise ConfigError(f"Invalid settings in {path}: {e}") from e
    settings.base_dir = path.parent.resolve()

    raw_components = data.get("components") or []
    if not isinstance(raw_components, list):
        raise ConfigError(f"'components' in {path} must be a list")

    components = [
        parse_component(item, index) for index, item in enumerate(raw_components)
    ]

    logger.info("Loaded %d components from %s", len(components), path)
    return LoadedConfig(path=path, settings=settings, components=components)


def parse_component(item: Any, index: int = 0) -> ComponentDescriptor:
    """Turn one YAML component mapping into a descriptor.

    Raises:
        ConfigError: If the entry is malformed.
    """
    from devboot.core.services.custom_actions import resolve_action

    if not isinstance(item, dict):
        raise ConfigError(f"Component #{index + 1} must be a mapping")

    name = item.get("name") or f"#{index + 1}"
    present = [k for k in _PROVIDER_KEYS if k in item]
    if len(present) != 1:
        found = ", ".join(present) or "none"
        raise ConfigError(
            f"Component '{name}' must declare exactly one of "
            f"{', '.join(_PROVIDER_KEYS)} (found: {found})"
        )

    kind = present[0]
    block = item.get(kind)
    if block is not None and not isinstance(block, dict):
        raise ConfigError(f"Component '{name}': '{kind}' must be a mapping")
    params = dict(block or {})
    params["kind"] = kind

    if kind == ProviderKind.CUSTOM.value:
        for key in ("install", "validate", "update"):
            if params.get(key) is None:
                continue
            try:
                params[key] = resolve_action(params[key])
            except ValueError as e:
                raise ConfigError(f"Component '{name}': {e}") from e

    data = {k: v for k, v in item.items() if k not in _PROVIDER_KEYS}
    data["params"] = params

    try:
        return ComponentDescriptor.model_validate(data)
    except ValidationError as e:
        raise ConfigError(f"Invalid component '{name}': {e}") from e


def load_registry(
    path: Path | None = None,
    preferred_variants: dict[str, str] | None = None,
):
    """Load a registry file and build the ordered registry.

    Returns:
        ``(ComponentRegistry, Settings)``.

    Raises:
        ConfigError: If the file or the dependency graph is invalid.
    """
    from devboot.core.services.registry import ComponentRegistry

    config = load_config(resolve_components_path(path))
    registry = ComponentRegistry(config.components, preferred_variants=preferred_variants)
    return registry, config.settings
