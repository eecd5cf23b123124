"""
Provider dispatch — central routing from components to providers.

The runner never talks to providers directly: every install, validate
and update goes through ``ProviderDispatch.dispatch``, which resolves
the provider for the component's kind, handles unavailable backends,
and converts anything a provider raises into a failed OperationResult.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any

from devboot.adapters.base import Provider
from devboot.core.config.settings import Settings
from devboot.core.models.component import ComponentDescriptor, Operation, ProviderKind
from devboot.core.models.result import OperationResult

logger = logging.getLogger(__name__)


class ProviderDispatch:
    """Registry and dispatcher for providers.

    Features:
        - Register/replace providers by kind (the extension point)
        - Route install/validate/update to the right provider
        - Never raise: failures come back as OperationResults
    """

    def __init__(self) -> None:
        self._providers: dict[ProviderKind, Provider] = {}

    def register(self, provider: Provider) -> None:
        """Register a provider, replacing any existing one for its kind."""
        kind = provider.kind
        if kind in self._providers:
            logger.debug("Replacing provider for %s: %r", kind.value, provider)
        self._providers[kind] = provider

    def unregister(self, kind: ProviderKind) -> None:
        self._providers.pop(kind, None)

    def get(self, kind: ProviderKind) -> Provider | None:
        return self._providers.get(kind)

    def list_providers(self) -> list[str]:
        return [k.value for k in self._providers]

    def provider_status(self) -> dict[str, dict[str, Any]]:
        """Availability of every registered provider."""
        status = {}
        for kind, provider in self._providers.items():
            try:
                available = provider.is_available()
            except Exception:
                available = False
            status[kind.value] = {
                "kind": kind.value,
                "available": available,
                "type": provider.__class__.__name__,
            }
        return status

    def prepare(self, operation: Operation, kinds: set[ProviderKind]) -> None:
        """Give each provider in use its once-per-pass hook."""
        for kind in kinds:
            provider = self._providers.get(kind)
            if provider is None:
                continue
            try:
                provider.prepare(operation)
            except Exception as e:
                logger.warning("Provider %s failed to prepare: %s", kind.value, e)

    def dispatch(
        self,
        component: ComponentDescriptor,
        operation: Operation,
    ) -> OperationResult:
        """Apply ``operation`` to ``component`` through its provider.

        This is the main dispatch method. It:
        1. Resolves the provider for the component's kind
        2. Skips or fails when the backend is unavailable
        3. Runs the operation, catching anything raised
        4. Adds validate diagnostics and timing
        """
        start = time.monotonic()
        op = operation.value
        kind = component.provider_kind

        provider = self._providers.get(kind)
        if provider is None:
            return OperationResult.failure(
                component.name,
                op,
                f"No provider registered for '{kind.value}'",
                provider=kind.value,
            )

        try:
            available = provider.is_available()
        except Exception:
            available = False

        if not available:
            reason = provider.unavailable_reason()
            if provider.optional_backend:
                return OperationResult.skip(component.name, op, reason, provider=kind.value)
            return OperationResult.failure(component.name, op, reason, provider=kind.value)

        try:
            if operation == Operation.INSTALL:
                result = provider.install(component)
            elif operation == Operation.VALIDATE:
                result = provider.validate(component)
            else:
                result = provider.update(component)
        except Exception as e:
            # Providers should never raise; this keeps the run going if one does
            logger.error("Provider %s raised for %s: %s", kind.value, component.name, e)
            result = OperationResult.failure(
                component.name,
                op,
                str(e) or e.__class__.__name__,
                provider=kind.value,
            )

        if operation == Operation.VALIDATE and result.ok:
            result.diagnostics.extend(_missing_paths(component))

        if not result.duration_ms:
            result.duration_ms = int((time.monotonic() - start) * 1000)

        return result


def _missing_paths(component: ComponentDescriptor) -> list[str]:
    missing = []
    for raw in component.expect_paths:
        path = Path(raw).expanduser()
        if not path.exists():
            missing.append(f"expected file not deployed: {path}")
    return missing


def default_dispatch(settings: Settings | None = None) -> ProviderDispatch:
    """Dispatch with every built-in provider registered."""
    from devboot.adapters.custom import CustomProvider
    from devboot.adapters.packages.gallery import GalleryModuleProvider
    from devboot.adapters.packages.native import NativePackageProvider
    from devboot.adapters.packages.secondary import SecondaryPackageProvider
    from devboot.adapters.vcs.git import ConfigRepoProvider

    settings = settings or Settings()
    dispatch = ProviderDispatch()
    dispatch.register(NativePackageProvider(settings))
    dispatch.register(GalleryModuleProvider(settings))
    dispatch.register(CustomProvider(settings))
    dispatch.register(SecondaryPackageProvider(settings))
    dispatch.register(ConfigRepoProvider(settings))
    return dispatch
