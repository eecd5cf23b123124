"""
Domain models — Pydantic types for devboot.

All models are re-exported here for convenient access:

    from devboot.core.models import ComponentDescriptor, OperationResult, RunSummary
"""

from devboot.core.models.component import (
    ComponentDescriptor,
    ConfigRepoParams,
    CustomParams,
    GalleryModuleParams,
    NativePackageParams,
    Operation,
    ProviderKind,
    SecondaryPackageParams,
)
from devboot.core.models.result import (
    TIMEOUT_EXIT_CODE,
    ActionOutcome,
    OperationResult,
    OperationStatus,
    RunSummary,
)

__all__ = [
    # component.py
    "ComponentDescriptor",
    "ConfigRepoParams",
    "CustomParams",
    "GalleryModuleParams",
    "NativePackageParams",
    "Operation",
    "ProviderKind",
    "SecondaryPackageParams",
    # result.py
    "TIMEOUT_EXIT_CODE",
    "ActionOutcome",
    "OperationResult",
    "OperationStatus",
    "RunSummary",
]
