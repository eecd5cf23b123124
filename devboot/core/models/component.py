"""
Component model — the unit of installable work.

A ComponentDescriptor is the static declaration of one installable
thing: a name, a provider kind, and the parameters that provider needs.
Provider parameters are a tagged union discriminated by ``kind``, so a
descriptor always has exactly one provider kind and each provider's
required fields are validated when the registry is loaded.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ProviderKind(str, Enum):
    """Which provider strategy handles a component."""

    NATIVE = "native"          # OS package manager (winget)
    GALLERY = "gallery"        # PowerShell Gallery module
    CUSTOM = "custom"          # registry-supplied install/validate callables
    SECONDARY = "secondary"    # secondary package manager (scoop)
    REPO = "repo"              # git-synced configuration repository


class Operation(str, Enum):
    """The three operations every provider understands."""

    INSTALL = "install"
    VALIDATE = "validate"
    UPDATE = "update"


# ── Provider parameters ─────────────────────────────────────────


class NativePackageParams(BaseModel):
    """Parameters for a native package manager install."""

    kind: Literal["native"] = "native"
    package_id: str
    source: str | None = None
    version_command: list[str] | None = None
    version_pattern: str = r"\d+(?:\.\d+)+"


class GalleryModuleParams(BaseModel):
    """Parameters for a module-gallery install."""

    kind: Literal["gallery"] = "gallery"
    module_name: str
    min_version: str | None = None


class CustomParams(BaseModel):
    """Registry-supplied actions.

    ``install`` and ``validate`` are both required. ``update`` falls
    back to ``install`` when omitted. Every callable is invoked as
    ``fn(ctx, **args)``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    kind: Literal["custom"] = "custom"
    install: Callable[..., Any]
    validate_fn: Callable[..., Any] = Field(alias="validate")
    update: Callable[..., Any] | None = None
    args: dict[str, Any] = Field(default_factory=dict)


class SecondaryPackageParams(BaseModel):
    """Parameters for the secondary package manager (scoop)."""

    kind: Literal["secondary"] = "secondary"
    app: str
    bucket: str | None = None


class ConfigRepoParams(BaseModel):
    """A git repository synced into a local path."""

    kind: Literal["repo"] = "repo"
    url: str
    path: str
    branch: str | None = None


ProviderParams = Annotated[
    Union[
        NativePackageParams,
        GalleryModuleParams,
        CustomParams,
        SecondaryPackageParams,
        ConfigRepoParams,
    ],
    Field(discriminator="kind"),
]


class ComponentDescriptor(BaseModel):
    """Static declaration of one installable component."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str
    params: ProviderParams
    optional: bool = False
    description: str = ""
    depends_on: list[str] = Field(default_factory=list)
    expect_paths: list[str] = Field(default_factory=list)
    hint: str | None = None                       # per-component remediation hint

    # Interchangeable flavors: variant name → parameter overrides
    variants: dict[str, dict[str, Any]] = Field(default_factory=dict)
    default_variant: str | None = None
    selected_variant: str | None = None

    @field_validator("name")
    @classmethod
    def _name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("component name must not be empty")
        return v.strip()

    @property
    def provider_kind(self) -> ProviderKind:
        return ProviderKind(self.params.kind)

    @property
    def label(self) -> str:
        """Name plus selected variant, for display."""
        if self.selected_variant:
            return f"{self.name} [{self.selected_variant}]"
        return self.name

    def with_variant(self, variant: str) -> ComponentDescriptor:
        """Return a copy with the given variant's overrides applied.

        Raises:
            KeyError: If the variant is not declared.
        """
        overrides = self.variants[variant]
        if isinstance(self.params, CustomParams):
            params = self.params.model_copy(
                update={"args": {**self.params.args, **overrides}},
            )
        else:
            data = self.params.model_dump()
            data.update(overrides)
            params = type(self.params).model_validate(data)
        return self.model_copy(update={"params": params, "selected_variant": variant})
