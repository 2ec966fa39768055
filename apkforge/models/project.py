"""
Project configuration tree.

These models mirror the declarative TOML schema one to one. Every repeated
declaration is a list so declaration order survives all the way into the
manifest. Unknown keys are accepted (``extra="allow"``) and later reported by
the loader instead of being dropped.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.exceptions import InvalidPackageName
from .target import StripConfig, Target

_SEGMENT = re.compile(r"^[A-Za-z][A-Za-z0-9_]*$")
_VERSION = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:[-+].*)?$")


class _Section(BaseModel):
    model_config = ConfigDict(extra="allow", frozen=True)


class IntentData(_Section):
    """A ``<data>`` element of an intent filter or query intent."""

    mime_type: str | None = None
    scheme: str | None = None
    host: str | None = None
    port: str | None = None
    path: str | None = None
    path_prefix: str | None = None

    @field_validator("port", mode="before")
    @classmethod
    def _port_as_text(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


class IntentFilter(_Section):
    actions: list[str] = Field(default_factory=list)
    categories: list[str] = Field(default_factory=list)
    data: list[IntentData] = Field(default_factory=list)


class MetaData(_Section):
    name: str
    value: str


class Activity(_Section):
    """The single native activity hosting the compiled library."""

    config_changes: str | None = None
    label: str | None = None
    launch_mode: str | None = None
    orientation: str | None = None
    exported: bool | None = None
    resizeable_activity: bool | None = None
    always_retain_task_state: bool | None = None
    meta_data: list[MetaData] = Field(default_factory=list)
    intent_filter: list[IntentFilter] = Field(default_factory=list)


class Application(_Section):
    debuggable: bool | None = None
    theme: str | None = None
    icon: str | None = None
    label: str | None = None
    extract_native_libs: bool | None = None
    uses_cleartext_traffic: bool | None = None
    meta_data: list[MetaData] = Field(default_factory=list)
    activity: Activity = Field(default_factory=Activity)


class Feature(_Section):
    """A ``<uses-feature>`` requirement."""

    name: str | None = None
    required: bool | None = None
    version: int | None = None
    opengles_version: tuple[int, int] | None = None


class Permission(_Section):
    """A ``<uses-permission>`` requirement."""

    name: str
    max_sdk_version: int | None = None


class QueryProvider(_Section):
    authorities: str
    name: str | None = None


class QueryIntent(_Section):
    actions: list[str] = Field(default_factory=list)
    data: list[IntentData] = Field(default_factory=list)


class QueryPackage(_Section):
    name: str


class Queries(_Section):
    provider: list[QueryProvider] = Field(default_factory=list)
    intent: list[QueryIntent] = Field(default_factory=list)
    package: list[QueryPackage] = Field(default_factory=list)


class Sdk(_Section):
    """``uses-sdk`` versions. ``target_sdk_version`` is always set after loading."""

    min_sdk_version: int = Field(default=23, ge=1)
    target_sdk_version: int | None = Field(default=None, ge=1)
    max_sdk_version: int | None = Field(default=None, ge=1)


class SigningEntry(_Section):
    """Keystore declared in the configuration for one profile."""

    path: Path
    keystore_password: str


class ProjectConfig(_Section):
    """Validated, immutable project configuration."""

    package: str
    build_targets: list[Target] = Field(min_length=1)
    resources: Path | None = None
    assets: Path | None = None
    apk_name: str
    strip: StripConfig = StripConfig.DEFAULT
    runtime_libs: Path | None = None
    shared_user_id: str | None = None
    version: str | None = None
    lib_name: str
    signing: dict[str, SigningEntry] = Field(default_factory=dict)
    sdk: Sdk = Field(default_factory=Sdk)
    uses_feature: list[Feature] = Field(default_factory=list)
    uses_permission: list[Permission] = Field(default_factory=list)
    queries: Queries | None = None
    application: Application = Field(default_factory=Application)
    reverse_port_forward: dict[str, str] = Field(default_factory=dict)

    project_root: Path
    unrecognized: tuple[str, ...] = ()

    @field_validator("version")
    @classmethod
    def _check_version(cls, value: str | None) -> str | None:
        if value is None:
            return value
        match = _VERSION.match(value)
        if not match:
            raise ValueError(f"'{value}' is not a MAJOR.MINOR.PATCH version")
        if any(int(part) > 255 for part in match.groups()):
            raise ValueError(f"'{value}' has a component above 255")
        return value

    @property
    def version_code(self) -> int | None:
        """Android ``versionCode`` packed from the semantic version."""
        if self.version is None:
            return None
        major, minor, patch = (int(p) for p in _VERSION.match(self.version).groups())  # type: ignore[union-attr]
        return 1 << 24 | major << 16 | minor << 8 | patch

    @property
    def target_sdk(self) -> int:
        return self.sdk.target_sdk_version or self.sdk.min_sdk_version

    def resolve(self, path: Path) -> Path:
        """Resolve a configured path against the project root."""
        return path if path.is_absolute() else self.project_root / path


def normalize_package_name(name: Any) -> str:
    """Validate a reverse-domain package identifier and return it stripped.

    Raises:
        InvalidPackageName: If the name is empty, has fewer than two
            segments, or a segment is not a Java identifier.
    """
    if not isinstance(name, str):
        raise InvalidPackageName(message="package must be a string", package=str(name), field_name="package")
    candidate = name.strip()
    if not candidate:
        raise InvalidPackageName(message="package must not be empty", package=name, field_name="package")
    segments = candidate.split(".")
    if len(segments) < 2:
        raise InvalidPackageName(
            message="expected a reverse-domain name with at least two segments",
            package=name,
            field_name="package",
        )
    for segment in segments:
        if not _SEGMENT.match(segment):
            raise InvalidPackageName(
                message=f"segment '{segment}' must start with a letter and contain only letters, digits or '_'",
                package=name,
                field_name="package",
            )
    return candidate


def sanitize_output_name(package: str) -> str:
    """Turn a package identifier into a file-name-safe package output name."""
    return re.sub(r"[^A-Za-z0-9_]", "_", package)


def collect_unrecognized(model: BaseModel, prefix: str = "") -> list[str]:
    """Return dotted paths of every extra key found anywhere in the tree."""
    found: list[str] = []
    for key in sorted(model.model_extra or {}):
        found.append(f"{prefix}{key}")
    for name in type(model).model_fields:
        value = getattr(model, name)
        path = f"{prefix}{name}"
        if isinstance(value, BaseModel):
            found.extend(collect_unrecognized(value, f"{path}."))
        elif isinstance(value, list):
            for index, item in enumerate(value):
                if isinstance(item, BaseModel):
                    found.extend(collect_unrecognized(item, f"{path}[{index}]."))
        elif isinstance(value, dict):
            for key, item in value.items():
                if isinstance(item, BaseModel):
                    found.extend(collect_unrecognized(item, f"{path}.{key}."))
    return found
