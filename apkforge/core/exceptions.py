"""
Custom exception hierarchy for apkforge.

All exceptions inherit from ApkForgeError so the CLI can report any pipeline
failure uniformly. Each exception type names the pipeline stage it belongs to
and carries the target, profile or path needed to act on it.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar


@dataclass
class ApkForgeError(Exception):
    """Base exception for all apkforge errors."""

    message: str
    context: dict[str, Any] = field(default_factory=dict)
    cause: Exception | None = None

    stage: ClassVar[str] = "pipeline"

    def __str__(self) -> str:
        ctx = f" | context: {self.context}" if self.context else ""
        cause = f" | caused by: {self.cause}" if self.cause else ""
        return f"{self.message}{ctx}{cause}"


@dataclass
class ConfigError(ApkForgeError):
    """Raised when the project configuration is malformed or invalid."""

    field_name: str | None = None

    stage: ClassVar[str] = "config"

    def __str__(self) -> str:
        base = super().__str__()
        if self.field_name:
            return f"Invalid configuration at '{self.field_name}': {base}"
        return f"Invalid configuration: {base}"


@dataclass
class InvalidPackageName(ConfigError):
    """Raised when the package identifier is not a reverse-domain name."""

    package: str = ""

    def __str__(self) -> str:
        return f"Invalid package name '{self.package}': {self.message}"


@dataclass
class UnsupportedTarget(ConfigError):
    """Raised when a build target is not a supported architecture."""

    target: str = ""

    def __str__(self) -> str:
        return f"Unsupported build target '{self.target}': {self.message}"


@dataclass
class BuildError(ApkForgeError):
    """Raised when compiling one or more targets fails.

    ``failed_targets`` maps each failing architecture identifier to the
    compiler's error output. Targets that were only aborted because another
    target failed are never listed.
    """

    failed_targets: dict[str, str] = field(default_factory=dict)

    stage: ClassVar[str] = "build"

    def __str__(self) -> str:
        names = ", ".join(self.failed_targets) or "unknown"
        return f"Build failed for target(s) {names}: {self.message}"


@dataclass
class PackagingError(ApkForgeError):
    """Raised when the package layout cannot be assembled or archived."""

    path: str = ""

    stage: ClassVar[str] = "package"

    def __str__(self) -> str:
        base = super().__str__()
        return f"Packaging failed ({self.path}): {base}" if self.path else f"Packaging failed: {base}"


@dataclass
class SigningError(ApkForgeError):
    """Raised when no usable signing credential exists or signing fails."""

    profile: str = ""

    stage: ClassVar[str] = "sign"

    def __str__(self) -> str:
        return f"Signing failed for profile '{self.profile}': {self.message}"


@dataclass
class DeviceError(ApkForgeError):
    """Raised when a device operation cannot be completed."""

    serial: str = ""
    operation: str = ""

    stage: ClassVar[str] = "device"

    def __str__(self) -> str:
        base = super().__str__()
        where = f"{self.serial or 'default device'}"
        return f"[{where}.{self.operation}] {base}" if self.operation else f"[{where}] {base}"


@dataclass
class DeviceUnavailable(DeviceError):
    """Raised when the device bridge times out or cannot reach the device."""


@dataclass
class ToolNotFoundError(ApkForgeError):
    """Raised when a required external tool is not available."""

    tool_name: str = ""
    expected_path: str = ""
    install_hint: str = ""

    stage: ClassVar[str] = "toolchain"

    def __str__(self) -> str:
        hint = f" Install hint: {self.install_hint}" if self.install_hint else ""
        return f"Tool '{self.tool_name}' not found at '{self.expected_path}'.{hint}"
