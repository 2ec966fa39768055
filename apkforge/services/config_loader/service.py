"""
Config Loader Service.

Parses the declarative TOML project description into a validated, immutable
ProjectConfig, applying defaults and clamping the SDK versions to what the
installed toolchain supports.
"""

from __future__ import annotations

import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from ...core.exceptions import ConfigError, UnsupportedTarget
from ...core.logging import get_logger
from ...core.types import ServiceResult
from ...models.project import (
    ProjectConfig,
    collect_unrecognized,
    normalize_package_name,
    sanitize_output_name,
)
from ...models.target import SUPPORTED_TARGETS, Target

logger = get_logger(__name__)

DEFAULT_MIN_SDK = 23
DEFAULT_TARGET_SDK = 30
DEFAULT_TARGETS = [Target.ARM64.value]

# Keys the loader fills in itself; user-supplied values are never trusted.
_INTERNAL_KEYS = ("project_root", "unrecognized")


class ConfigLoader:
    """Service that loads project configuration.

    Accepts either a standalone ``apkforge.toml`` whose top level is the
    Android table, or a ``Cargo.toml`` carrying it under
    ``[package.metadata.android]``.
    """

    def __init__(self, toolchain_ceiling: int | None = None) -> None:
        """Initialize the loader.

        Args:
            toolchain_ceiling: Highest platform API level the installed
                toolchain supports, None when unknown.
        """
        self.toolchain_ceiling = toolchain_ceiling

    def load(self, path: Path) -> ServiceResult[ProjectConfig]:
        """Load and validate a configuration file.

        Raises:
            ConfigError: If the file is missing, not TOML, or fails validation.
        """
        if not path.is_file():
            raise ConfigError(message=f"configuration file not found: {path}", field_name=str(path))
        try:
            with open(path, "rb") as f:
                document = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(message=f"{path} is not valid TOML: {e}", cause=e) from e

        logger.info("Loading configuration", path=str(path))
        return self.load_mapping(self._android_table(document), path.resolve().parent)

    @staticmethod
    def _android_table(document: dict[str, Any]) -> dict[str, Any]:
        package = document.get("package")
        if not isinstance(package, dict):
            return dict(document)

        # Cargo.toml layout
        metadata = package.get("metadata", {})
        if not isinstance(metadata, dict):
            raise ConfigError(message="must be a table", field_name="package.metadata")
        android = metadata.get("android")
        if not isinstance(android, dict):
            raise ConfigError(
                message="Cargo.toml has no [package.metadata.android] table",
                field_name="package.metadata.android",
            )
        lib = document.get("lib", {})
        if not isinstance(lib, dict):
            raise ConfigError(message="must be a table", field_name="lib")
        table = dict(android)
        crate_name = str(package.get("name", "")).replace("-", "_")
        lib_name = lib.get("name") or crate_name
        if lib_name:
            table.setdefault("lib_name", lib_name)
            table.setdefault("package", f"rust.{lib_name}")
        if isinstance(package.get("version"), str):
            table.setdefault("version", package["version"])
        return table

    def load_mapping(self, raw: dict[str, Any], project_root: Path) -> ServiceResult[ProjectConfig]:
        """Validate an already parsed configuration table.

        Args:
            raw: The Android configuration table.
            project_root: Directory relative paths are resolved against.

        Returns:
            ServiceResult with the ProjectConfig and one warning per
            unrecognized key or applied clamp.

        Raises:
            InvalidPackageName: If the package identifier is malformed.
            UnsupportedTarget: If a build target is not supported.
            ConfigError: For any other invalid value.
        """
        data = dict(raw)
        warnings: list[str] = []

        misplaced = [key for key in _INTERNAL_KEYS if key in data]
        for key in misplaced:
            data.pop(key)

        if "package" not in data:
            raise ConfigError(message="'package' is required", field_name="package")
        data["package"] = normalize_package_name(data["package"])
        data["build_targets"] = self._targets(data.get("build_targets", DEFAULT_TARGETS))
        data.setdefault("apk_name", sanitize_output_name(data["package"]))
        data.setdefault("lib_name", data["package"].rsplit(".", 1)[-1])
        data["sdk"] = self._sdk(data.get("sdk", {}), warnings)
        data["project_root"] = project_root

        try:
            config = ProjectConfig.model_validate(data)
        except ValidationError as e:
            first = e.errors()[0]
            field_name = ".".join(str(part) for part in first["loc"])
            raise ConfigError(message=first["msg"], field_name=field_name, cause=e) from e

        unrecognized = sorted({*collect_unrecognized(config), *misplaced})
        if unrecognized:
            config = config.model_copy(update={"unrecognized": tuple(unrecognized)})
            for key in unrecognized:
                logger.warning("Unrecognized configuration key", key=key)
            warnings.extend(f"unrecognized configuration key '{key}'" for key in unrecognized)

        logger.info(
            "Configuration loaded",
            package=config.package,
            targets=[t.value for t in config.build_targets],
            min_sdk=config.sdk.min_sdk_version,
            target_sdk=config.sdk.target_sdk_version,
        )
        return ServiceResult(config, warnings)

    @staticmethod
    def _targets(value: Any) -> list[str]:
        if not isinstance(value, list):
            raise ConfigError(message="must be a list of target triples", field_name="build_targets")
        if not value:
            raise ConfigError(message="at least one build target is required", field_name="build_targets")
        targets: list[str] = []
        for entry in value:
            if entry not in SUPPORTED_TARGETS:
                raise UnsupportedTarget(
                    message=f"expected one of {', '.join(SUPPORTED_TARGETS)}",
                    target=str(entry),
                    field_name="build_targets",
                )
            if entry not in targets:
                targets.append(entry)
        return targets

    def _sdk(self, value: Any, warnings: list[str]) -> dict[str, Any]:
        if not isinstance(value, dict):
            raise ConfigError(message="must be a table", field_name="sdk")
        sdk = dict(value)
        for key in ("min_sdk_version", "target_sdk_version", "max_sdk_version"):
            if key in sdk and (not isinstance(sdk[key], int) or isinstance(sdk[key], bool)):
                raise ConfigError(message="must be an integer", field_name=f"sdk.{key}")

        ceiling = self.toolchain_ceiling
        min_sdk = sdk.setdefault("min_sdk_version", DEFAULT_MIN_SDK)
        default_target = DEFAULT_TARGET_SDK if ceiling is None else min(DEFAULT_TARGET_SDK, ceiling)
        target_sdk = sdk.setdefault("target_sdk_version", default_target)

        if ceiling is not None and target_sdk > ceiling:
            message = f"target_sdk_version {target_sdk} clamped to installed platform {ceiling}"
            logger.warning("Target SDK clamped", requested=target_sdk, ceiling=ceiling)
            warnings.append(message)
            target_sdk = sdk["target_sdk_version"] = ceiling

        max_sdk = sdk.get("max_sdk_version")
        if min_sdk > target_sdk:
            raise ConfigError(
                message=f"min_sdk_version {min_sdk} is above target_sdk_version {target_sdk}",
                field_name="sdk.min_sdk_version",
            )
        if max_sdk is not None and target_sdk > max_sdk:
            raise ConfigError(
                message=f"target_sdk_version {target_sdk} is above max_sdk_version {max_sdk}",
                field_name="sdk.max_sdk_version",
            )
        return sdk
