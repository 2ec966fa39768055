"""
Configuration management for apkforge.

Tool-level settings (where the SDK lives, how many compiles may run at once,
where the debug keystore is kept, how long to wait on the device) with
environment variable overrides and sensible defaults. Project-level settings
live in the TOML configuration tree, see ``apkforge.models.project``.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field

# Load .env file if it exists (looks in cwd and parent directories)
load_dotenv()


def _env_path(*names: str) -> Path | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return Path(value).expanduser()
    return None


class ToolsConfig(BaseModel):
    """External tools configuration."""

    android_sdk_root: Path | None = Field(
        default_factory=lambda: _env_path("ANDROID_HOME", "ANDROID_SDK_ROOT"),
        description="Android SDK root path",
    )
    android_ndk_root: Path | None = Field(
        default_factory=lambda: _env_path("ANDROID_NDK_ROOT", "ANDROID_NDK_HOME", "NDK_HOME"),
        description="Android NDK root path",
    )
    build_tools_version: str | None = Field(
        default=None, description="Build-tools version, highest installed if unset"
    )
    cargo: str = Field(default="cargo", description="Cargo executable")


class BuildConfig(BaseModel):
    """Compilation configuration."""

    max_parallel: int = Field(
        default_factory=lambda: max(os.cpu_count() or 1, 1),
        ge=1,
        description="Maximum number of concurrent target compiles",
    )
    target_dir: Path | None = Field(
        default=None, description="Cargo target directory, <project>/target if unset"
    )
    ndk_min_sdk: int = Field(default=23, ge=1, description="Lowest API level passed to the compiler")


class SigningConfig(BaseModel):
    """Signing credential configuration."""

    dev_profile: str = Field(default="dev", description="Profile allowed to use the debug keystore")
    env_prefix: str = Field(default="APKFORGE", description="Prefix of keystore environment variables")
    debug_keystore_path: Path = Field(
        default_factory=lambda: Path("~/.android/debug.keystore").expanduser(),
        description="Location of the auto-generated development keystore",
    )
    debug_keystore_password: str = Field(default="android")
    debug_key_alias: str = Field(default="androiddebugkey")
    debug_key_dname: str = Field(default="CN=Android Debug,O=Android,C=US")
    debug_key_validity_days: int = Field(default=10000, ge=1)


class DeviceConfig(BaseModel):
    """Device bridge configuration."""

    serial: str | None = Field(default=None, description="Device serial, adb default if unset")
    command_timeout_seconds: float = Field(default=60.0, gt=0, description="Bound on every adb call")
    launch_timeout_seconds: float = Field(default=15.0, gt=0, description="Wait for the app process")
    poll_interval_seconds: float = Field(default=1.0, gt=0, description="Process liveness poll interval")


class ManifestPolicy(BaseModel):
    """Manifest defaults that track the behaviour of the manifest compiler.

    Kept as data so a different aapt/platform combination can adjust them
    without touching the synthesizer.
    """

    exported_required_sdk: int = Field(
        default=31, description="Target SDK from which activity 'exported' defaults to true"
    )
    provider_name_required: bool = Field(
        default=True, description="aapt rejects query providers without android:name"
    )
    activity_name: str = Field(default="android.app.NativeActivity")
    has_code: bool = Field(default=False)
    default_config_changes: str | None = Field(default="orientation|keyboardHidden|screenSize")


class Config(BaseModel):
    """Root configuration for apkforge."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    build: BuildConfig = Field(default_factory=BuildConfig)
    signing: SigningConfig = Field(default_factory=SigningConfig)
    device: DeviceConfig = Field(default_factory=DeviceConfig)
    manifest: ManifestPolicy = Field(default_factory=ManifestPolicy)

    model_config = {"extra": "ignore"}

    @classmethod
    def from_env(cls) -> Config:
        """Create configuration from environment variables."""
        build = BuildConfig()
        if os.environ.get("APKFORGE_MAX_PARALLEL"):
            build = BuildConfig(max_parallel=int(os.environ["APKFORGE_MAX_PARALLEL"]))

        signing = SigningConfig()
        keystore = _env_path("APKFORGE_DEBUG_KEYSTORE")
        if keystore is not None:
            signing = SigningConfig(debug_keystore_path=keystore)

        return cls(
            log_level=os.environ.get("APKFORGE_LOG_LEVEL", "INFO"),  # type: ignore
            build=build,
            signing=signing,
            device=DeviceConfig(
                serial=os.environ.get("APKFORGE_DEVICE_SERIAL") or None,
                command_timeout_seconds=float(os.environ.get("APKFORGE_DEVICE_TIMEOUT", "60")),
            ),
        )


@lru_cache(maxsize=1)
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()
