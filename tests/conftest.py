"""Test configuration for apkforge."""

import tempfile
from pathlib import Path

import pytest

from apkforge.core.config import Config, DeviceConfig, SigningConfig
from apkforge.orchestration import Toolchain
from apkforge.services.config_loader import ConfigLoader
from tests.fakes import (
    FakeArchiver,
    FakeCompiler,
    FakeDebugger,
    FakeDeviceBridge,
    FakeSigningTool,
    FakeSymbolTool,
)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests.

    Yields:
        Path: A Path object pointing to the temporary directory.
            The directory is automatically cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def project_dir(temp_dir):
    """A project directory holding a minimal apkforge.toml."""
    root = temp_dir / "project"
    root.mkdir()
    (root / "apkforge.toml").write_text(
        'package = "com.example.demo"\n'
        'build_targets = ["aarch64-linux-android", "x86_64-linux-android"]\n'
    )
    return root


@pytest.fixture
def load_project(temp_dir):
    """Validate a configuration mapping rooted at the temp directory."""

    def _load(**raw):
        raw.setdefault("package", "com.example.demo")
        return ConfigLoader().load_mapping(raw, temp_dir).data

    return _load


@pytest.fixture
def signing_settings(temp_dir):
    """Signing settings with the debug keystore inside the temp directory."""
    return SigningConfig(debug_keystore_path=temp_dir / "android" / "debug.keystore")


@pytest.fixture
def device_settings():
    """Short timeouts so launch polling finishes quickly."""
    return DeviceConfig(launch_timeout_seconds=0.3, poll_interval_seconds=0.01)


@pytest.fixture
def fake_toolchain(temp_dir):
    """A complete toolchain of fakes."""
    return Toolchain(
        compiler=FakeCompiler(temp_dir / "cargo-out"),
        symbol_tool=FakeSymbolTool(),
        archiver=FakeArchiver(),
        signing_tool=FakeSigningTool(),
        bridge=FakeDeviceBridge(pids=[4242, 4242, None]),
        debugger=FakeDebugger(),
    )


@pytest.fixture
def tool_config(signing_settings, device_settings):
    """Tool configuration that never touches the user's home directory."""
    return Config(signing=signing_settings, device=device_settings)
