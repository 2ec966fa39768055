"""Unit tests for the configuration loader."""

from pathlib import Path

import pytest

from apkforge.core.exceptions import ConfigError, InvalidPackageName, UnsupportedTarget
from apkforge.models.target import StripConfig, Target
from apkforge.services.config_loader import ConfigLoader


class TestLoadMapping:
    """Tests for validating parsed configuration tables."""

    def test_minimal_configuration_defaults(self, temp_dir):
        """Test defaults applied to a minimal configuration."""
        result = ConfigLoader().load_mapping({"package": "com.example.demo"}, temp_dir)

        assert result.warnings == []
        config = result.data
        assert config.package == "com.example.demo"
        assert config.build_targets == [Target.ARM64]
        assert config.apk_name == "com_example_demo"
        assert config.lib_name == "demo"
        assert config.strip == StripConfig.DEFAULT
        assert config.sdk.min_sdk_version == 23
        assert config.sdk.target_sdk_version == 30
        assert config.project_root == temp_dir

    def test_targets_keep_order_and_collapse_duplicates(self, temp_dir):
        """Test declared targets keep their order without repeats."""
        raw = {
            "package": "com.example.demo",
            "build_targets": ["x86_64-linux-android", "armv7-linux-androideabi", "x86_64-linux-android"],
        }
        config = ConfigLoader().load_mapping(raw, temp_dir).data
        assert config.build_targets == [Target.X86_64, Target.ARMV7]

    def test_unsupported_target(self, temp_dir):
        """Test an unknown architecture is rejected by name."""
        raw = {"package": "com.example.demo", "build_targets": ["mips-linux-android"]}
        with pytest.raises(UnsupportedTarget) as exc_info:
            ConfigLoader().load_mapping(raw, temp_dir)
        assert exc_info.value.target == "mips-linux-android"

    def test_empty_target_list(self, temp_dir):
        """Test an explicit empty target list fails."""
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_mapping({"package": "com.example.demo", "build_targets": []}, temp_dir)
        assert exc_info.value.field_name == "build_targets"

    def test_invalid_package(self, temp_dir):
        """Test a malformed package identifier."""
        with pytest.raises(InvalidPackageName):
            ConfigLoader().load_mapping({"package": "demo"}, temp_dir)

    def test_missing_package(self, temp_dir):
        """Test the package identifier is required."""
        with pytest.raises(ConfigError):
            ConfigLoader().load_mapping({}, temp_dir)

    def test_unrecognized_keys_are_warnings(self, temp_dir):
        """Test unknown keys at any depth are reported, not fatal."""
        raw = {
            "package": "com.example.demo",
            "colour": "blue",
            "application": {"activity": {"orientaton": "landscape"}},
            "uses_permission": [{"name": "android.permission.INTERNET", "extra": 1}],
        }
        result = ConfigLoader().load_mapping(raw, temp_dir)

        assert result.data.unrecognized == (
            "application.activity.orientaton",
            "colour",
            "uses_permission[0].extra",
        )
        assert len(result.warnings) == 3
        assert any("colour" in warning for warning in result.warnings)

    def test_internal_keys_are_not_trusted(self, temp_dir):
        """Test a user-supplied project root is ignored and reported."""
        raw = {"package": "com.example.demo", "project_root": "/elsewhere"}
        result = ConfigLoader().load_mapping(raw, temp_dir)
        assert result.data.project_root == temp_dir
        assert "project_root" in result.data.unrecognized

    def test_type_error_names_field(self, temp_dir):
        """Test schema errors carry the dotted field path."""
        raw = {"package": "com.example.demo", "application": {"debuggable": "sometimes"}}
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_mapping(raw, temp_dir)
        assert exc_info.value.field_name == "application.debuggable"

    def test_version_validation(self, temp_dir):
        """Test version components above 255 are rejected."""
        config = ConfigLoader().load_mapping({"package": "com.example.demo", "version": "1.2.3"}, temp_dir).data
        assert config.version_code == (1 << 24) | (1 << 16) | (2 << 8) | 3

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_mapping({"package": "com.example.demo", "version": "1.256.0"}, temp_dir)
        assert exc_info.value.field_name == "version"


class TestSdkVersions:
    """Tests for SDK version defaults and bounds."""

    def test_target_clamped_to_ceiling(self, temp_dir):
        """Test target SDK above the installed platform is clamped with a warning."""
        raw = {"package": "com.example.demo", "sdk": {"target_sdk_version": 34}}
        result = ConfigLoader(toolchain_ceiling=31).load_mapping(raw, temp_dir)
        assert result.data.sdk.target_sdk_version == 31
        assert any("clamped" in warning for warning in result.warnings)

    def test_default_target_respects_low_ceiling(self, temp_dir):
        """Test the default target SDK never exceeds the ceiling."""
        result = ConfigLoader(toolchain_ceiling=28).load_mapping({"package": "com.example.demo"}, temp_dir)
        assert result.data.sdk.target_sdk_version == 28
        assert result.warnings == []

    def test_min_above_target(self, temp_dir):
        """Test min SDK above target SDK fails."""
        raw = {"package": "com.example.demo", "sdk": {"min_sdk_version": 31, "target_sdk_version": 30}}
        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load_mapping(raw, temp_dir)
        assert exc_info.value.field_name == "sdk.min_sdk_version"

    def test_target_above_max(self, temp_dir):
        """Test target SDK above max SDK fails."""
        raw = {"package": "com.example.demo", "sdk": {"target_sdk_version": 30, "max_sdk_version": 29}}
        with pytest.raises(ConfigError):
            ConfigLoader().load_mapping(raw, temp_dir)


class TestLoadFile:
    """Tests for reading configuration files."""

    def test_standalone_file(self, project_dir):
        """Test loading an apkforge.toml."""
        result = ConfigLoader().load(project_dir / "apkforge.toml")
        assert result.data.build_targets == [Target.ARM64, Target.X86_64]
        assert result.data.project_root == project_dir.resolve()

    def test_cargo_manifest(self, temp_dir):
        """Test the Android table inside a Cargo.toml."""
        cargo = temp_dir / "Cargo.toml"
        cargo.write_text(
            "[package]\n"
            'name = "my-game"\n'
            'version = "0.3.1"\n'
            "\n"
            "[lib]\n"
            'crate-type = ["cdylib"]\n'
            "\n"
            "[package.metadata.android]\n"
            'build_targets = ["armv7-linux-androideabi"]\n'
            "\n"
            "[package.metadata.android.sdk]\n"
            "min_sdk_version = 26\n"
        )
        config = ConfigLoader().load(cargo).data
        assert config.package == "rust.my_game"
        assert config.lib_name == "my_game"
        assert config.version == "0.3.1"
        assert config.build_targets == [Target.ARMV7]
        assert config.sdk.min_sdk_version == 26

    def test_cargo_manifest_without_android_table(self, temp_dir):
        """Test a Cargo.toml with no Android table."""
        cargo = temp_dir / "Cargo.toml"
        cargo.write_text('[package]\nname = "plain"\nversion = "0.1.0"\n')
        with pytest.raises(ConfigError):
            ConfigLoader().load(cargo)

    @pytest.mark.parametrize(
        "content,field_name",
        [
            ('[package]\nname = "demo"\nmetadata = "oops"\n', "package.metadata"),
            (
                'lib = "oops"\n[package]\nname = "demo"\n'
                '[package.metadata.android]\npackage = "com.example.demo"\n',
                "lib",
            ),
        ],
    )
    def test_cargo_manifest_malformed_tables(self, temp_dir, content, field_name):
        """Test non-table values where Cargo.toml tables are expected."""
        cargo = temp_dir / "Cargo.toml"
        cargo.write_text(content)

        with pytest.raises(ConfigError) as exc_info:
            ConfigLoader().load(cargo)

        assert exc_info.value.field_name == field_name

    def test_missing_file(self, temp_dir):
        """Test a missing configuration file."""
        with pytest.raises(ConfigError):
            ConfigLoader().load(temp_dir / "nope.toml")

    def test_invalid_toml(self, temp_dir):
        """Test a file that is not TOML."""
        path = temp_dir / "apkforge.toml"
        path.write_text("package = \n")
        with pytest.raises(ConfigError):
            ConfigLoader().load(path)

    def test_relative_paths_resolve_against_project(self, project_dir):
        """Test resource paths resolve against the configuration's directory."""
        config = ConfigLoader().load(project_dir / "apkforge.toml").data
        assert config.resolve(Path("res")) == project_dir.resolve() / "res"
