"""
Android SDK and NDK discovery.

Locates the tools the production bindings run: build-tools (aapt, zipalign,
apksigner), platform-tools (adb), platform jars, and the NDK's LLVM
toolchain and ndk-gdb. Nothing is executed here.
"""

from __future__ import annotations

import os
import platform
import re
import shutil
from pathlib import Path

from ..core.config import ToolsConfig
from ..core.exceptions import ToolNotFoundError
from ..core.logging import get_logger
from ..models.target import Target

logger = get_logger(__name__)

_WINDOWS = os.name == "nt"


def _bin(name: str) -> str:
    return f"{name}.exe" if _WINDOWS else name


def _bat(name: str) -> str:
    return f"{name}.bat" if _WINDOWS else name


def _cmd(name: str) -> str:
    return f"{name}.cmd" if _WINDOWS else name


def _version_key(name: str) -> tuple[int, ...]:
    return tuple(int(part) for part in re.findall(r"\d+", name))


def _host_tag() -> str:
    system = platform.system().lower()
    if system == "darwin":
        return "darwin-x86_64"
    if system == "windows":
        return "windows-x86_64"
    return "linux-x86_64"


class AndroidSdk:
    """Paths into an installed Android SDK and NDK."""

    def __init__(self, tools: ToolsConfig) -> None:
        if tools.android_sdk_root is None:
            raise ToolNotFoundError(
                message="Android SDK not configured",
                tool_name="android-sdk",
                expected_path="$ANDROID_HOME",
                install_hint="set ANDROID_HOME or ANDROID_SDK_ROOT",
            )
        self.sdk_root = tools.android_sdk_root
        self.build_tools_version = tools.build_tools_version or self._highest(
            self.sdk_root / "build-tools", "build-tools"
        )
        self.ndk_root = tools.android_ndk_root or self._find_ndk()
        logger.debug(
            "Android SDK located",
            sdk=str(self.sdk_root),
            ndk=str(self.ndk_root),
            build_tools=self.build_tools_version,
        )

    @staticmethod
    def _highest(directory: Path, what: str) -> str:
        if not directory.is_dir():
            raise ToolNotFoundError(message=f"no {what} installed", tool_name=what, expected_path=str(directory))
        names = [p.name for p in directory.iterdir() if p.is_dir() and _version_key(p.name)]
        if not names:
            raise ToolNotFoundError(message=f"no {what} installed", tool_name=what, expected_path=str(directory))
        return max(names, key=_version_key)

    def _find_ndk(self) -> Path:
        side_by_side = self.sdk_root / "ndk"
        if side_by_side.is_dir() and any(side_by_side.iterdir()):
            return side_by_side / self._highest(side_by_side, "ndk")
        bundle = self.sdk_root / "ndk-bundle"
        if bundle.is_dir():
            return bundle
        raise ToolNotFoundError(
            message="Android NDK not found",
            tool_name="ndk",
            expected_path=str(side_by_side),
            install_hint="set ANDROID_NDK_ROOT or install the NDK through sdkmanager",
        )

    @property
    def platforms(self) -> list[int]:
        """Installed platform API levels, ascending."""
        directory = self.sdk_root / "platforms"
        if not directory.is_dir():
            return []
        levels = []
        for entry in directory.iterdir():
            match = re.fullmatch(r"android-(\d+)", entry.name)
            if match and (entry / "android.jar").is_file():
                levels.append(int(match.group(1)))
        return sorted(levels)

    @property
    def max_platform(self) -> int | None:
        """Highest installed platform, the ceiling for target SDK versions."""
        levels = self.platforms
        return levels[-1] if levels else None

    def compile_platform(self, target_sdk: int) -> int:
        """Platform whose android.jar a package targeting ``target_sdk`` is built against.

        The lowest installed platform at or above ``target_sdk``, else the
        highest installed one.

        Raises:
            ToolNotFoundError: If no platform is installed.
        """
        levels = self.platforms
        if not levels:
            raise ToolNotFoundError(
                message="no Android platform is installed",
                tool_name="android.jar",
                expected_path=str(self.sdk_root / "platforms"),
                install_hint=f"sdkmanager 'platforms;android-{target_sdk}'",
            )
        return next((level for level in levels if level >= target_sdk), levels[-1])

    def android_jar(self, api_level: int) -> Path:
        jar = self.sdk_root / "platforms" / f"android-{api_level}" / "android.jar"
        if not jar.is_file():
            raise ToolNotFoundError(
                message=f"platform android-{api_level} is not installed",
                tool_name="android.jar",
                expected_path=str(jar),
                install_hint=f"sdkmanager 'platforms;android-{api_level}'",
            )
        return jar

    def build_tool(self, name: str, batch: bool = False) -> Path:
        path = self.sdk_root / "build-tools" / self.build_tools_version / (_bat(name) if batch else _bin(name))
        return self._require(path, name)

    def platform_tool(self, name: str) -> Path:
        path = self.sdk_root / "platform-tools" / _bin(name)
        if path.is_file():
            return path
        on_path = shutil.which(name)
        if on_path:
            return Path(on_path)
        return self._require(path, name)

    @property
    def llvm_bin(self) -> Path:
        return self.ndk_root / "toolchains" / "llvm" / "prebuilt" / _host_tag() / "bin"

    def llvm_tool(self, name: str) -> Path:
        return self._require(self.llvm_bin / _bin(name), name)

    @property
    def sysroot(self) -> Path:
        return self.llvm_bin.parent / "sysroot"

    def sysroot_libs(self, target: Target) -> Path:
        """Libraries the NDK ships for a target, such as ``libc++_shared.so``."""
        return self.sysroot / "usr" / "lib" / target.ndk_triple

    def platform_libraries(self, target: Target, api_level: int) -> frozenset[str]:
        """Names of the shared libraries the platform provides at an API level."""
        directory = self.sysroot_libs(target) / str(api_level)
        if not directory.is_dir():
            return frozenset()
        return frozenset(path.name for path in directory.glob("*.so"))

    def clang(self, target: Target, api_level: int) -> tuple[Path, Path]:
        """C and C++ compiler wrappers for a target at an API level."""
        prefix = f"{target.clang_triple}{api_level}"
        cc = self._require(self.llvm_bin / _cmd(f"{prefix}-clang"), f"{prefix}-clang")
        cxx = self._require(self.llvm_bin / _cmd(f"{prefix}-clang++"), f"{prefix}-clang++")
        return cc, cxx

    def ndk_gdb(self) -> Path:
        return self._require(self.ndk_root / _cmd("ndk-gdb"), "ndk-gdb")

    def java_tool(self, name: str) -> Path:
        java_home = os.environ.get("JAVA_HOME")
        if java_home:
            candidate = Path(java_home) / "bin" / _bin(name)
            if candidate.is_file():
                return candidate
        on_path = shutil.which(name)
        if on_path:
            return Path(on_path)
        raise ToolNotFoundError(
            message=f"{name} not found",
            tool_name=name,
            expected_path="$JAVA_HOME/bin",
            install_hint="install a JDK and set JAVA_HOME",
        )

    @staticmethod
    def _require(path: Path, name: str) -> Path:
        if not path.exists():
            raise ToolNotFoundError(message=f"{name} not found", tool_name=name, expected_path=str(path))
        return path
