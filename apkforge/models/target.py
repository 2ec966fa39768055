"""
Build target and profile models.

A target is the compiler triple native code is built for; each one maps to
exactly one ABI directory inside the package's ``lib/`` tree.
"""

from __future__ import annotations

import re
from enum import Enum


class Target(str, Enum):
    """Supported Android target architectures (compiler triples)."""

    ARMV7 = "armv7-linux-androideabi"
    ARM64 = "aarch64-linux-android"
    X86 = "i686-linux-android"
    X86_64 = "x86_64-linux-android"

    @property
    def abi(self) -> str:
        """ABI directory name used under ``lib/`` in the package."""
        return _ABI_NAMES[self]

    @property
    def clang_triple(self) -> str:
        """Triple prefix of the NDK clang wrapper (``<triple><api>-clang``)."""
        if self is Target.ARMV7:
            return "armv7a-linux-androideabi"
        return self.value

    @property
    def ndk_triple(self) -> str:
        """Directory name of the target's libraries inside the NDK sysroot."""
        if self is Target.ARMV7:
            return "arm-linux-androideabi"
        return self.value

    @property
    def env_suffix(self) -> str:
        """Triple in the form cargo expects inside environment variable names."""
        return self.value.upper().replace("-", "_")

    @classmethod
    def from_abi(cls, abi: str) -> Target:
        """Look up the target for an ABI name reported by a device.

        Raises:
            ValueError: If no supported target uses that ABI.
        """
        for target, name in _ABI_NAMES.items():
            if name == abi:
                return target
        raise ValueError(f"no supported target for ABI '{abi}'")


_ABI_NAMES: dict[Target, str] = {
    Target.ARMV7: "armeabi-v7a",
    Target.ARM64: "arm64-v8a",
    Target.X86: "x86",
    Target.X86_64: "x86_64",
}

SUPPORTED_TARGETS: tuple[str, ...] = tuple(t.value for t in Target)


class StripConfig(str, Enum):
    """What to do with debug symbols found in a compiled library."""

    DEFAULT = "default"
    STRIP = "strip"
    SPLIT = "split"


class SymbolOutcome(str, Enum):
    """What actually happened to a library's debug symbols."""

    KEPT = "kept"
    STRIPPED = "stripped"
    SPLIT = "split"
    ABSENT = "absent"


SYMBOL_SIDECAR_SUFFIX = ".dwarf"


class Profile(str):
    """Build profile name (``dev``, ``release`` or a custom one)."""

    DEV = "dev"
    RELEASE = "release"

    def env_key(self) -> str:
        """Profile name as it appears inside environment variable names."""
        return re.sub(r"[^A-Za-z0-9]+", "_", self).upper()

    @property
    def cargo_dir(self) -> str:
        """Output directory cargo uses for this profile."""
        return "debug" if self == Profile.DEV else str(self)
