"""
Capability interfaces for the external tools apkforge drives.

The pipeline depends only on these narrow interfaces. Production bindings
wrap the Android SDK/NDK tools and cargo; tests bind deterministic fakes, so
no device or toolchain is needed to exercise the pipeline.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, Field

from ..models.build import SigningKey
from ..models.target import Target


class ToolAborted(Exception):
    """Raised by a tool invocation that stopped because the abort signal was set."""


class CompileRequest(BaseModel):
    """Everything the compiler needs besides the target."""

    lib_name: str = Field(description="Name of the shared library, without lib prefix")
    profile: str = Field(description="Build profile")
    min_sdk: int = Field(description="API level for the NDK compiler wrappers")
    project_root: Path = Field(description="Directory holding the project sources")


class DebugSession(BaseModel):
    """A launched process the debugger should attach to."""

    package: str
    activity: str
    pid: int
    abi: str
    symbols: Path = Field(description="Unstripped library or debug-symbol sidecar")
    lib_name: str
    manifest_text: str = Field(default="", repr=False)


class Compiler(ABC):
    """Cross-compiles the project's native library for one target."""

    @abstractmethod
    async def compile(self, target: Target, request: CompileRequest, abort: asyncio.Event) -> Path:
        """Compile and return the path of the produced shared library.

        Implementations must stop promptly and raise ToolAborted once
        ``abort`` is set, leaving no child process behind.

        Raises:
            BuildError: If the compiler fails.
            ToolAborted: If the build was aborted.
        """
        ...

    def library_search_paths(self, target: Target, request: CompileRequest) -> list[Path]:
        """Directories shared libraries the output depends on are looked up in."""
        return []

    def system_libraries(self, target: Target, request: CompileRequest) -> frozenset[str]:
        """Libraries the platform itself provides at ``request.min_sdk``; never bundled."""
        return frozenset()


class SymbolTool(ABC):
    """Inspects and rewrites debug sections of ELF shared libraries."""

    @abstractmethod
    async def has_debug_info(self, library: Path) -> bool:
        """Whether the library carries debug sections."""
        ...

    @abstractmethod
    async def strip(self, library: Path) -> None:
        """Remove debug sections in place."""
        ...

    @abstractmethod
    async def split(self, library: Path, sidecar: Path) -> None:
        """Write the debug sections to ``sidecar``, then strip in place."""
        ...

    @abstractmethod
    async def needed_libraries(self, library: Path) -> list[str]:
        """Names listed in the library's dynamic NEEDED entries, in order."""
        ...


class Archiver(ABC):
    """Turns a staging layout into an (unsigned, aligned) package."""

    @abstractmethod
    async def archive(
        self,
        staging: Path,
        entries: list[str],
        output: Path,
        *,
        compress: bool = True,
    ) -> None:
        """Archive ``entries`` (POSIX paths relative to ``staging``) in the given order.

        Raises:
            PackagingError: If the archiver fails.
        """
        ...


class SigningTool(ABC):
    """Creates keystores and signs packages."""

    @abstractmethod
    async def generate_keystore(
        self,
        path: Path,
        *,
        password: str,
        alias: str,
        dname: str,
        validity_days: int,
    ) -> None:
        """Create a new keystore file at ``path`` (which must not exist)."""
        ...

    @abstractmethod
    async def sign(self, apk: Path, key: SigningKey) -> None:
        """Sign ``apk`` in place.

        Raises:
            SigningError: On a wrong password or signing tool failure.
        """
        ...


class DeviceBridge(ABC):
    """Talks to one attached device."""

    serial: str | None = None

    @abstractmethod
    async def install(self, apk: Path) -> None: ...

    @abstractmethod
    async def reverse(self, device: str, host: str) -> None:
        """Forward connections to ``device`` on the device to ``host`` on this machine."""
        ...

    @abstractmethod
    async def remove_reverse(self, device: str) -> None: ...

    @abstractmethod
    async def start_activity(self, package: str, activity: str) -> None: ...

    @abstractmethod
    async def pidof(self, package: str) -> int | None:
        """Process id of the running package, None when it is not running."""
        ...

    @abstractmethod
    async def get_abi(self) -> str:
        """Primary ABI reported by the device."""
        ...

    @abstractmethod
    async def follow_logcat(self, pid: int, stop: asyncio.Event) -> None:
        """Stream the log of ``pid`` until ``stop`` is set."""
        ...


class Debugger(ABC):
    """Starts an interactive native debugging session."""

    @abstractmethod
    async def attach(self, session: DebugSession) -> None:
        """Attach to ``session.pid`` with ``session.symbols`` loaded; returns when the session ends."""
        ...
