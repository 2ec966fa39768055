"""LLVM binutils binding of the SymbolTool capability."""

from __future__ import annotations

import re
from pathlib import Path

from ..core.exceptions import BuildError
from .interface import SymbolTool
from .ndk import AndroidSdk
from .process import run_tool

_DEBUG_SECTION = re.compile(r"\s\.(?:z)?debug_\w+")
_NEEDED = re.compile(r"\(NEEDED\)\s+Shared library: \[([^\]]+)\]")


class LlvmSymbolTool(SymbolTool):
    """Uses the NDK's llvm-readelf and llvm-objcopy."""

    def __init__(self, sdk: AndroidSdk) -> None:
        self.sdk = sdk

    async def _objcopy(self, *args: str | Path) -> None:
        output = await run_tool([self.sdk.llvm_tool("llvm-objcopy"), *args])
        if not output.ok:
            raise BuildError(message=f"llvm-objcopy failed: {output.tail()}")

    async def has_debug_info(self, library: Path) -> bool:
        output = await run_tool([self.sdk.llvm_tool("llvm-readelf"), "--section-headers", "--wide", library])
        if not output.ok:
            raise BuildError(message=f"llvm-readelf failed on {library}: {output.tail()}")
        return bool(_DEBUG_SECTION.search(output.stdout))

    async def strip(self, library: Path) -> None:
        await self._objcopy("--strip-debug", library)

    async def split(self, library: Path, sidecar: Path) -> None:
        await self._objcopy("--only-keep-debug", library, sidecar)
        await self._objcopy("--strip-debug", f"--add-gnu-debuglink={sidecar}", library)

    async def needed_libraries(self, library: Path) -> list[str]:
        output = await run_tool([self.sdk.llvm_tool("llvm-readelf"), "--dynamic-table", library])
        if not output.ok:
            raise BuildError(message=f"llvm-readelf failed on {library}: {output.tail()}")
        return _NEEDED.findall(output.stdout)
