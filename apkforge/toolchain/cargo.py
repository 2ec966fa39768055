"""
Cargo binding of the Compiler capability.

Cross-compiles a cdylib crate with cargo, pointing cargo and the cc crate at
the NDK's clang wrappers for the requested API level.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

from ..core.exceptions import BuildError
from ..core.logging import get_logger
from ..models.target import Profile, Target
from .interface import CompileRequest, Compiler
from .ndk import AndroidSdk
from .process import run_tool

logger = get_logger(__name__)


class CargoCompiler(Compiler):
    """Runs ``cargo build --lib --target <triple>`` with NDK linker settings."""

    def __init__(self, sdk: AndroidSdk, cargo: str = "cargo", target_dir: Path | None = None) -> None:
        self.sdk = sdk
        self.cargo = cargo
        self.target_dir = target_dir

    def _target_dir(self, request: CompileRequest) -> Path:
        return self.target_dir or request.project_root / "target"

    def _environment(self, target: Target, request: CompileRequest) -> dict[str, str]:
        cc, cxx = self.sdk.clang(target, request.min_sdk)
        ar = self.sdk.llvm_tool("llvm-ar")
        triple = target.value.replace("-", "_")
        return {
            f"CC_{triple}": str(cc),
            f"CXX_{triple}": str(cxx),
            f"AR_{triple}": str(ar),
            f"CARGO_TARGET_{target.env_suffix}_LINKER": str(cc),
            f"CARGO_TARGET_{target.env_suffix}_AR": str(ar),
            "CARGO_TARGET_DIR": str(self._target_dir(request)),
        }

    def artifact_path(self, target: Target, request: CompileRequest) -> Path:
        profile_dir = Profile(request.profile).cargo_dir
        return self._target_dir(request) / target.value / profile_dir / f"lib{request.lib_name}.so"

    def library_search_paths(self, target: Target, request: CompileRequest) -> list[Path]:
        profile_dir = Profile(request.profile).cargo_dir
        return [
            self.sdk.sysroot_libs(target),
            self._target_dir(request) / target.value / profile_dir / "deps",
        ]

    def system_libraries(self, target: Target, request: CompileRequest) -> frozenset[str]:
        return self.sdk.platform_libraries(target, request.min_sdk)

    async def compile(self, target: Target, request: CompileRequest, abort: asyncio.Event) -> Path:
        command = [self.cargo, "build", "--lib", "--target", target.value]
        if request.profile == Profile.RELEASE:
            command.append("--release")
        elif request.profile != Profile.DEV:
            command.extend(["--profile", request.profile])

        logger.info("Compiling", target=target.value, profile=request.profile, min_sdk=request.min_sdk)
        output = await run_tool(
            command,
            cwd=request.project_root,
            env=self._environment(target, request),
            abort=abort,
        )
        if not output.ok:
            raise BuildError(
                message=f"cargo exited with status {output.returncode}",
                failed_targets={target.value: output.tail()},
            )

        library = self.artifact_path(target, request)
        if not library.is_file():
            raise BuildError(
                message=f"cargo succeeded but {library} was not produced (is crate-type cdylib set?)",
                failed_targets={target.value: str(library)},
            )
        return library
