"""
Pipeline orchestration for apkforge.

Wires the stages for the ``build``, ``run`` and ``debug`` commands:

    config -> manifest -> build -> package -> sign [-> device]

Each stage is recorded on a PipelineRun. The package is archived and signed
inside a scratch workspace in the output directory; only a fully signed
package is moved onto the final path, and the workspace is removed on every
exit path.
"""

from __future__ import annotations

import asyncio
import os
import signal
import tempfile
import uuid
from collections.abc import Coroutine, Iterator, Mapping
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, TypeVar

from ..core.config import Config, get_config
from ..core.exceptions import DeviceError
from ..core.logging import bind_context, get_logger, stage_context
from ..core.types import PipelineRun, StageResult, StageStatus
from ..models.build import BuildResult
from ..models.project import ProjectConfig
from ..models.target import Profile
from ..services.build import BuildOrchestrator
from ..services.config_loader import ConfigLoader
from ..services.device import DeviceController
from ..services.manifest import ManifestSynthesizer
from ..services.packaging import PackageAssembler
from ..services.signing import Signer
from ..toolchain.interface import Archiver, Compiler, Debugger, DeviceBridge, SigningTool, SymbolTool

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MANIFESTS = ("apkforge.toml", "Cargo.toml")


@dataclass
class Toolchain:
    """The external tools a pipeline drives."""

    compiler: Compiler
    symbol_tool: SymbolTool
    archiver: Archiver
    signing_tool: SigningTool
    bridge: DeviceBridge | None = None
    debugger: Debugger | None = None

    @classmethod
    def android(cls, config: Config, project: ProjectConfig, output_dir: Path) -> Toolchain:
        """Bind the Android SDK/NDK tools and cargo."""
        from ..toolchain.aapt import AaptArchiver
        from ..toolchain.adb import AdbBridge
        from ..toolchain.apksigner import ApkSignerTool
        from ..toolchain.cargo import CargoCompiler
        from ..toolchain.gdb import NdkGdbDebugger
        from ..toolchain.llvm import LlvmSymbolTool
        from ..toolchain.ndk import AndroidSdk

        sdk = AndroidSdk(config.tools)
        adb = sdk.platform_tool("adb")
        serial = config.device.serial
        return cls(
            compiler=CargoCompiler(sdk, cargo=config.tools.cargo, target_dir=config.build.target_dir),
            symbol_tool=LlvmSymbolTool(sdk),
            archiver=AaptArchiver(sdk, target_sdk=project.target_sdk),
            signing_tool=ApkSignerTool(sdk),
            bridge=AdbBridge(adb, serial=serial, timeout=config.device.command_timeout_seconds),
            debugger=NdkGdbDebugger(sdk, adb, workdir=output_dir / "ndk-gdb", serial=serial),
        )


@dataclass
class BuildOutputs:
    """What a finished build hands to the device stage."""

    project: ProjectConfig
    manifest_text: str
    build: BuildResult
    apk_path: Path


def find_manifest(start: Path) -> Path:
    """Locate the project configuration in ``start`` or one of its parents."""
    for directory in [start, *start.parents]:
        for name in DEFAULT_MANIFESTS:
            candidate = directory / name
            if candidate.is_file():
                return candidate
    return start / DEFAULT_MANIFESTS[0]


class ApkPipeline:
    """Runs the build, run and debug commands against one project."""

    def __init__(
        self,
        config: Config | None = None,
        toolchain: Toolchain | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            config: Tool configuration, the cached environment one if None.
            toolchain: Tool bindings; the Android SDK/NDK bindings are
                created per project when None.
            environ: Environment for signing overrides, ``os.environ`` if None.
        """
        self.config = config or get_config()
        self._toolchain = toolchain
        self.environ = environ

    def start_run(self, command: str, profile: str) -> PipelineRun:
        return PipelineRun(
            run_id=str(uuid.uuid4())[:8],
            command=command,
            package="",
            profile=profile,
        )

    @contextmanager
    def _stage(self, run: PipelineRun, name: str) -> Iterator[StageResult]:
        stage = StageResult(stage_name=name)
        run.stages.append(stage)
        run.final_status = StageStatus.RUNNING
        with stage_context(name):
            try:
                yield stage
            except BaseException as e:
                stage.mark_failed(str(e) or type(e).__name__)
                run.final_status = StageStatus.FAILED
                run.completed_at = datetime.utcnow()
                logger.error("Stage failed", error=str(e))
                raise
            if stage.status == StageStatus.RUNNING:
                stage.mark_completed(stage.artifacts)

    def _ceiling(self) -> int | None:
        if self._toolchain is not None:
            return None
        from ..toolchain.ndk import AndroidSdk

        return AndroidSdk(self.config.tools).max_platform

    def output_dir(self, project: ProjectConfig, profile: str) -> Path:
        """Directory the signed package is written to."""
        target_dir = self.config.build.target_dir or project.project_root / "target"
        return target_dir / Profile(profile).cargo_dir / "apk"

    def toolchain_for(self, project: ProjectConfig, output_dir: Path) -> Toolchain:
        if self._toolchain is not None:
            return self._toolchain
        return Toolchain.android(self.config, project, output_dir)

    def load(self, manifest_path: Path, run: PipelineRun) -> ProjectConfig:
        with self._stage(run, "config") as stage:
            result = ConfigLoader(toolchain_ceiling=self._ceiling()).load(manifest_path)
            stage.warnings = list(result.warnings)
            project = result.data
        run.package = project.package
        bind_context(package=project.package, profile=run.profile)
        return project

    async def build(
        self,
        manifest_path: Path,
        profile: str = Profile.DEV,
        run: PipelineRun | None = None,
    ) -> BuildOutputs:
        """Build, package and sign the project.

        Raises:
            ApkForgeError: From whichever stage failed. No final package is
                written in that case.
        """
        run = run or self.start_run("build", profile)
        project = self.load(manifest_path, run)

        with self._stage(run, "manifest"):
            synthesizer = ManifestSynthesizer(self.config.manifest)
            manifest_text = synthesizer.render(project, profile)

        output_dir = self.output_dir(project, profile)
        toolchain = self.toolchain_for(project, output_dir)

        with self._stage(run, "build") as stage:
            orchestrator = BuildOrchestrator(
                toolchain.compiler,
                toolchain.symbol_tool,
                max_parallel=self.config.build.max_parallel,
                ndk_min_sdk=self.config.build.ndk_min_sdk,
            )
            build = await orchestrator.build(project, profile)
            stage.mark_completed([artifact.library for artifact in build.artifacts])

        output_dir.mkdir(parents=True, exist_ok=True)
        final_path = output_dir / f"{project.apk_name}.apk"
        with tempfile.TemporaryDirectory(prefix=".apkforge-", dir=output_dir) as workspace:
            with self._stage(run, "package"):
                unsigned = await PackageAssembler(toolchain.archiver).assemble(
                    project,
                    manifest_text,
                    build,
                    Path(workspace),
                    compress=profile != self.config.signing.dev_profile,
                )

            with self._stage(run, "sign") as stage:
                signer = Signer(toolchain.signing_tool, self.config.signing, self.environ)
                await signer.sign(unsigned, project, profile)
                os.replace(unsigned, final_path)
                stage.mark_completed([final_path])

        run.apk_path = final_path
        run.final_status = StageStatus.COMPLETED
        run.completed_at = datetime.utcnow()
        logger.info("Package written", path=str(final_path))
        return BuildOutputs(project=project, manifest_text=manifest_text, build=build, apk_path=final_path)

    def _controller(self, project: ProjectConfig, output_dir: Path) -> DeviceController:
        toolchain = self.toolchain_for(project, output_dir)
        if toolchain.bridge is None:
            raise DeviceError(message="no device bridge configured", operation="connect")
        return DeviceController(
            toolchain.bridge,
            toolchain.debugger,
            self.config.device,
            activity_name=self.config.manifest.activity_name,
        )

    async def run(
        self,
        manifest_path: Path,
        profile: str = Profile.DEV,
        follow_logs: bool = True,
        run: PipelineRun | None = None,
    ) -> BuildOutputs:
        """Build, then install and run the package on the device."""
        run = run or self.start_run("run", profile)
        outputs = await self.build(manifest_path, profile, run)

        controller = self._controller(outputs.project, outputs.apk_path.parent)
        with self._stage(run, "device"):
            await controller.run(outputs.apk_path, outputs.project, follow_logs=follow_logs)
        run.final_status = StageStatus.COMPLETED
        return outputs

    async def debug(
        self,
        manifest_path: Path,
        profile: str = Profile.DEV,
        run: PipelineRun | None = None,
    ) -> BuildOutputs:
        """Build, install, launch and attach the native debugger."""
        run = run or self.start_run("debug", profile)
        outputs = await self.build(manifest_path, profile, run)

        controller = self._controller(outputs.project, outputs.apk_path.parent)
        with self._stage(run, "device"):
            await controller.debug(outputs.apk_path, outputs.project, outputs.build, outputs.manifest_text)
        run.final_status = StageStatus.COMPLETED
        return outputs


def run_until_complete(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` on a fresh event loop, turning SIGTERM into cancellation.

    SIGINT already cancels the main task under ``asyncio.run``.
    """

    async def main() -> T:
        task = asyncio.ensure_future(coro)
        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGTERM, task.cancel)
        except (NotImplementedError, AttributeError):
            # Windows event loops have no signal handlers
            pass
        try:
            return await task
        finally:
            try:
                loop.remove_signal_handler(signal.SIGTERM)
            except (NotImplementedError, AttributeError):
                pass

    return asyncio.run(main())
