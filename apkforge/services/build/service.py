"""
Build Orchestration Service.

Compiles the native library for every configured target concurrently and
applies the debug-symbol policy to each result, then collects the shared
libraries each result needs at load time. The build is all or nothing:
the first failure raises a shared abort signal, every in-flight compile is
stopped and awaited, anything already produced is discarded, and one
BuildError names exactly the targets that failed.
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

from ...core.exceptions import BuildError
from ...core.logging import get_logger
from ...models.build import BuildArtifact, BuildResult
from ...models.project import ProjectConfig
from ...models.target import SYMBOL_SIDECAR_SUFFIX, Profile, StripConfig, SymbolOutcome, Target
from ...toolchain.interface import CompileRequest, Compiler, SymbolTool, ToolAborted

logger = get_logger(__name__)


class BuildOrchestrator:
    """Service that drives the compiler once per target architecture."""

    def __init__(
        self,
        compiler: Compiler,
        symbol_tool: SymbolTool,
        max_parallel: int = 4,
        ndk_min_sdk: int = 23,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            compiler: Compiler capability.
            symbol_tool: Symbol inspection/stripping capability.
            max_parallel: Upper bound on concurrently running compiles.
            ndk_min_sdk: Lowest API level handed to the compiler.
        """
        self.compiler = compiler
        self.symbol_tool = symbol_tool
        self.max_parallel = max(max_parallel, 1)
        self.ndk_min_sdk = ndk_min_sdk

    def compile_request(self, config: ProjectConfig, profile: str) -> CompileRequest:
        return CompileRequest(
            lib_name=config.lib_name,
            profile=profile,
            min_sdk=max(config.sdk.min_sdk_version, self.ndk_min_sdk),
            project_root=config.project_root,
        )

    async def _apply_policy(self, target: Target, library: Path, policy: StripConfig) -> BuildArtifact:
        if not await self.symbol_tool.has_debug_info(library):
            return BuildArtifact(target=target, library=library, symbols=SymbolOutcome.ABSENT)

        if policy == StripConfig.STRIP:
            await self.symbol_tool.strip(library)
            return BuildArtifact(target=target, library=library, symbols=SymbolOutcome.STRIPPED)

        if policy == StripConfig.SPLIT:
            sidecar = library.with_suffix(SYMBOL_SIDECAR_SUFFIX)
            await self.symbol_tool.split(library, sidecar)
            return BuildArtifact(target=target, library=library, symbols=SymbolOutcome.SPLIT, sidecar=sidecar)

        return BuildArtifact(target=target, library=library, symbols=SymbolOutcome.KEPT)

    async def resolve_dependencies(
        self,
        target: Target,
        library: Path,
        request: CompileRequest,
        runtime_dir: Path | None = None,
    ) -> list[Path]:
        """Follow NEEDED entries transitively and return the libraries to bundle.

        Libraries the platform provides are skipped, as are the shared
        libraries in ``runtime_dir``, which are bundled as they are but whose
        own dependencies are followed too.

        Raises:
            BuildError: If a needed library is found neither in the search
                paths nor among the platform libraries.
        """
        search_paths = self.compiler.library_search_paths(target, request)
        system = self.compiler.system_libraries(target, request)
        bundled = {library.name}
        pending = [library]
        if runtime_dir is not None and runtime_dir.is_dir():
            runtime = sorted(runtime_dir.glob("*.so"))
            bundled.update(path.name for path in runtime)
            pending.extend(runtime)
            search_paths = [runtime_dir, *search_paths]

        found: list[Path] = []
        while pending:
            current = pending.pop(0)
            for name in await self.symbol_tool.needed_libraries(current):
                if name in bundled or name in system:
                    continue
                path = next((d / name for d in search_paths if (d / name).is_file()), None)
                if path is None:
                    detail = f"shared library {name} needed by {current.name} not found"
                    raise BuildError(message=detail, failed_targets={target.value: detail})
                bundled.add(name)
                found.append(path)
                pending.append(path)
                logger.debug("Dependency resolved", target=target.value, library=name, path=str(path))
        return found

    async def build(self, config: ProjectConfig, profile: str = Profile.DEV) -> BuildResult:
        """Build every target of the configuration.

        Returns:
            BuildResult with one artifact per target, in declaration order.

        Raises:
            BuildError: If any target failed; no artifacts are left behind.
        """
        start_time = time.perf_counter()
        request = self.compile_request(config, profile)
        abort = asyncio.Event()
        semaphore = asyncio.Semaphore(self.max_parallel)
        produced: dict[Target, list[Path]] = {}

        async def build_one(target: Target) -> BuildArtifact:
            async with semaphore:
                if abort.is_set():
                    raise ToolAborted(target.value)
                try:
                    library = await self.compiler.compile(target, request, abort)
                    produced[target] = [library]
                    artifact = await self._apply_policy(target, library, config.strip)
                    if artifact.sidecar is not None:
                        produced[target].append(artifact.sidecar)
                    runtime_dir = None
                    if config.runtime_libs is not None:
                        runtime_dir = config.resolve(config.runtime_libs) / target.abi
                    artifact.dependencies = await self.resolve_dependencies(target, library, request, runtime_dir)
                except ToolAborted:
                    raise
                except Exception:
                    abort.set()
                    raise
                logger.info("Target built", target=target.value, symbols=artifact.symbols.value)
                return artifact

        tasks = [asyncio.ensure_future(build_one(target)) for target in config.build_targets]
        try:
            outcomes = await asyncio.gather(*tasks, return_exceptions=True)
        except asyncio.CancelledError:
            abort.set()
            self._discard(produced)
            raise

        failures: dict[str, str] = {}
        first_error: BaseException | None = None
        artifacts: list[BuildArtifact] = []
        for target, outcome in zip(config.build_targets, outcomes):
            if isinstance(outcome, ToolAborted):
                continue
            if isinstance(outcome, BaseException):
                first_error = first_error or outcome
                if isinstance(outcome, BuildError) and outcome.failed_targets:
                    failures[target.value] = next(iter(outcome.failed_targets.values())) or outcome.message
                else:
                    failures[target.value] = str(outcome)
                continue
            artifacts.append(outcome)

        if failures:
            self._discard(produced)
            logger.error("Build failed", failed=list(failures), aborted=len(tasks) - len(failures) - len(artifacts))
            raise BuildError(
                message="; ".join(f"{name}: {detail.splitlines()[-1] if detail else 'failed'}" for name, detail in failures.items()),
                failed_targets=failures,
                cause=first_error if isinstance(first_error, Exception) else None,
            )

        logger.info(
            "Build completed",
            targets=len(artifacts),
            duration_ms=round((time.perf_counter() - start_time) * 1000, 1),
        )
        return BuildResult(profile=profile, artifacts=artifacts)

    @staticmethod
    def _discard(produced: dict[Target, list[Path]]) -> None:
        for target, paths in produced.items():
            for path in paths:
                path.unlink(missing_ok=True)
            logger.debug("Discarded partial build output", target=target.value)
