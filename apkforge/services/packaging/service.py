"""
Package Assembly Service.

Lays out the staging tree (manifest, resources, assets, per-ABI native
libraries and the shared libraries they depend on) inside a caller-owned
workspace and archives it with a stable, sorted entry order so identical
inputs give identical archives.
"""

from __future__ import annotations

import shutil
from pathlib import Path

from ...core.exceptions import PackagingError
from ...core.logging import get_logger
from ...models.build import BuildResult
from ...models.project import ProjectConfig
from ...toolchain.interface import Archiver

logger = get_logger(__name__)

MANIFEST_NAME = "AndroidManifest.xml"


class PackageAssembler:
    """Service that assembles the unsigned package."""

    def __init__(self, archiver: Archiver) -> None:
        self.archiver = archiver

    @staticmethod
    def _require_dir(path: Path, what: str) -> Path:
        if not path.is_dir():
            raise PackagingError(message=f"{what} directory does not exist", path=str(path))
        return path

    def stage(self, config: ProjectConfig, manifest_text: str, build: BuildResult, staging: Path) -> list[str]:
        """Populate ``staging`` and return its files as sorted POSIX paths.

        Raises:
            PackagingError: If an artifact or a configured input path is missing.
        """
        staging.mkdir(parents=True, exist_ok=True)
        (staging / MANIFEST_NAME).write_text(manifest_text, encoding="utf-8")

        if config.resources is not None:
            source = self._require_dir(config.resolve(config.resources), "resources")
            shutil.copytree(source, staging / "res")
        if config.assets is not None:
            source = self._require_dir(config.resolve(config.assets), "assets")
            shutil.copytree(source, staging / "assets")

        runtime_libs = None
        if config.runtime_libs is not None:
            runtime_libs = self._require_dir(config.resolve(config.runtime_libs), "runtime_libs")

        for target in config.build_targets:
            artifact = build.for_target(target)
            if artifact is None:
                raise PackagingError(message=f"no build artifact for target {target.value}", path=target.value)
            if not artifact.library.is_file():
                raise PackagingError(message=f"build artifact for {target.value} is missing", path=str(artifact.library))

            lib_dir = staging / "lib" / target.abi
            lib_dir.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(artifact.library, lib_dir / artifact.library.name)

            if runtime_libs is not None and (runtime_libs / target.abi).is_dir():
                for library in sorted((runtime_libs / target.abi).glob("*.so")):
                    shutil.copyfile(library, lib_dir / library.name)
                    logger.debug("Runtime library added", abi=target.abi, library=library.name)

            for dependency in artifact.dependencies:
                if not dependency.is_file():
                    raise PackagingError(message=f"dependency of {target.value} is missing", path=str(dependency))
                shutil.copyfile(dependency, lib_dir / dependency.name)
                logger.debug("Dependency added", abi=target.abi, library=dependency.name)

        return sorted(path.relative_to(staging).as_posix() for path in staging.rglob("*") if path.is_file())

    async def assemble(
        self,
        config: ProjectConfig,
        manifest_text: str,
        build: BuildResult,
        workspace: Path,
        *,
        compress: bool = True,
    ) -> Path:
        """Stage and archive the package inside ``workspace``.

        Args:
            config: Project configuration.
            manifest_text: Serialized manifest.
            build: Artifacts of a successful build.
            workspace: Scratch directory owned by the caller.
            compress: Whether the archiver may compress entries.

        Returns:
            Path of the unsigned package inside ``workspace``.
        """
        staging = workspace / "staging"
        unsigned = workspace / f"{config.apk_name}.unsigned.apk"
        try:
            entries = self.stage(config, manifest_text, build, staging)
            await self.archiver.archive(staging, entries, unsigned, compress=compress)
        finally:
            shutil.rmtree(staging, ignore_errors=True)
        if not unsigned.is_file():
            raise PackagingError(message="archiver did not produce a package", path=str(unsigned))

        logger.info("Package assembled", entries=len(entries), package=str(unsigned))
        return unsigned
