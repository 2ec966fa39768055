"""
aapt/zipalign binding of the Archiver capability.

aapt compiles the manifest and resource tree into the package and adds the
native libraries in the order given; zipalign then produces the aligned,
still unsigned package.
"""

from __future__ import annotations

from pathlib import Path

from ..core.exceptions import PackagingError
from ..core.logging import get_logger
from .interface import Archiver
from .ndk import AndroidSdk
from .process import ToolOutput, run_tool

logger = get_logger(__name__)


class AaptArchiver(Archiver):
    """Packages a staging layout with ``aapt package``/``aapt add`` and ``zipalign``."""

    def __init__(self, sdk: AndroidSdk, target_sdk: int) -> None:
        self.sdk = sdk
        self.target_sdk = target_sdk

    @staticmethod
    def _check(output: ToolOutput, apk: Path) -> None:
        if not output.ok:
            raise PackagingError(
                message=f"{Path(output.command[0]).name} failed: {output.tail()}",
                path=str(apk),
            )

    async def archive(
        self,
        staging: Path,
        entries: list[str],
        output: Path,
        *,
        compress: bool = True,
    ) -> None:
        aapt = self.sdk.build_tool("aapt")
        unaligned = output.with_name(f"{output.stem}.unaligned.apk")
        no_compress = [] if compress else ["-0", ""]

        command: list[str | Path] = [
            aapt, "package", "-f",
            "-F", unaligned,
            "-M", staging / "AndroidManifest.xml",
            "-I", self.sdk.android_jar(self.sdk.compile_platform(self.target_sdk)),
            *no_compress,
        ]
        if (staging / "res").is_dir():
            command.extend(["-S", staging / "res"])
        if (staging / "assets").is_dir():
            command.extend(["-A", staging / "assets"])
        self._check(await run_tool(command), unaligned)

        # aapt already picked up res/ and assets/, only the libraries are added by hand
        libraries = [entry for entry in entries if entry.startswith("lib/")]
        if libraries:
            self._check(
                await run_tool([aapt, "add", *no_compress, unaligned, *libraries], cwd=staging),
                unaligned,
            )

        self._check(
            await run_tool([self.sdk.build_tool("zipalign"), "-f", "-p", "4", unaligned, output]),
            output,
        )
        unaligned.unlink(missing_ok=True)
        logger.debug("Package archived", output=str(output), libraries=len(libraries))
