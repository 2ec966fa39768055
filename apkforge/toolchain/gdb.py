"""
ndk-gdb binding of the Debugger capability.

ndk-gdb expects an ndk-build style project directory; a minimal one is laid
out in the work directory: ``jni/Android.mk`` naming the ABI, the manifest
(for the package name) and the symbol file under ``obj/local/<abi>/``.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

from ..core.exceptions import DeviceError
from ..core.logging import get_logger
from .interface import DebugSession, Debugger
from .ndk import AndroidSdk
from .process import terminate

logger = get_logger(__name__)


class NdkGdbDebugger(Debugger):
    """Runs ndk-gdb interactively in a prepared launch directory."""

    def __init__(self, sdk: AndroidSdk, adb_path: Path, workdir: Path, serial: str | None = None) -> None:
        self.sdk = sdk
        self.adb_path = adb_path
        self.workdir = workdir
        self.serial = serial

    def prepare(self, session: DebugSession) -> Path:
        """Lay out the launch directory and return it."""
        jni = self.workdir / "jni"
        jni.mkdir(parents=True, exist_ok=True)
        (jni / "Android.mk").write_text(f"APP_ABI={session.abi}\nTARGET_OUT=\n")
        (self.workdir / "AndroidManifest.xml").write_text(session.manifest_text)

        symbols_dir = self.workdir / "obj" / "local" / session.abi
        symbols_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(session.symbols, symbols_dir / f"lib{session.lib_name}.so")
        return self.workdir

    async def attach(self, session: DebugSession) -> None:
        launch_dir = self.prepare(session)
        cmd = [str(self.sdk.ndk_gdb())]
        if self.serial:
            cmd.extend(["-s", self.serial])
        cmd.extend(["--adb", str(self.adb_path), "--verbose"])

        logger.info("Starting debugger", package=session.package, pid=session.pid, abi=session.abi)
        # Interactive: inherits the terminal
        proc = await asyncio.create_subprocess_exec(*cmd, cwd=launch_dir)
        try:
            returncode = await proc.wait()
        except asyncio.CancelledError:
            await terminate(proc)
            raise
        if returncode != 0:
            raise DeviceError(
                message=f"ndk-gdb exited with status {returncode}",
                serial=self.serial or "",
                operation="debug",
            )
