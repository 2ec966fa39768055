"""
adb binding of the DeviceBridge capability.

Every call is bounded by the configured timeout. Timeouts and "no device"
style failures surface as DeviceUnavailable; other non-zero exits as
DeviceError.
"""

from __future__ import annotations

import asyncio
import re
import sys
from pathlib import Path

from ..core.exceptions import DeviceError, DeviceUnavailable, ToolNotFoundError
from ..core.logging import get_logger
from .interface import DeviceBridge
from .process import ToolOutput, run_tool, terminate

logger = get_logger(__name__)

_UNREACHABLE = re.compile(
    r"no devices/emulators found|device '.*' not found|device offline|device unauthorized|"
    r"more than one device/emulator|cannot connect|closed",
    re.IGNORECASE,
)


class AdbBridge(DeviceBridge):
    """Runs adb against one device (or adb's default device)."""

    def __init__(self, adb_path: Path, serial: str | None = None, timeout: float = 60.0) -> None:
        self.adb_path = adb_path
        self.serial = serial
        self.timeout = timeout

    def _base(self) -> list[str]:
        cmd = [str(self.adb_path)]
        if self.serial:
            cmd.extend(["-s", self.serial])
        return cmd

    async def _adb(self, *args: str, check: bool = True) -> ToolOutput:
        """Run adb command."""
        operation = args[0] if args else "adb"
        try:
            output = await run_tool([*self._base(), *args], timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise DeviceUnavailable(
                message=f"adb {operation} did not answer within {self.timeout}s",
                serial=self.serial or "",
                operation=operation,
                cause=e,
            ) from e

        if check and not output.ok:
            detail = output.tail(500)
            error_type = DeviceUnavailable if _UNREACHABLE.search(detail) else DeviceError
            raise error_type(
                message=f"adb command failed: {detail}",
                serial=self.serial or "",
                operation=operation,
            )
        return output

    async def install(self, apk: Path) -> None:
        output = await self._adb("install", "-r", str(apk))
        # Older adb versions exit 0 on INSTALL_FAILED_*
        if "Failure" in output.stdout:
            raise DeviceError(
                message=f"install rejected: {output.stdout.strip()}",
                serial=self.serial or "",
                operation="install",
            )
        logger.info("APK installed", path=str(apk))

    async def reverse(self, device: str, host: str) -> None:
        await self._adb("reverse", device, host)
        logger.info("Reverse port forward established", device=device, host=host)

    async def remove_reverse(self, device: str) -> None:
        await self._adb("reverse", "--remove", device)
        logger.info("Reverse port forward removed", device=device)

    async def start_activity(self, package: str, activity: str) -> None:
        output = await self._adb(
            "shell", "am", "start", "-a", "android.intent.action.MAIN", "-n", f"{package}/{activity}"
        )
        if "Error:" in output.stdout:
            raise DeviceError(
                message=f"activity manager refused to start {package}: {output.stdout.strip()}",
                serial=self.serial or "",
                operation="start",
            )

    async def pidof(self, package: str) -> int | None:
        output = await self._adb("shell", "pidof", package, check=False)
        if not output.ok:
            return None
        pids = output.stdout.split()
        return int(pids[0]) if pids and pids[0].isdigit() else None

    async def get_abi(self) -> str:
        output = await self._adb("shell", "getprop", "ro.product.cpu.abi")
        return output.stdout.strip()

    async def follow_logcat(self, pid: int, stop: asyncio.Event) -> None:
        cmd = [*self._base(), "logcat", "-v", "color", "--pid", str(pid)]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as e:
            raise ToolNotFoundError(message="cannot execute adb", tool_name="adb", expected_path=cmd[0], cause=e) from e

        stdout = proc.stdout

        async def pump() -> None:
            if stdout is None:
                return
            async for line in stdout:
                sys.stdout.write(line.decode(errors="replace"))
                sys.stdout.flush()

        pump_task = asyncio.ensure_future(pump())
        try:
            await stop.wait()
        finally:
            pump_task.cancel()
            await terminate(proc)
            await asyncio.gather(pump_task, return_exceptions=True)
