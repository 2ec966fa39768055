"""
Device Control Service.

Installs a signed package on an attached device, launches its activity,
keeps reverse port forwards alive for the lifetime of the app, streams its
log and bootstraps native debugging sessions.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Mapping
from contextlib import asynccontextmanager
from pathlib import Path

from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_delay, wait_fixed

from ...core.config import DeviceConfig
from ...core.exceptions import DeviceError, DeviceUnavailable
from ...core.logging import get_logger
from ...models.build import BuildResult
from ...models.project import ProjectConfig
from ...models.target import Target
from ...toolchain.interface import DebugSession, Debugger, DeviceBridge

logger = get_logger(__name__)

NATIVE_ACTIVITY = "android.app.NativeActivity"


class _NotStarted(Exception):
    """The launched package has no process yet."""


class DeviceController:
    """Service for everything that happens on the device."""

    def __init__(
        self,
        bridge: DeviceBridge,
        debugger: Debugger | None = None,
        settings: DeviceConfig | None = None,
        activity_name: str = NATIVE_ACTIVITY,
    ) -> None:
        self.bridge = bridge
        self.debugger = debugger
        self.settings = settings or DeviceConfig()
        self.activity_name = activity_name

    @property
    def serial(self) -> str:
        return self.bridge.serial or ""

    async def install(self, apk: Path) -> None:
        logger.info("Installing package", apk=apk.name, serial=self.serial or "default")
        await self.bridge.install(apk)

    @asynccontextmanager
    async def port_forwarding(self, rules: Mapping[str, str]) -> AsyncIterator[list[str]]:
        """Establish reverse port forwards for the duration of the block.

        Every rule that was established is removed when the block exits,
        whether it completed, raised or was cancelled. A failed removal is
        raised only when nothing else is already propagating.

        Yields:
            Device specs of the established rules, in declaration order.
        """
        established: list[str] = []
        body_failed = False
        try:
            for device, host in rules.items():
                await self.bridge.reverse(device, host)
                established.append(device)
            yield established
        except BaseException:
            body_failed = True
            raise
        finally:
            teardown_error: DeviceError | None = None
            for device in reversed(established):
                try:
                    await self.bridge.remove_reverse(device)
                except DeviceError as e:
                    logger.warning("Failed to remove port forward", device=device, error=str(e))
                    teardown_error = teardown_error or e
            if teardown_error is not None and not body_failed:
                raise teardown_error

    async def launch(self, config: ProjectConfig) -> int:
        """Start the activity and wait for its process to appear.

        Returns:
            Process id of the launched package.

        Raises:
            DeviceUnavailable: If no process shows up within the launch timeout.
        """
        await self.bridge.start_activity(config.package, self.activity_name)
        logger.info("Activity started", package=config.package, activity=self.activity_name)

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_delay(self.settings.launch_timeout_seconds),
                wait=wait_fixed(self.settings.poll_interval_seconds),
                retry=retry_if_exception_type(_NotStarted),
                reraise=True,
            ):
                with attempt:
                    pid = await self.bridge.pidof(config.package)
                    if pid is None:
                        raise _NotStarted(config.package)
        except _NotStarted as e:
            raise DeviceUnavailable(
                message=f"{config.package} did not start within {self.settings.launch_timeout_seconds}s",
                serial=self.serial,
                operation="launch",
                cause=e,
            ) from e

        logger.info("Process running", package=config.package, pid=pid)
        return pid

    async def wait_for_exit(self, package: str, pid: int) -> None:
        """Poll until ``package`` no longer runs as ``pid``."""
        while True:
            current = await self.bridge.pidof(package)
            if current != pid:
                logger.info("Process exited", package=package, pid=pid)
                return
            await asyncio.sleep(self.settings.poll_interval_seconds)

    async def run(self, apk: Path, config: ProjectConfig, follow_logs: bool = True) -> int:
        """Install, forward ports, launch and stay attached until the app exits.

        Returns:
            Process id the app ran as.
        """
        await self.install(apk)
        async with self.port_forwarding(config.reverse_port_forward):
            pid = await self.launch(config)

            if not follow_logs:
                await self.wait_for_exit(config.package, pid)
                return pid

            stop = asyncio.Event()
            log_task = asyncio.create_task(self.bridge.follow_logcat(pid, stop))
            try:
                await self.wait_for_exit(config.package, pid)
            finally:
                stop.set()
                (outcome,) = await asyncio.gather(log_task, return_exceptions=True)
                if isinstance(outcome, Exception):
                    logger.warning("Log streaming stopped early", error=str(outcome))
            return pid

    async def debug(
        self,
        apk: Path,
        config: ProjectConfig,
        build: BuildResult,
        manifest_text: str = "",
    ) -> DebugSession:
        """Install and launch the app, then attach the native debugger.

        The symbol file is the split sidecar when one exists, otherwise the
        unstripped library built for the device's ABI.

        Raises:
            DeviceError: If no debugger is configured, the device ABI was not
                built, or its artifact has no debug symbols.
        """
        if self.debugger is None:
            raise DeviceError(message="no debugger available", serial=self.serial, operation="debug")

        await self.install(apk)
        pid = await self.launch(config)
        abi = await self.bridge.get_abi()

        try:
            target = Target.from_abi(abi)
        except ValueError as e:
            raise DeviceError(message=str(e), serial=self.serial, operation="debug", cause=e) from e

        artifact = build.for_target(target)
        if artifact is None:
            raise DeviceError(
                message=f"device ABI {abi} was not built; add {target.value} to build_targets",
                serial=self.serial,
                operation="debug",
            )
        symbols = artifact.debug_symbols
        if symbols is None:
            raise DeviceError(
                message=f"no debug symbols for {abi} ({artifact.symbols.value}); use strip = \"split\" or \"default\"",
                serial=self.serial,
                operation="debug",
            )

        session = DebugSession(
            package=config.package,
            activity=self.activity_name,
            pid=pid,
            abi=abi,
            symbols=symbols,
            lib_name=config.lib_name,
            manifest_text=manifest_text,
        )
        logger.info("Attaching debugger", pid=pid, abi=abi, symbols=symbols.name)
        await self.debugger.attach(session)
        return session
