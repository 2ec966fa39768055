"""Deterministic stand-ins for the external tools."""

import asyncio
import zipfile
from pathlib import Path


from apkforge.core.exceptions import BuildError, DeviceError, SigningError
from apkforge.models.build import SigningKey
from apkforge.toolchain.interface import (
    Archiver,
    CompileRequest,
    Compiler,
    DebugSession,
    Debugger,
    DeviceBridge,
    SigningTool,
    SymbolTool,
    ToolAborted,
)

DEBUG_MARKER = b"<debug-info>"


class FakeCompiler(Compiler):
    """Writes a small fake shared library per target.

    ``failures`` maps target triples to an error text; ``hang`` lists targets
    that only finish once the abort signal is raised.
    """

    def __init__(self, out_dir, failures=None, hang=(), debug_info=True, delay=0.0, search_paths=(), system=()):
        self.out_dir = Path(out_dir)
        self.failures = dict(failures or {})
        self.hang = set(hang)
        self.debug_info = debug_info
        self.delay = delay
        self.search_paths = [Path(p) for p in search_paths]
        self.system = frozenset(system)
        self.started = []
        self.aborted = []
        self.requests = []

    async def compile(self, target, request: CompileRequest, abort):
        self.started.append(target.value)
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if target.value in self.hang:
            await abort.wait()
            self.aborted.append(target.value)
            raise ToolAborted(target.value)
        if target.value in self.failures:
            raise BuildError(
                message="cargo build failed",
                failed_targets={target.value: self.failures[target.value]},
            )
        library = self.out_dir / target.value / f"lib{request.lib_name}.so"
        library.parent.mkdir(parents=True, exist_ok=True)
        content = b"\x7fELF" + target.value.encode()
        if self.debug_info:
            content += DEBUG_MARKER
        library.write_bytes(content)
        return library

    def library_search_paths(self, target, request):
        return list(self.search_paths)

    def system_libraries(self, target, request):
        return self.system


class FakeSymbolTool(SymbolTool):
    """``needed`` maps a library file name to the names it links against."""

    def __init__(self, needed=None):
        self.needed = dict(needed or {})

    async def has_debug_info(self, library):
        return DEBUG_MARKER in library.read_bytes()

    async def strip(self, library):
        library.write_bytes(library.read_bytes().replace(DEBUG_MARKER, b""))

    async def split(self, library, sidecar):
        sidecar.write_bytes(DEBUG_MARKER)
        await self.strip(library)

    async def needed_libraries(self, library):
        return list(self.needed.get(library.name, ()))


class FakeArchiver(Archiver):
    """Zips entries in the given order with fixed timestamps."""

    def __init__(self):
        self.calls = []

    async def archive(self, staging, entries, output, *, compress=True):
        self.calls.append({"entries": list(entries), "compress": compress})
        method = zipfile.ZIP_DEFLATED if compress else zipfile.ZIP_STORED
        with zipfile.ZipFile(output, "w") as zf:
            for entry in entries:
                info = zipfile.ZipInfo(entry, date_time=(1980, 1, 1, 0, 0, 0))
                info.compress_type = method
                zf.writestr(info, (staging / entry).read_bytes())


class FakeSigningTool(SigningTool):
    def __init__(self, fail_sign=None):
        self.generated = []
        self.signed = []
        self.fail_sign = fail_sign

    async def generate_keystore(self, path, *, password, alias, dname, validity_days):
        assert not path.exists()
        path.write_bytes(f"{alias}:{dname}:{validity_days}".encode())
        self.generated.append(path)

    async def sign(self, apk, key: SigningKey):
        if self.fail_sign:
            raise SigningError(message=self.fail_sign)
        self.signed.append((apk, key))


class FakeDeviceBridge(DeviceBridge):
    """Records every call; ``pids`` are returned by successive pidof calls."""

    def __init__(self, pids=(), abi="arm64-v8a", fail_reverse=(), fail_remove=()):
        self.serial = "emulator-5554"
        self.calls = []
        self.pids = list(pids)
        self.abi = abi
        self.fail_reverse = set(fail_reverse)
        self.fail_remove = set(fail_remove)
        self.active_rules = []
        self.logcat_stopped = False

    async def install(self, apk):
        self.calls.append(("install", apk.name))

    async def reverse(self, device, host):
        self.calls.append(("reverse", device, host))
        if device in self.fail_reverse:
            raise DeviceError(message="reverse refused", serial=self.serial, operation="reverse")
        self.active_rules.append(device)

    async def remove_reverse(self, device):
        self.calls.append(("remove_reverse", device))
        if device in self.fail_remove:
            raise DeviceError(message="remove refused", serial=self.serial, operation="reverse")
        self.active_rules.remove(device)

    async def start_activity(self, package, activity):
        self.calls.append(("start", package, activity))

    async def pidof(self, package):
        self.calls.append(("pidof", package))
        return self.pids.pop(0) if self.pids else None

    async def get_abi(self):
        return self.abi

    async def follow_logcat(self, pid, stop):
        self.calls.append(("logcat", pid))
        await stop.wait()
        self.logcat_stopped = True


class FakeDebugger(Debugger):
    def __init__(self):
        self.sessions = []

    async def attach(self, session: DebugSession):
        self.sessions.append(session)


