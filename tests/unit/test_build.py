"""Unit tests for build orchestration."""

import asyncio

import pytest

from apkforge.core.exceptions import BuildError
from apkforge.models.target import SymbolOutcome, Target
from apkforge.services.build import BuildOrchestrator

from tests.fakes import DEBUG_MARKER, FakeCompiler, FakeSymbolTool

ALL_TARGETS = [
    "armv7-linux-androideabi",
    "aarch64-linux-android",
    "i686-linux-android",
    "x86_64-linux-android",
]


@pytest.mark.asyncio
class TestBuildOrchestrator:
    """Tests for concurrent per-target builds."""

    async def test_builds_every_target_in_order(self, temp_dir, load_project):
        """Test one artifact per target, in declaration order."""
        config = load_project(build_targets=["x86_64-linux-android", "aarch64-linux-android"])
        compiler = FakeCompiler(temp_dir / "out")

        result = await BuildOrchestrator(compiler, FakeSymbolTool()).build(config, "dev")

        assert [a.target for a in result.artifacts] == [Target.X86_64, Target.ARM64]
        assert all(a.symbols == SymbolOutcome.KEPT for a in result.artifacts)
        assert all(a.library.is_file() for a in result.artifacts)

    async def test_compile_request(self, temp_dir, load_project):
        """Test the compiler receives library name, profile and NDK floor."""
        config = load_project(lib_name="game", sdk={"min_sdk_version": 21, "target_sdk_version": 30})
        compiler = FakeCompiler(temp_dir / "out")

        await BuildOrchestrator(compiler, FakeSymbolTool()).build(config, "release")

        request = compiler.requests[0]
        assert request.lib_name == "game"
        assert request.profile == "release"
        assert request.min_sdk == 23

    async def test_split_symbols(self, temp_dir, load_project):
        """Test the split policy writes a sidecar and strips the library."""
        config = load_project(build_targets=["aarch64-linux-android"], strip="split")

        result = await BuildOrchestrator(FakeCompiler(temp_dir / "out"), FakeSymbolTool()).build(config)

        artifact = result.artifacts[0]
        assert artifact.symbols == SymbolOutcome.SPLIT
        assert artifact.sidecar == artifact.library.with_suffix(".dwarf")
        assert artifact.sidecar.read_bytes() == DEBUG_MARKER
        assert DEBUG_MARKER not in artifact.library.read_bytes()

    async def test_strip_symbols(self, temp_dir, load_project):
        """Test the strip policy removes debug data in place."""
        config = load_project(strip="strip")

        result = await BuildOrchestrator(FakeCompiler(temp_dir / "out"), FakeSymbolTool()).build(config)

        artifact = result.artifacts[0]
        assert artifact.symbols == SymbolOutcome.STRIPPED
        assert artifact.sidecar is None
        assert DEBUG_MARKER not in artifact.library.read_bytes()

    async def test_no_debug_info_is_not_an_error(self, temp_dir, load_project):
        """Test libraries without debug sections are recorded as such."""
        config = load_project(strip="split")
        compiler = FakeCompiler(temp_dir / "out", debug_info=False)

        result = await BuildOrchestrator(compiler, FakeSymbolTool()).build(config)

        assert result.artifacts[0].symbols == SymbolOutcome.ABSENT
        assert result.artifacts[0].sidecar is None

    async def test_failure_names_only_failed_target(self, temp_dir, load_project):
        """Test a failing target aborts the others, which are not reported."""
        targets = ["i686-linux-android", "aarch64-linux-android", "x86_64-linux-android"]
        config = load_project(build_targets=targets, strip="split")
        compiler = FakeCompiler(
            temp_dir / "out",
            failures={"aarch64-linux-android": "error[E0425]: cannot find value `x`"},
            hang={"i686-linux-android"},
        )

        with pytest.raises(BuildError) as exc_info:
            await BuildOrchestrator(compiler, FakeSymbolTool(), max_parallel=4).build(config)

        error = exc_info.value
        assert list(error.failed_targets) == ["aarch64-linux-android"]
        assert "E0425" in error.failed_targets["aarch64-linux-android"]
        assert compiler.aborted == ["i686-linux-android"]

    async def test_failure_discards_artifacts_and_sidecars(self, temp_dir, load_project):
        """Test nothing produced by successful targets survives a failed build."""
        config = load_project(build_targets=ALL_TARGETS, strip="split")
        out = temp_dir / "out"
        compiler = FakeCompiler(out, failures={"x86_64-linux-android": "linker error"}, delay=0.01)

        with pytest.raises(BuildError):
            await BuildOrchestrator(compiler, FakeSymbolTool(), max_parallel=4).build(config)

        leftovers = [p for p in out.rglob("*") if p.is_file()]
        assert leftovers == []

    async def test_queued_targets_never_start_after_failure(self, temp_dir, load_project):
        """Test targets waiting for a slot are skipped once the build aborted."""
        config = load_project(build_targets=ALL_TARGETS)
        compiler = FakeCompiler(temp_dir / "out", failures={"armv7-linux-androideabi": "boom"})

        with pytest.raises(BuildError) as exc_info:
            await BuildOrchestrator(compiler, FakeSymbolTool(), max_parallel=1).build(config)

        assert compiler.started == ["armv7-linux-androideabi"]
        assert list(exc_info.value.failed_targets) == ["armv7-linux-androideabi"]

    async def test_parallelism_is_bounded(self, temp_dir, load_project):
        """Test no more than max_parallel compiles run at once."""
        config = load_project(build_targets=ALL_TARGETS)
        running = 0
        peak = 0

        class CountingCompiler(FakeCompiler):
            async def compile(self, target, request, abort):
                nonlocal running, peak
                running += 1
                peak = max(peak, running)
                try:
                    await asyncio.sleep(0.01)
                    return await super().compile(target, request, abort)
                finally:
                    running -= 1

        await BuildOrchestrator(CountingCompiler(temp_dir / "out"), FakeSymbolTool(), max_parallel=2).build(config)

        assert peak == 2

    async def test_multiple_failures_all_reported(self, temp_dir, load_project):
        """Test every genuinely failing target is named."""
        config = load_project(build_targets=["aarch64-linux-android", "x86_64-linux-android"])
        compiler = FakeCompiler(
            temp_dir / "out",
            failures={"aarch64-linux-android": "a", "x86_64-linux-android": "b"},
            delay=0.01,
        )

        with pytest.raises(BuildError) as exc_info:
            await BuildOrchestrator(compiler, FakeSymbolTool(), max_parallel=2).build(config)

        assert set(exc_info.value.failed_targets) == {"aarch64-linux-android", "x86_64-linux-android"}


def _write_libs(directory, *names):
    directory.mkdir(parents=True, exist_ok=True)
    for name in names:
        (directory / name).write_bytes(b"\x7fELF" + name.encode())
    return directory


@pytest.mark.asyncio
class TestDependencies:
    """Tests for bundling the shared libraries a build needs at load time."""

    async def test_follows_needed_entries(self, temp_dir, load_project):
        """Test transitive dependencies are found and platform libraries skipped."""
        sysroot = _write_libs(temp_dir / "sysroot", "libc++_shared.so", "libunwind_extra.so")
        compiler = FakeCompiler(temp_dir / "out", search_paths=[sysroot], system={"libc.so", "libm.so", "liblog.so"})
        symbols = FakeSymbolTool(needed={
            "libdemo.so": ["libc++_shared.so", "liblog.so", "libc.so"],
            "libc++_shared.so": ["libunwind_extra.so", "libc.so"],
            "libunwind_extra.so": ["libc++_shared.so"],
        })
        config = load_project(build_targets=["aarch64-linux-android"])

        result = await BuildOrchestrator(compiler, symbols).build(config)

        assert result.artifacts[0].dependencies == [
            sysroot / "libc++_shared.so",
            sysroot / "libunwind_extra.so",
        ]

    async def test_first_search_path_wins(self, temp_dir, load_project):
        """Test search paths are consulted in order."""
        first = _write_libs(temp_dir / "first", "libfoo.so")
        second = _write_libs(temp_dir / "second", "libfoo.so")
        compiler = FakeCompiler(temp_dir / "out", search_paths=[first, second])
        symbols = FakeSymbolTool(needed={"libdemo.so": ["libfoo.so"]})
        config = load_project(build_targets=["aarch64-linux-android"])

        result = await BuildOrchestrator(compiler, symbols).build(config)

        assert result.artifacts[0].dependencies == [first / "libfoo.so"]

    async def test_missing_dependency_fails_target(self, temp_dir, load_project):
        """Test an unresolvable library fails the build and names the target."""
        compiler = FakeCompiler(temp_dir / "out", system={"libc.so"})
        symbols = FakeSymbolTool(needed={"libdemo.so": ["libc.so", "libmissing.so"]})
        config = load_project(build_targets=["aarch64-linux-android"])

        with pytest.raises(BuildError) as exc_info:
            await BuildOrchestrator(compiler, symbols).build(config)

        assert list(exc_info.value.failed_targets) == ["aarch64-linux-android"]
        assert "libmissing.so" in exc_info.value.message
        assert not (temp_dir / "out" / "aarch64-linux-android" / "libdemo.so").exists()

    async def test_runtime_library_dependencies(self, temp_dir, load_project):
        """Test libraries needed by runtime libraries are bundled, the runtime libraries are not."""
        _write_libs(temp_dir / "libs" / "arm64-v8a", "libextra.so", "libextra_dep.so")
        sysroot = _write_libs(temp_dir / "sysroot", "libc++_shared.so")
        compiler = FakeCompiler(temp_dir / "out", search_paths=[sysroot])
        symbols = FakeSymbolTool(needed={
            "libdemo.so": ["libextra.so"],
            "libextra.so": ["libextra_dep.so", "libc++_shared.so"],
        })
        config = load_project(build_targets=["aarch64-linux-android"], runtime_libs="libs")

        result = await BuildOrchestrator(compiler, symbols).build(config)

        assert result.artifacts[0].dependencies == [sysroot / "libc++_shared.so"]
