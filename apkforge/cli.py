"""
apkforge CLI.

Command-line interface for building, running and debugging native Android
packages.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .core.config import Config, get_config
from .core.exceptions import ApkForgeError
from .core.logging import setup_logging
from .core.types import PipelineRun, StageStatus
from .models.target import Profile

app = typer.Typer(
    name="apkforge",
    help="Build, sign, install and debug native Android packages",
    add_completion=False,
)

console = Console()

_STATUS_STYLE = {
    StageStatus.COMPLETED: "[green]completed[/green]",
    StageStatus.FAILED: "[red]failed[/red]",
    StageStatus.RUNNING: "[yellow]running[/yellow]",
    StageStatus.SKIPPED: "[dim]skipped[/dim]",
    StageStatus.PENDING: "[dim]pending[/dim]",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"apkforge v{__version__}")
        raise typer.Exit()


@app.callback()
def main_callback(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """apkforge: native Android packaging pipeline."""
    pass


ManifestOption = typer.Option(
    None,
    "--manifest-path",
    "-m",
    help="Path to apkforge.toml or Cargo.toml (searched upwards from the current directory)",
    dir_okay=False,
    resolve_path=True,
)
ReleaseOption = typer.Option(False, "--release", "-r", help="Build with the release profile")
ProfileOption = typer.Option(None, "--profile", "-p", help="Build profile (default: dev)")
VerboseOption = typer.Option(False, "--verbose", help="Enable verbose logging")
DeviceOption = typer.Option(None, "--device", "-d", help="Serial of the target device")


def _profile(release: bool, profile: str | None) -> str:
    if release and profile and profile != Profile.RELEASE:
        console.print("[red]--release and --profile cannot name different profiles[/red]")
        raise typer.Exit(2)
    if release:
        return Profile.RELEASE
    return profile or Profile.DEV


def _setup(verbose: bool, device: str | None = None) -> Config:
    config = get_config()
    if device:
        config.device.serial = device
    setup_logging(config, verbose=verbose)
    return config


def _resolve_manifest(manifest_path: Path | None) -> Path:
    from .orchestration import find_manifest

    return manifest_path or find_manifest(Path.cwd())


def _stage_table(run: PipelineRun) -> Table:
    table = Table(title=f"{run.command} {run.package or ''} ({run.profile})")
    table.add_column("Stage", style="cyan")
    table.add_column("Status")
    table.add_column("Duration", justify="right")
    table.add_column("Details")

    for stage in run.stages:
        details = stage.error_message or ", ".join(p.name for p in stage.artifacts)
        if stage.warnings:
            details = "; ".join([details, *stage.warnings]) if details else "; ".join(stage.warnings)
        table.add_row(
            stage.stage_name,
            _STATUS_STYLE[stage.status],
            f"{stage.duration_seconds:.1f}s",
            escape(details),
        )
    return table


def _report_failure(run: PipelineRun, error: ApkForgeError) -> None:
    console.print(_stage_table(run))
    failed = run.failed_stage
    stage_name = failed.stage_name if failed else error.stage
    console.print(f"\n[bold red]✗ {run.command} failed at stage '{stage_name}'[/bold red]")
    console.print(escape(str(error)))
    raise typer.Exit(1)


def _execute(command: str, manifest_path: Path | None, profile: str, config: Config, **kwargs: object) -> None:
    from .orchestration import ApkPipeline, run_until_complete

    manifest = _resolve_manifest(manifest_path)
    pipeline = ApkPipeline(config)
    run = pipeline.start_run(command, profile)

    console.print(Panel.fit(
        f"[bold blue]apkforge {command}[/bold blue]\n{manifest}",
        border_style="blue",
    ))

    operation = getattr(pipeline, command)
    try:
        run_until_complete(operation(manifest, profile, run=run, **kwargs))
    except ApkForgeError as e:
        _report_failure(run, e)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)

    console.print(_stage_table(run))
    console.print(f"\n[bold green]✓ {command} completed[/bold green]")
    if run.apk_path:
        console.print(f"[bold]Package:[/bold] {run.apk_path}")


@app.command()
def build(
    manifest_path: Optional[Path] = ManifestOption,
    release: bool = ReleaseOption,
    profile: Optional[str] = ProfileOption,
    verbose: bool = VerboseOption,
) -> None:
    """Compile, package and sign the project."""
    config = _setup(verbose)
    _execute("build", manifest_path, _profile(release, profile), config)


@app.command()
def run(
    manifest_path: Optional[Path] = ManifestOption,
    release: bool = ReleaseOption,
    profile: Optional[str] = ProfileOption,
    device: Optional[str] = DeviceOption,
    no_logcat: bool = typer.Option(False, "--no-logcat", help="Do not stream the app's log"),
    verbose: bool = VerboseOption,
) -> None:
    """Build, install and launch the app, then follow it until it exits."""
    config = _setup(verbose, device)
    _execute("run", manifest_path, _profile(release, profile), config, follow_logs=not no_logcat)


@app.command()
def debug(
    manifest_path: Optional[Path] = ManifestOption,
    release: bool = ReleaseOption,
    profile: Optional[str] = ProfileOption,
    device: Optional[str] = DeviceOption,
    verbose: bool = VerboseOption,
) -> None:
    """Build, install and launch the app, then attach ndk-gdb."""
    config = _setup(verbose, device)
    _execute("debug", manifest_path, _profile(release, profile), config)


@app.command()
def config(
    manifest_path: Optional[Path] = ManifestOption,
    release: bool = ReleaseOption,
    profile: Optional[str] = ProfileOption,
    show_manifest: bool = typer.Option(
        False,
        "--show-manifest",
        help="Print the AndroidManifest.xml that would be packaged",
    ),
    verbose: bool = VerboseOption,
) -> None:
    """Show tool settings and the resolved project configuration."""
    from .services.config_loader import ConfigLoader
    from .services.manifest import ManifestSynthesizer

    cfg = _setup(verbose)
    selected = _profile(release, profile)

    table = Table(title="Tool Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Log Level", cfg.log_level)
    table.add_row("Android SDK", str(cfg.tools.android_sdk_root or "not set"))
    table.add_row("Android NDK", str(cfg.tools.android_ndk_root or "auto"))
    table.add_row("Max Parallel Compiles", str(cfg.build.max_parallel))
    table.add_row("Debug Keystore", str(cfg.signing.debug_keystore_path))
    table.add_row("Device", cfg.device.serial or "adb default")
    table.add_row("Device Timeout", f"{cfg.device.command_timeout_seconds:.0f}s")
    console.print(table)

    manifest = _resolve_manifest(manifest_path)
    try:
        result = ConfigLoader().load(manifest)
    except ApkForgeError as e:
        console.print(f"\n[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)
    project = result.data

    table = Table(title=f"Project ({manifest})")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")

    table.add_row("Package", project.package)
    table.add_row("Library", project.lib_name)
    table.add_row("Output", f"{project.apk_name}.apk")
    table.add_row("Targets", ", ".join(f"{t.value} ({t.abi})" for t in project.build_targets))
    table.add_row("SDK (min/target/max)", f"{project.sdk.min_sdk_version}/{project.target_sdk}/{project.sdk.max_sdk_version or '-'}")
    table.add_row("Version", f"{project.version} ({project.version_code})" if project.version else "-")
    table.add_row("Debug Symbols", project.strip.value)
    table.add_row("Signing Profiles", ", ".join(project.signing) or "-")
    console.print(table)

    for warning in result.warnings:
        console.print(f"[yellow]warning:[/yellow] {escape(warning)}")

    if show_manifest:
        text = ManifestSynthesizer(cfg.manifest).render(project, selected)
        console.print(Syntax(text, "xml", theme="ansi_dark"))

    console.print("\n[dim]Configure via environment variables:[/dim]")
    console.print("  APKFORGE_LOG_LEVEL, APKFORGE_MAX_PARALLEL, APKFORGE_DEBUG_KEYSTORE")
    console.print("  APKFORGE_DEVICE_SERIAL, APKFORGE_DEVICE_TIMEOUT, ANDROID_HOME, ANDROID_NDK_ROOT")
    console.print("  APKFORGE_<PROFILE>_KEYSTORE, APKFORGE_<PROFILE>_KEYSTORE_PASSWORD")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
