"""Orchestration module for apkforge."""

from .pipeline import ApkPipeline, BuildOutputs, Toolchain, find_manifest, run_until_complete

__all__ = [
    "ApkPipeline",
    "BuildOutputs",
    "Toolchain",
    "find_manifest",
    "run_until_complete",
]
