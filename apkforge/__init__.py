"""
apkforge: build, sign, install and debug native Android packages.

Turns a declarative project configuration into a signed, installable APK:
manifest synthesis, concurrent per-architecture compilation, package
assembly, signing, and device install/run/debug.
"""

__version__ = "0.1.0"
__author__ = "apkforge contributors"
