"""External tool capabilities and their Android SDK/NDK bindings."""

from .interface import (
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

__all__ = [
    "Archiver",
    "CompileRequest",
    "Compiler",
    "DebugSession",
    "Debugger",
    "DeviceBridge",
    "SigningTool",
    "SymbolTool",
    "ToolAborted",
]
