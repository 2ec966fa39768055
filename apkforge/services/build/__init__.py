"""Build orchestration service."""

from .service import BuildOrchestrator

__all__ = ["BuildOrchestrator"]
