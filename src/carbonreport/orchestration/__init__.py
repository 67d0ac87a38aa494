"""Wiring of settings into a running reporter."""

from .reporter_orchestrator import ReporterOrchestrator

__all__ = ["ReporterOrchestrator"]
