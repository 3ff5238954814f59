"""Sandbox module for keeper simulations."""

from .models import (
    KeeperConfig,
    SimulationMetrics,
    SimulationPoint,
    SimulationResult,
)

__all__ = [
    "KeeperConfig",
    "SimulationMetrics",
    "SimulationPoint",
    "SimulationResult",
]
