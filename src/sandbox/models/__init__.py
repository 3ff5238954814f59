"""Sandbox data models."""

from .simulation import KeeperConfig, SimulationMetrics, SimulationPoint, SimulationResult

__all__ = [
    "KeeperConfig",
    "SimulationMetrics",
    "SimulationPoint",
    "SimulationResult",
]
