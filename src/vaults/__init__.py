"""Pooled single-asset vaults and their external yield sources."""

from .vault import ValueVault
from .yield_source import RAY, SimulatedLendingPool, YieldSource

__all__ = ["ValueVault", "YieldSource", "SimulatedLendingPool", "RAY"]
