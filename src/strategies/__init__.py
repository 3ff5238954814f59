"""Yield strategies and their fund deployers."""

from .base import FundsDeployer
from .deployers import SwapVaultDeployer, VaultDeployer
from .strategy import StrategyState, YieldStrategy

__all__ = [
    "FundsDeployer",
    "VaultDeployer",
    "SwapVaultDeployer",
    "StrategyState",
    "YieldStrategy",
]
