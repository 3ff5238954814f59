"""Simulation engine components."""

from .simulator import KeeperSimulator

__all__ = ["KeeperSimulator"]
