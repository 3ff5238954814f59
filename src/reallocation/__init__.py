"""Cross-entity position migration."""

from .adapters import FixedRateSwapAdapter, PricedSwapper, SwapAdapter, encode_swap_payload
from .orchestrator import ReallocationOrchestrator
from .registry import EntityRegistry

__all__ = [
    "SwapAdapter",
    "PricedSwapper",
    "FixedRateSwapAdapter",
    "encode_swap_payload",
    "EntityRegistry",
    "ReallocationOrchestrator",
]
