"""Core module - runtime, capability table, errors and token ledger."""

from .access import AccessControl, Capability
from .chain import Chain, Component, operation
from .constants import BPS_DENOMINATOR, DONATION_PRESETS, SECONDS_PER_YEAR
from .errors import ErrorKind, VaultError
from .models.token import FungibleToken, MintableToken

__all__ = [
    "AccessControl",
    "Capability",
    "Chain",
    "Component",
    "operation",
    "BPS_DENOMINATOR",
    "DONATION_PRESETS",
    "SECONDS_PER_YEAR",
    "ErrorKind",
    "VaultError",
    "FungibleToken",
    "MintableToken",
]
