"""Failure taxonomy for vault, strategy, ledger and orchestrator operations.

Every failure raised by the engine carries an ``ErrorKind`` so an external
agent can decide whether to retry, wait, or escalate without parsing messages.
"""

from enum import Enum


class ErrorKind(Enum):
    """Broad categories of engine failures."""

    AUTHORIZATION = "authorization"
    PRECONDITION = "precondition"
    LIQUIDITY = "liquidity"
    SLIPPAGE = "slippage"
    EXTERNAL = "external"
    REENTRANCY = "reentrancy"


class VaultError(Exception):
    """Base class for all engine failures."""

    kind: ErrorKind = ErrorKind.PRECONDITION


class AuthorizationError(VaultError):
    """Caller lacks the capability required by the operation."""

    kind = ErrorKind.AUTHORIZATION

    def __init__(self, principal: str, capability: str):
        self.principal = principal
        self.capability = capability
        super().__init__(f"{principal} lacks capability {capability}")


class PreconditionError(VaultError, ValueError):
    """Input or state check failed before any mutation."""

    kind = ErrorKind.PRECONDITION


class ZeroAmountError(PreconditionError):
    pass


class ZeroAddressError(PreconditionError):
    pass


class DeadlineExpiredError(PreconditionError):
    pass


class AssetMismatchError(PreconditionError):
    pass


class InsufficientBalanceError(PreconditionError):
    pass


class InsufficientAllowanceError(PreconditionError):
    pass


class HaltedError(PreconditionError):
    pass


class SameEntityError(PreconditionError):
    pass


class AdapterNotAllowedError(PreconditionError):
    pass


class LiquidityError(VaultError):
    """External source returned less than the requested amount."""

    kind = ErrorKind.LIQUIDITY

    def __init__(self, requested: int, received: int):
        self.requested = requested
        self.received = received
        super().__init__(f"Liquidity shortfall: requested {requested}, received {received}")


class SlippageError(VaultError):
    """Swap output fell below the caller's minimum."""

    kind = ErrorKind.SLIPPAGE

    def __init__(self, min_out: int, received: int):
        self.min_out = min_out
        self.received = received
        super().__init__(f"Swap output {received} below minimum {min_out}")


class SwapFailedError(VaultError):
    """The external swap adapter raised."""

    kind = ErrorKind.EXTERNAL


class ReentrancyError(VaultError):
    """Nested call into a component that is already executing."""

    kind = ErrorKind.REENTRANCY
