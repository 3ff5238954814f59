"""External swap adapter interfaces and a fixed-rate simulation."""

import json
import logging
from abc import ABC, abstractmethod
from typing import Dict, Tuple

from src.core.chain import Chain, Component, operation
from src.core.constants import BPS_DENOMINATOR
from src.core.errors import InsufficientBalanceError, ZeroAmountError
from src.core.fixed_point import mul_div_down, mul_div_up
from src.core.models.token import FungibleToken

logger = logging.getLogger(__name__)


class SwapAdapter(ABC):
    """
    Allow-listed swap venue invoked with an opaque payload.

    Callers only verify the resulting balance delta of the output asset;
    payload construction belongs to whoever builds the route.
    """

    address: str

    @abstractmethod
    def execute(self, payload: bytes, *, sender: str) -> None:
        """Run the swap described by ``payload`` on behalf of ``sender``."""
        ...


class PricedSwapper(SwapAdapter):
    """Swap adapter that can also quote and swap exact inputs directly."""

    @abstractmethod
    def quote(self, token_in: FungibleToken, token_out: FungibleToken, amount_in: int) -> int:
        """Output received for ``amount_in``."""
        ...

    @abstractmethod
    def quote_in(self, token_in: FungibleToken, token_out: FungibleToken, amount_out: int) -> int:
        """Smallest input that yields at least ``amount_out``."""
        ...

    @abstractmethod
    def swap_exact_in(
        self,
        token_in: FungibleToken,
        token_out: FungibleToken,
        amount_in: int,
        recipient: str,
        *,
        sender: str,
    ) -> int:
        """Pull ``amount_in`` from sender, send the output to recipient."""
        ...


def encode_swap_payload(
    token_in: FungibleToken,
    token_out: FungibleToken,
    amount_in: int,
    recipient: str,
) -> bytes:
    """Build the route payload understood by FixedRateSwapAdapter."""
    return json.dumps(
        {
            "token_in": token_in.address,
            "token_out": token_out.address,
            "amount_in": amount_in,
            "recipient": recipient,
        },
        sort_keys=True,
    ).encode("utf-8")


class FixedRateSwapAdapter(Component, PricedSwapper):
    """
    Swap venue paying out of its own reserves at configured rates.

    Each directed pair has a rate ``numerator / denominator`` (output units
    per input unit). ``slippage_bps`` shaves every output to simulate adverse
    price movement; ``failing`` makes every swap raise.
    """

    _state_fields = ("_rates", "slippage_bps", "failing")

    def __init__(self, chain: Chain, address: str):
        super().__init__(chain, address)
        self._rates: Dict[Tuple[str, str], Tuple[int, int]] = {}
        self.slippage_bps = 0
        self.failing = False

    # Market knobs

    def set_rate(self, token_in: FungibleToken, token_out: FungibleToken, numerator: int, denominator: int = 1) -> None:
        if numerator <= 0 or denominator <= 0:
            raise ValueError("Rate terms must be positive")
        self._rates[(token_in.address, token_out.address)] = (numerator, denominator)

    def set_slippage(self, slippage_bps: int) -> None:
        if not 0 <= slippage_bps < BPS_DENOMINATOR:
            raise ValueError(f"Slippage out of range: {slippage_bps}")
        self.slippage_bps = slippage_bps

    def set_failing(self, failing: bool) -> None:
        self.failing = failing

    # Quotes

    def _rate(self, token_in: FungibleToken, token_out: FungibleToken) -> Tuple[int, int]:
        try:
            return self._rates[(token_in.address, token_out.address)]
        except KeyError:
            raise ValueError(f"No route {token_in.symbol} -> {token_out.symbol}") from None

    def quote(self, token_in: FungibleToken, token_out: FungibleToken, amount_in: int) -> int:
        numerator, denominator = self._rate(token_in, token_out)
        gross = mul_div_down(amount_in, numerator, denominator)
        return mul_div_down(gross, BPS_DENOMINATOR - self.slippage_bps, BPS_DENOMINATOR)

    def quote_in(self, token_in: FungibleToken, token_out: FungibleToken, amount_out: int) -> int:
        numerator, denominator = self._rate(token_in, token_out)
        gross = mul_div_up(amount_out, BPS_DENOMINATOR, BPS_DENOMINATOR - self.slippage_bps)
        return mul_div_up(gross, denominator, numerator)

    # Swaps

    @operation
    def swap_exact_in(
        self,
        token_in: FungibleToken,
        token_out: FungibleToken,
        amount_in: int,
        recipient: str,
        *,
        sender: str,
    ) -> int:
        if self.failing:
            raise RuntimeError(f"Swap venue {self.address} unavailable")
        if amount_in <= 0:
            raise ZeroAmountError("Swap input must be positive")
        amount_out = self.quote(token_in, token_out, amount_in)
        reserve = token_out.balance_of(self.address)
        if reserve < amount_out:
            raise InsufficientBalanceError(f"Reserve {reserve} {token_out.symbol} below output {amount_out}")

        token_in.transfer_from(sender, self.address, amount_in, sender=self.address)
        token_out.transfer(recipient, amount_out, sender=self.address)
        logger.debug(
            f"Swap {amount_in} {token_in.symbol} -> {amount_out} {token_out.symbol} for {recipient}"
        )
        return amount_out

    def execute(self, payload: bytes, *, sender: str) -> None:
        route = json.loads(payload.decode("utf-8"))
        token_in = self.chain.resolve(route["token_in"])
        token_out = self.chain.resolve(route["token_out"])
        if not isinstance(token_in, FungibleToken) or not isinstance(token_out, FungibleToken):
            raise ValueError("Payload names an unknown token")
        self.swap_exact_in(token_in, token_out, int(route["amount_in"]), route["recipient"], sender=sender)
