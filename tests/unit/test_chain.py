"""Unit tests for the runtime, capability table and token ledger."""

import pytest

from src.core.access import AccessControl, Capability
from src.core.chain import Chain, Component, operation
from src.core.errors import (
    AuthorizationError,
    ErrorKind,
    InsufficientAllowanceError,
    InsufficientBalanceError,
    ReentrancyError,
    ZeroAddressError,
)
from src.core.fixed_point import bps_of, mul_div_down, mul_div_up
from src.core.models.records import TransferRecord


class Counter(Component):
    """Minimal component for savepoint and guard tests."""

    _state_fields = ("count", "history")

    def __init__(self, chain, address):
        super().__init__(chain, address)
        self.count = 0
        self.history = []

    @operation
    def bump(self, nested: int = 0):
        self.count += 1
        self.history.append(self.count)
        if nested:
            self.bump(nested - 1)
        return self.count

    @operation
    def bump_then_fail(self):
        self.count += 1
        raise RuntimeError("boom")


class TestFixedPoint:
    """Tests for integer rounding helpers."""

    def test_mul_div_down_floors(self):
        assert mul_div_down(10, 2, 3) == 6

    def test_mul_div_up_ceils(self):
        assert mul_div_up(10, 2, 3) == 7
        assert mul_div_up(9, 2, 3) == 6

    def test_bps_of(self):
        assert bps_of(100_000, 1_000) == 10_000
        assert bps_of(99, 1) == 0


class TestAccessControl:
    """Tests for the capability table."""

    def test_grant_and_revoke(self):
        access = AccessControl()
        access.grant(Capability.KEEPER, "0xk")
        assert access.is_authorized("0xk", Capability.KEEPER)
        assert not access.is_authorized("0xk", Capability.ADMIN)

        access.revoke(Capability.KEEPER, "0xk")
        assert not access.is_authorized("0xk", Capability.KEEPER)

    def test_require_accepts_any_listed_capability(self):
        access = AccessControl([(Capability.ADMIN, "0xa")])
        access.require("0xa", Capability.KEEPER, Capability.ADMIN)

    def test_require_raises_authorization_error(self):
        access = AccessControl()
        with pytest.raises(AuthorizationError) as exc_info:
            access.require("0xnobody", Capability.KEEPER, Capability.ADMIN)

        assert exc_info.value.kind == ErrorKind.AUTHORIZATION
        assert exc_info.value.principal == "0xnobody"
        assert "keeper|admin" in str(exc_info.value)


class TestChain:
    """Tests for the registry, clock and savepoints."""

    def test_register_and_resolve(self):
        chain = Chain()
        counter = Counter(chain, "0xc")
        assert chain.resolve("0xc") is counter
        assert chain.resolve("0xmissing") is None
        assert chain.components_of(Counter) == [counter]

    def test_duplicate_address_rejected(self):
        chain = Chain()
        Counter(chain, "0xc")
        with pytest.raises(ValueError):
            Counter(chain, "0xc")

    def test_empty_address_rejected(self):
        with pytest.raises(ZeroAddressError):
            Counter(Chain(), "")

    def test_advance(self):
        chain = Chain(start_time=100)
        assert chain.advance(50) == 150
        with pytest.raises(ValueError):
            chain.advance(-1)

    def test_atomic_rolls_back_state_and_events(self, chain, usdc, fund):
        fund(usdc, "0xalice", 1_000)
        events_before = len(chain.events)

        with pytest.raises(RuntimeError):
            with chain.atomic():
                usdc.transfer("0xbob", 400, sender="0xalice")
                assert usdc.balance_of("0xbob") == 400
                raise RuntimeError("abort")

        assert usdc.balance_of("0xalice") == 1_000
        assert usdc.balance_of("0xbob") == 0
        assert len(chain.events) == events_before
        assert not chain.in_operation

    def test_operation_failure_restores_component(self):
        chain = Chain()
        counter = Counter(chain, "0xc")
        counter.bump()

        with pytest.raises(RuntimeError):
            counter.bump_then_fail()

        assert counter.count == 1
        assert counter.history == [1]

    def test_reentrant_operation_rejected(self):
        chain = Chain()
        counter = Counter(chain, "0xc")

        with pytest.raises(ReentrancyError) as exc_info:
            counter.bump(nested=1)

        assert exc_info.value.kind == ErrorKind.REENTRANCY
        assert counter.count == 0
        # Guard is released after the failure
        assert counter.bump() == 1

    def test_best_effort_swallows_and_rolls_back(self):
        chain = Chain()
        counter = Counter(chain, "0xc")

        with chain.atomic():
            counter.count = 5
            result = chain.best_effort("failing bump", counter.bump_then_fail)

        assert result is None
        assert counter.count == 5

    def test_best_effort_returns_value(self):
        chain = Chain()
        counter = Counter(chain, "0xc")
        assert chain.best_effort("bump", counter.bump) == 1


class TestFungibleToken:
    """Tests for balances and allowances."""

    def test_transfer_emits_record(self, chain, usdc, fund):
        fund(usdc, "0xalice", 500)
        usdc.transfer("0xbob", 200, sender="0xalice")

        assert usdc.balance_of("0xalice") == 300
        assert usdc.balance_of("0xbob") == 200
        record = chain.events_of(TransferRecord)[-1]
        assert (record.sender, record.receiver, record.amount) == ("0xalice", "0xbob", 200)

    def test_transfer_insufficient_balance(self, usdc, fund):
        fund(usdc, "0xalice", 10)
        with pytest.raises(InsufficientBalanceError):
            usdc.transfer("0xbob", 11, sender="0xalice")

    def test_transfer_from_spends_allowance(self, usdc, fund):
        fund(usdc, "0xalice", 100)
        usdc.approve("0xspender", 60, sender="0xalice")
        usdc.transfer_from("0xalice", "0xbob", 50, sender="0xspender")

        assert usdc.allowance("0xalice", "0xspender") == 10
        assert usdc.balance_of("0xbob") == 50

    def test_transfer_from_without_allowance(self, usdc, fund):
        fund(usdc, "0xalice", 100)
        with pytest.raises(InsufficientAllowanceError):
            usdc.transfer_from("0xalice", "0xbob", 1, sender="0xspender")

    def test_transfer_from_keeps_allowance_on_short_balance(self, usdc, fund):
        fund(usdc, "0xalice", 10)
        usdc.approve("0xspender", 100, sender="0xalice")
        with pytest.raises(InsufficientBalanceError):
            usdc.transfer_from("0xalice", "0xbob", 50, sender="0xspender")
        assert usdc.allowance("0xalice", "0xspender") == 100

    def test_mint_requires_minter(self, usdc):
        with pytest.raises(AuthorizationError):
            usdc.mint("0xalice", 1, sender="0xalice")
        assert usdc.total_supply == 0
