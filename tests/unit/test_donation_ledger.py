"""Unit tests for the weighted donation ledger."""

import pytest

from src.core.errors import (
    AuthorizationError,
    InsufficientBalanceError,
    PreconditionError,
    ZeroAmountError,
)
from src.core.models.records import ClaimRecord, DonationCreditRecord, RecipientsUpdatedRecord
from src.donations.ledger import DonationLedger, Recipient

A, B, C = "0xcharity_a", "0xcharity_b", "0xcharity_c"


def credit(ledger, token, amount, fund):
    fund(token, ledger.address, amount)
    return ledger.receive_shares(token, amount, sender="0xadmin")


class TestCrediting:
    """Tests for weighted splits."""

    def test_balanced_split_with_remainder(self, chain, ledger, usdc, fund):
        assigned = credit(ledger, usdc, 101, fund)

        assert assigned == 100
        assert ledger.claimable(usdc, A) == 40
        assert ledger.claimable(usdc, B) == 30
        assert ledger.claimable(usdc, C) == 30
        assert ledger.accounted(usdc) == 101
        assert ledger.unaccounted(usdc) == 0

        record = chain.events_of(DonationCreditRecord)[-1]
        assert (record.amount, record.total_weight) == (101, 100)

    def test_credit_requires_held_balance(self, ledger, usdc, fund):
        fund(usdc, ledger.address, 50)
        with pytest.raises(InsufficientBalanceError):
            ledger.receive_shares(usdc, 51, sender="0xadmin")
        assert ledger.accounted(usdc) == 0

    def test_credit_cannot_double_count(self, ledger, usdc, fund):
        credit(ledger, usdc, 100, fund)
        with pytest.raises(InsufficientBalanceError):
            ledger.receive_shares(usdc, 100, sender="0xadmin")

    def test_credit_requires_strategy_or_admin(self, ledger, usdc, fund):
        fund(usdc, ledger.address, 10)
        with pytest.raises(AuthorizationError):
            ledger.receive_shares(usdc, 10, sender="0xalice")

    def test_zero_credit_rejected(self, ledger, usdc):
        with pytest.raises(ZeroAmountError):
            ledger.receive_shares(usdc, 0, sender="0xadmin")

    def test_inactive_recipient_skipped(self, ledger, usdc, fund):
        ledger.update_recipient(C, 30, active=False, sender="0xadmin")

        credit(ledger, usdc, 100, fund)

        assert ledger.claimable(usdc, A) == 57
        assert ledger.claimable(usdc, B) == 42
        assert ledger.claimable(usdc, C) == 0
        assert ledger.total_weight == 70

    def test_no_active_recipients(self, chain, usdc, fund):
        empty = DonationLedger(chain, "0xempty")
        fund(usdc, empty.address, 10)
        with pytest.raises(PreconditionError):
            empty.receive_shares(usdc, 10, sender="0xadmin")

    def test_sync_credits_unaccounted(self, ledger, usdc, fund):
        fund(usdc, ledger.address, 50)

        assert ledger.sync(usdc, sender="0xkeeper") == 50
        assert ledger.claimable(usdc, A) == 20
        assert ledger.sync(usdc, sender="0xkeeper") == 0


class TestLossAbsorption:
    """Tests for accounting after shares leave the ledger."""

    def test_absorb_is_pro_rata(self, ledger, usdc, fund):
        credit(ledger, usdc, 100, fund)
        usdc.transfer("0xsink", 60, sender=ledger.address)

        assert ledger.absorb_loss(usdc, sender="0xkeeper") == 60
        assert ledger.claimable(usdc, A) == 16
        assert ledger.claimable(usdc, B) == 12
        assert ledger.claimable(usdc, C) == 12
        assert ledger.accounted(usdc) == 40

    def test_absorb_takes_remainder_first(self, ledger, usdc, fund):
        credit(ledger, usdc, 101, fund)
        usdc.transfer("0xsink", 1, sender=ledger.address)

        assert ledger.absorb_loss(usdc, sender="0xkeeper") == 1
        assert ledger.total_claimable(usdc) == 100
        assert ledger.accounted(usdc) == 100

    def test_absorb_never_leaves_books_above_holdings(self, ledger, usdc, fund):
        credit(ledger, usdc, 100, fund)
        usdc.transfer("0xsink", 7, sender=ledger.address)

        ledger.absorb_loss(usdc, sender="0xkeeper")

        held = usdc.balance_of(ledger.address)
        assert ledger.total_claimable(usdc) <= ledger.accounted(usdc) <= held

    def test_sync_absorbs_deficit(self, ledger, usdc, fund):
        credit(ledger, usdc, 100, fund)
        usdc.transfer("0xsink", 100, sender=ledger.address)

        assert ledger.sync(usdc, sender="0xkeeper") == -100
        assert ledger.total_claimable(usdc) == 0

    def test_absorb_without_deficit(self, ledger, usdc, fund):
        credit(ledger, usdc, 100, fund)
        assert ledger.absorb_loss(usdc, sender="0xkeeper") == 0

    def test_absorb_requires_capability(self, ledger, usdc):
        with pytest.raises(AuthorizationError):
            ledger.absorb_loss(usdc, sender="0xalice")


class TestClaiming:
    """Tests for pull-based payouts."""

    def test_claim_pays_and_zeroes(self, chain, ledger, usdc, fund):
        credit(ledger, usdc, 100, fund)

        assert ledger.claim(usdc, sender=A) == 40
        assert usdc.balance_of(A) == 40
        assert ledger.claimable(usdc, A) == 0
        assert ledger.claimed(usdc, A) == 40
        assert ledger.accounted(usdc) == 60
        assert chain.events_of(ClaimRecord)[-1].amount == 40

        with pytest.raises(ZeroAmountError):
            ledger.claim(usdc, sender=A)

    def test_claim_by_stranger(self, ledger, usdc, fund):
        credit(ledger, usdc, 100, fund)
        with pytest.raises(ZeroAmountError):
            ledger.claim(usdc, sender="0xalice")

    def test_claims_keep_accounting_within_holdings(self, ledger, usdc, fund):
        credit(ledger, usdc, 101, fund)
        for recipient in (A, B, C):
            ledger.claim(usdc, sender=recipient)

        # Only the rounding remainder is left
        assert usdc.balance_of(ledger.address) == 1
        assert ledger.accounted(usdc) == 1
        assert ledger.total_claimable(usdc) == 0

    def test_claim_lowers_claimable_and_accounted_together(self, ledger, usdc, fund):
        credit(ledger, usdc, 101, fund)

        ledger.claim(usdc, sender=A)

        held = usdc.balance_of(ledger.address)
        assert ledger.total_claimable(usdc) == 60
        assert ledger.accounted(usdc) == 61 == held
        # Cumulative claims sit outside the accounted total
        assert ledger.total_claimable(usdc) + ledger.claimed(usdc, A) > ledger.accounted(usdc)

    def test_claim_multiple(self, ledger, usdc, weth, fund):
        credit(ledger, usdc, 100, fund)
        credit(ledger, weth, 1_000, fund)

        paid = ledger.claim_multiple([usdc, weth], sender=B)

        assert paid == {"USDC": 30, "WETH": 300}
        assert usdc.balance_of(B) == 30
        assert weth.balance_of(B) == 300

    def test_claim_multiple_skips_empty_tokens(self, ledger, usdc, weth, fund):
        credit(ledger, usdc, 100, fund)
        assert ledger.claim_multiple([usdc, weth], sender=A) == {"USDC": 40}

    def test_claim_multiple_with_nothing(self, ledger, usdc, weth):
        with pytest.raises(ZeroAmountError):
            ledger.claim_multiple([usdc, weth], sender=A)


class TestRecipients:
    """Tests for recipient configuration and presets."""

    def test_apply_focused_preset(self, chain, ledger, usdc, fund):
        ledger.apply_preset("focused", ["0xx", "0xy", "0xz"], sender="0xadmin")

        assert [(r.address, r.weight) for r in ledger.recipients] == [
            ("0xx", 60),
            ("0xy", 20),
            ("0xz", 20),
        ]
        assert chain.events_of(RecipientsUpdatedRecord)[-1].preset == "focused"

        credit(ledger, usdc, 100, fund)
        assert ledger.claimable(usdc, "0xx") == 60

    def test_equal_preset_leaves_remainder(self, ledger, usdc, fund):
        ledger.apply_preset("Equal", ["0xx", "0xy", "0xz"], sender="0xadmin")

        assert credit(ledger, usdc, 100, fund) == 99
        assert ledger.claimable(usdc, "0xz") == 33

    def test_preset_validation(self, ledger):
        with pytest.raises(PreconditionError):
            ledger.apply_preset("unknown", ["0xx", "0xy", "0xz"], sender="0xadmin")
        with pytest.raises(PreconditionError):
            ledger.apply_preset("balanced", ["0xx", "0xy"], sender="0xadmin")
        with pytest.raises(AuthorizationError):
            ledger.apply_preset("balanced", ["0xx", "0xy", "0xz"], sender="0xalice")
        assert [r.address for r in ledger.recipients] == [A, B, C]

    def test_from_preset_uses_settings_default(self, chain, settings):
        ledger = DonationLedger.from_preset(chain, "0xpresetledger", ["0xx", "0xy", "0xz"], settings=settings)

        assert [r.weight for r in ledger.recipients] == [40, 30, 30]
        assert chain.resolve("0xpresetledger") is ledger

    def test_from_preset_explicit_name(self, chain, settings):
        settings.default_donation_preset = "equal"
        ledger = DonationLedger.from_preset(
            chain, "0xpresetledger", ["0xx", "0xy", "0xz"], preset="FOCUSED", settings=settings
        )

        assert [r.weight for r in ledger.recipients] == [60, 20, 20]

    def test_from_preset_unknown_name(self, chain, settings):
        with pytest.raises(PreconditionError):
            DonationLedger.from_preset(
                chain, "0xpresetledger", ["0xx", "0xy", "0xz"], preset="lopsided", settings=settings
            )

    def test_add_recipient(self, ledger):
        ledger.add_recipient("0xd", 10, sender="0xadmin")
        assert ledger.total_weight == 110

        with pytest.raises(PreconditionError):
            ledger.add_recipient("0xd", 10, sender="0xadmin")
        with pytest.raises(ZeroAmountError):
            ledger.add_recipient("0xe", 0, sender="0xadmin")

    def test_update_unknown_recipient(self, ledger):
        with pytest.raises(PreconditionError):
            ledger.update_recipient("0xmissing", 10, sender="0xadmin")

    def test_recipient_to_dict(self):
        assert Recipient("0xa", 5).to_dict() == {"address": "0xa", "weight": 5, "active": True}
