"""Donation ledger."""

from .ledger import DonationLedger, Recipient, preset_recipients

__all__ = ["DonationLedger", "Recipient", "preset_recipients"]
