"""Core ledger models."""

from .records import (
    ClaimRecord,
    DepositRecord,
    DonationCreditRecord,
    FeeRecord,
    LiquidityRecord,
    MigrationRecord,
    RecipientsUpdatedRecord,
    Record,
    ReportRecord,
    TransferRecord,
    WithdrawRecord,
)

__all__ = [
    "ClaimRecord",
    "DepositRecord",
    "DonationCreditRecord",
    "FeeRecord",
    "LiquidityRecord",
    "MigrationRecord",
    "RecipientsUpdatedRecord",
    "Record",
    "ReportRecord",
    "TransferRecord",
    "WithdrawRecord",
]
