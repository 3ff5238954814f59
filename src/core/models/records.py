"""Event records emitted by engine operations."""

from dataclasses import asdict, dataclass
from typing import Optional


@dataclass(frozen=True)
class Record:
    """Base class for emitted records; ``timestamp`` is chain time in seconds."""

    timestamp: int

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> dict:
        data = asdict(self)
        data["event"] = self.name
        return data


@dataclass(frozen=True)
class TransferRecord(Record):
    token: str
    sender: str
    receiver: str
    amount: int


@dataclass(frozen=True)
class DepositRecord(Record):
    entity: str
    sender: str
    owner: str
    assets: int
    shares: int


@dataclass(frozen=True)
class WithdrawRecord(Record):
    entity: str
    sender: str
    receiver: str
    owner: str
    assets: int
    shares: int


@dataclass(frozen=True)
class FeeRecord(Record):
    vault: str
    recipient: str
    fee_assets: int
    fee_shares: int
    checkpoint: int


@dataclass(frozen=True)
class LiquidityRecord(Record):
    vault: str
    direction: str          # "supply" or "withdraw"
    requested: int
    moved: int


@dataclass(frozen=True)
class ReportRecord(Record):
    strategy: str
    profit: int
    loss: int
    minted: int
    burned: int
    baseline: int


@dataclass(frozen=True)
class DonationCreditRecord(Record):
    ledger: str
    token: str
    amount: int
    total_weight: int


@dataclass(frozen=True)
class ClaimRecord(Record):
    ledger: str
    token: str
    recipient: str
    amount: int


@dataclass(frozen=True)
class RecipientsUpdatedRecord(Record):
    ledger: str
    preset: Optional[str]
    recipients: tuple


@dataclass(frozen=True)
class MigrationRecord(Record):
    """Summary of one completed reallocation."""

    owner: str
    source: str
    target: str
    shares_burned: int
    assets_in: int
    assets_out: int
    shares_minted: int
    adapter: Optional[str] = None
