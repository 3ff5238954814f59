"""Keeper simulation models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import numpy as np


@dataclass
class KeeperConfig:
    """
    Configuration for a keeper simulation run.

    Rates are annualized basis points; the simulator converts them to a
    per-step rate. ``loss_probability`` is the per-step chance of a
    write-off of ``loss_bps`` of the supplied balance.
    """

    name: str
    days: int = 30
    step_hours: int = 24

    # Yield path
    yield_rate_bps: int = 500           # 5% APY
    volatility_bps: int = 100           # std dev of the annualized rate
    loss_probability: float = 0.0
    loss_bps: int = 50

    # Keeper cadence
    take_fees_every: int = 1            # steps between take_fees() calls
    sync_ledger: bool = True

    seed: Optional[int] = None
    description: str = ""

    @property
    def steps(self) -> int:
        return max(1, (self.days * 24) // self.step_hours)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "days": self.days,
            "step_hours": self.step_hours,
            "yield_rate_bps": self.yield_rate_bps,
            "volatility_bps": self.volatility_bps,
            "loss_probability": self.loss_probability,
            "loss_bps": self.loss_bps,
            "take_fees_every": self.take_fees_every,
            "sync_ledger": self.sync_ledger,
            "seed": self.seed,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "KeeperConfig":
        return cls(
            name=data["name"],
            days=int(data.get("days", 30)),
            step_hours=int(data.get("step_hours", 24)),
            yield_rate_bps=int(data.get("yield_rate_bps", 500)),
            volatility_bps=int(data.get("volatility_bps", 100)),
            loss_probability=float(data.get("loss_probability", 0.0)),
            loss_bps=int(data.get("loss_bps", 50)),
            take_fees_every=int(data.get("take_fees_every", 1)),
            sync_ledger=bool(data.get("sync_ledger", True)),
            seed=data.get("seed"),
            description=data.get("description", ""),
        )


@dataclass
class SimulationPoint:
    """State captured after one keeper step."""

    timestamp: datetime

    # Vault
    vault_total_assets: int
    vault_share_price: int
    fee_shares: int                 # minted this step

    # Strategy
    strategy_total_assets: int
    baseline: int
    profit: int
    loss: int

    # Donations
    interest: int                   # paid into the yield source this step
    donation_balance: int           # strategy shares held by the donation recipient

    action: str = ""

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "vault_total_assets": self.vault_total_assets,
            "vault_share_price": self.vault_share_price,
            "fee_shares": self.fee_shares,
            "strategy_total_assets": self.strategy_total_assets,
            "baseline": self.baseline,
            "profit": self.profit,
            "loss": self.loss,
            "interest": self.interest,
            "donation_balance": self.donation_balance,
            "action": self.action,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationPoint":
        return cls(
            timestamp=datetime.fromisoformat(data["timestamp"]),
            vault_total_assets=int(data["vault_total_assets"]),
            vault_share_price=int(data["vault_share_price"]),
            fee_shares=int(data["fee_shares"]),
            strategy_total_assets=int(data["strategy_total_assets"]),
            baseline=int(data["baseline"]),
            profit=int(data["profit"]),
            loss=int(data["loss"]),
            interest=int(data["interest"]),
            donation_balance=int(data["donation_balance"]),
            action=data.get("action", ""),
        )


@dataclass
class SimulationMetrics:
    """Aggregated metrics from a keeper run."""

    total_interest: int
    total_profit: int
    total_loss: int
    total_fee_shares: int
    final_donation_balance: int
    failed_steps: int
    data_points: int

    # Realized per-step yield of the strategy, in bps
    mean_step_yield_bps: float = 0.0
    step_yield_volatility_bps: float = 0.0

    def to_dict(self) -> dict:
        return {
            "total_interest": self.total_interest,
            "total_profit": self.total_profit,
            "total_loss": self.total_loss,
            "total_fee_shares": self.total_fee_shares,
            "final_donation_balance": self.final_donation_balance,
            "failed_steps": self.failed_steps,
            "data_points": self.data_points,
            "mean_step_yield_bps": self.mean_step_yield_bps,
            "step_yield_volatility_bps": self.step_yield_volatility_bps,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationMetrics":
        return cls(
            total_interest=int(data["total_interest"]),
            total_profit=int(data["total_profit"]),
            total_loss=int(data["total_loss"]),
            total_fee_shares=int(data["total_fee_shares"]),
            final_donation_balance=int(data["final_donation_balance"]),
            failed_steps=int(data["failed_steps"]),
            data_points=int(data["data_points"]),
            mean_step_yield_bps=float(data.get("mean_step_yield_bps", 0.0)),
            step_yield_volatility_bps=float(data.get("step_yield_volatility_bps", 0.0)),
        )


@dataclass
class SimulationResult:
    """
    Complete result of a keeper simulation.

    Contains the per-step time series and aggregated metrics.
    """

    config: KeeperConfig
    strategy_address: str
    vault_address: str

    start_time: datetime
    end_time: datetime

    points: List[SimulationPoint] = field(default_factory=list)
    metrics: Optional[SimulationMetrics] = None

    success: bool = True
    error_message: str = ""

    created_at: Optional[datetime] = None
    parameters: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.created_at is None:
            self.created_at = datetime.now(timezone.utc)

    @property
    def profit_series(self) -> List[int]:
        return [p.profit for p in self.points]

    @property
    def donation_series(self) -> List[int]:
        return [p.donation_balance for p in self.points]

    @property
    def timestamps(self) -> List[datetime]:
        return [p.timestamp for p in self.points]

    def calculate_metrics(self) -> SimulationMetrics:
        """Calculate aggregated metrics from points."""
        if not self.points:
            self.metrics = SimulationMetrics(
                total_interest=0,
                total_profit=0,
                total_loss=0,
                total_fee_shares=0,
                final_donation_balance=0,
                failed_steps=0,
                data_points=0,
            )
            return self.metrics

        # Net strategy result per step relative to the value it started from
        step_yields = np.array(
            [
                (p.profit - p.loss) / p.strategy_total_assets * 10_000
                for p in self.points
                if p.strategy_total_assets > 0
            ],
            dtype=float,
        )
        mean = float(step_yields.mean()) if step_yields.size else 0.0
        vol = float(step_yields.std(ddof=1)) if step_yields.size > 1 else 0.0

        self.metrics = SimulationMetrics(
            total_interest=sum(p.interest for p in self.points),
            total_profit=sum(p.profit for p in self.points),
            total_loss=sum(p.loss for p in self.points),
            total_fee_shares=sum(p.fee_shares for p in self.points),
            final_donation_balance=self.points[-1].donation_balance,
            failed_steps=sum(1 for p in self.points if p.action.startswith("failed")),
            data_points=len(self.points),
            mean_step_yield_bps=mean,
            step_yield_volatility_bps=vol,
        )
        return self.metrics

    def to_dict(self) -> dict:
        """Serialize for storage."""
        return {
            "config": self.config.to_dict(),
            "strategy_address": self.strategy_address,
            "vault_address": self.vault_address,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "points": [p.to_dict() for p in self.points],
            "metrics": self.metrics.to_dict() if self.metrics else None,
            "success": self.success,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "SimulationResult":
        return cls(
            config=KeeperConfig.from_dict(data["config"]),
            strategy_address=data["strategy_address"],
            vault_address=data["vault_address"],
            start_time=datetime.fromisoformat(data["start_time"]),
            end_time=datetime.fromisoformat(data["end_time"]),
            points=[SimulationPoint.from_dict(p) for p in data.get("points", [])],
            metrics=SimulationMetrics.from_dict(data["metrics"]) if data.get("metrics") else None,
            success=data.get("success", True),
            error_message=data.get("error_message", ""),
            created_at=datetime.fromisoformat(data["created_at"]) if data.get("created_at") else None,
            parameters=data.get("parameters", {}),
        )
