"""Keeper simulation engine."""

import logging
from datetime import datetime, timezone
from typing import List, Optional

import numpy as np

from config.settings import Settings, get_settings
from src.core.chain import Chain
from src.core.constants import BPS_DENOMINATOR, SECONDS_PER_HOUR, SECONDS_PER_YEAR
from src.core.errors import VaultError
from src.core.fixed_point import bps_of
from src.core.models.token import MintableToken
from src.donations.ledger import DonationLedger
from src.sandbox.models.simulation import KeeperConfig, SimulationPoint, SimulationResult
from src.strategies.strategy import YieldStrategy
from src.vaults.yield_source import SimulatedLendingPool

logger = logging.getLogger(__name__)


def _utc(timestamp: int) -> datetime:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


class KeeperSimulator:
    """
    Plays the external keeper over a simulated yield path.

    Each step advances the chain clock, pays interest into the lending pool
    (and occasionally writes off a loss), then runs the keeper cycle:
    ``take_fees`` on the vault, ``report`` on the strategy and ``sync`` on
    the donation ledger. A failing step is recorded and the run continues.
    """

    def __init__(
        self,
        chain: Chain,
        keeper: str,
        market: str,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize simulator.

        Args:
            chain: Shared runtime
            keeper: Address holding KEEPER
            market: Address holding MINTER and ADMIN; funds interest and absorbs losses
            settings: Settings override
        """
        self.chain = chain
        self.keeper = keeper
        self.market = market
        self.settings = settings or get_settings()

    def _rate_path(self, config: KeeperConfig) -> tuple:
        seed = config.seed if config.seed is not None else self.settings.simulation_seed
        rng = np.random.default_rng(seed)
        steps_per_year = SECONDS_PER_YEAR / (config.step_hours * SECONDS_PER_HOUR)
        annual = rng.normal(config.yield_rate_bps, config.volatility_bps, size=config.steps)
        per_step = np.clip(annual, 0, None) / BPS_DENOMINATOR / steps_per_year
        losses = rng.random(config.steps) < config.loss_probability
        return per_step, losses

    def run(
        self,
        config: KeeperConfig,
        strategy: YieldStrategy,
        pool: SimulatedLendingPool,
        ledger: Optional[DonationLedger] = None,
    ) -> SimulationResult:
        """
        Run a keeper simulation.

        Args:
            config: Run configuration
            strategy: Strategy to report on (its vault must use ``pool``)
            pool: Lending pool receiving simulated interest
            ledger: Donation ledger to sync after each report

        Returns:
            SimulationResult with full time series and metrics
        """
        vault = strategy.vault
        asset = vault.asset
        start_time = _utc(self.chain.now)

        logger.info(f"Starting keeper simulation: {config.name}, {config.steps} steps of {config.step_hours}h")

        if not isinstance(asset, MintableToken) or vault.yield_source is not pool:
            return SimulationResult(
                config=config,
                strategy_address=strategy.address,
                vault_address=vault.address,
                start_time=start_time,
                end_time=start_time,
                success=False,
                error_message="Simulation needs a mintable asset and a vault backed by the pool",
            )

        try:
            vault.take_fees(sender=self.keeper)
            strategy.report(sender=self.keeper)
        except VaultError as e:
            logger.error(f"Failed to initialize checkpoints: {e}")
            return SimulationResult(
                config=config,
                strategy_address=strategy.address,
                vault_address=vault.address,
                start_time=start_time,
                end_time=start_time,
                success=False,
                error_message=f"Failed to initialize checkpoints: {e}",
            )

        rates, losses = self._rate_path(config)
        points: List[SimulationPoint] = []

        for step in range(config.steps):
            self.chain.advance(config.step_hours * SECONDS_PER_HOUR)
            interest = int(pool.total_supplied(asset) * float(rates[step]))
            fee_shares = profit = loss = 0
            actions = []

            try:
                if interest > 0:
                    asset.mint(self.market, interest, sender=self.market)
                    asset.approve(pool.address, interest, sender=self.market)
                    pool.accrue(asset, interest, sender=self.market)
                if losses[step]:
                    written_off = bps_of(pool.total_supplied(asset), config.loss_bps)
                    pool.realize_loss(asset, written_off, self.market, sender=self.market)
                    actions.append(f"loss {written_off}")
                if step % config.take_fees_every == 0:
                    fee_shares = vault.take_fees(sender=self.keeper)
                profit, loss = strategy.report(sender=self.keeper)
                if ledger is not None and config.sync_ledger:
                    synced = ledger.sync(strategy, sender=self.keeper)
                    if synced:
                        actions.append(f"synced {synced}")
            except VaultError as e:
                logger.error(f"Keeper step {step} failed: {e}")
                actions = [f"failed: {e}"]

            points.append(
                SimulationPoint(
                    timestamp=_utc(self.chain.now),
                    vault_total_assets=vault.total_assets(),
                    vault_share_price=vault.share_price(),
                    fee_shares=fee_shares,
                    strategy_total_assets=strategy.total_assets(),
                    baseline=strategy.baseline,
                    profit=profit,
                    loss=loss,
                    interest=interest,
                    donation_balance=strategy.balance_of(strategy.donation_recipient),
                    action="; ".join(actions),
                )
            )

        result = SimulationResult(
            config=config,
            strategy_address=strategy.address,
            vault_address=vault.address,
            start_time=start_time,
            end_time=points[-1].timestamp if points else start_time,
            points=points,
            success=True,
            parameters=config.to_dict(),
        )
        result.calculate_metrics()

        logger.info(
            f"Simulation complete: {len(points)} points, "
            f"profit={result.metrics.total_profit}, donated={result.metrics.final_donation_balance}"
        )
        return result

    def format_summary(self, results: List[SimulationResult]) -> str:
        """
        Format a comparison of simulation results.

        Args:
            results: List of simulation results

        Returns:
            Formatted comparison string
        """
        lines = []
        lines.append("=" * 80)
        lines.append("KEEPER SIMULATION SUMMARY")
        lines.append("=" * 80)
        lines.append("")

        header = f"{'Run':<30} {'Profit':>12} {'Loss':>10} {'Fees':>10} {'Donated':>12}"
        lines.append(header)
        lines.append("-" * 80)

        for r in results:
            if not r.success or not r.metrics:
                lines.append(f"{r.config.name:<30} {'FAILED':>12}")
                continue

            m = r.metrics
            lines.append(
                f"{r.config.name:<30} "
                f"{m.total_profit:>12} "
                f"{m.total_loss:>10} "
                f"{m.total_fee_shares:>10} "
                f"{m.final_donation_balance:>12}"
            )

        lines.append("=" * 80)
        return "\n".join(lines)
