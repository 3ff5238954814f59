"""Pytest configuration and fixtures."""

import pytest

from config.settings import Settings
from src.core.access import Capability
from src.core.chain import Chain
from src.core.models.token import MintableToken
from src.donations.ledger import DonationLedger, Recipient
from src.reallocation.adapters import FixedRateSwapAdapter
from src.reallocation.orchestrator import ReallocationOrchestrator
from src.strategies.strategy import YieldStrategy
from src.vaults.vault import ValueVault
from src.vaults.yield_source import SimulatedLendingPool

ADMIN = "0xadmin"
KEEPER = "0xkeeper"
MARKET = "0xmarket"
ALICE = "0xalice"
BOB = "0xbob"
FEES = "0xfees"

CHARITY_A = "0xcharity_a"
CHARITY_B = "0xcharity_b"
CHARITY_C = "0xcharity_c"


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        default_fee_rate_bps=0,
        max_fee_rate_bps=5_000,
        auto_deploy_idle=True,
        migration_deadline_seconds=1_200,
        simulation_seed=7,
        storage_dir=tmp_path / "store",
    )


@pytest.fixture
def chain() -> Chain:
    """Fresh runtime with the standard roles granted."""
    chain = Chain()
    chain.access.grant(Capability.ADMIN, ADMIN)
    chain.access.grant(Capability.KEEPER, KEEPER)
    chain.access.grant(Capability.MINTER, MARKET)
    chain.access.grant(Capability.ADMIN, MARKET)
    return chain


@pytest.fixture
def usdc(chain) -> MintableToken:
    return MintableToken(chain, "0xusdc", "USDC", 6)


@pytest.fixture
def weth(chain) -> MintableToken:
    return MintableToken(chain, "0xweth", "WETH", 18)


@pytest.fixture
def pool(chain) -> SimulatedLendingPool:
    return SimulatedLendingPool(chain, "0xpool")


@pytest.fixture
def vault(chain, usdc, pool, settings) -> ValueVault:
    """USDC vault forwarding idle balance to the pool, no fee."""
    return ValueVault(chain, "0xvault", usdc, yield_source=pool, settings=settings)


@pytest.fixture
def ledger(chain) -> DonationLedger:
    """Ledger with the balanced 40/30/30 split."""
    return DonationLedger(
        chain,
        "0xledger",
        [Recipient(CHARITY_A, 40), Recipient(CHARITY_B, 30), Recipient(CHARITY_C, 30)],
    )


@pytest.fixture
def strategy(chain, usdc, vault, ledger) -> YieldStrategy:
    """USDC strategy on the pool-backed vault donating to the ledger."""
    strategy = YieldStrategy(chain, "0xstrategy", usdc, vault, ledger.address)
    chain.access.grant(Capability.STRATEGY, strategy.address)
    return strategy


@pytest.fixture
def adapter(chain, usdc, weth) -> FixedRateSwapAdapter:
    """Swap venue at 1 WETH = 2000 USDC with deep reserves on both sides."""
    adapter = FixedRateSwapAdapter(chain, "0xadapter")
    adapter.set_rate(usdc, weth, 10**12, 2_000)
    adapter.set_rate(weth, usdc, 2_000, 10**12)
    usdc.mint(adapter.address, 10_000_000 * 10**6, sender=MARKET)
    weth.mint(adapter.address, 10_000 * 10**18, sender=MARKET)
    return adapter


@pytest.fixture
def orchestrator(chain, settings) -> ReallocationOrchestrator:
    orchestrator = ReallocationOrchestrator(chain, "0xorchestrator", settings=settings)
    chain.access.grant(Capability.KEEPER, orchestrator.address)
    return orchestrator


@pytest.fixture
def fund():
    """Mint ``amount`` of ``token`` to ``account`` through the market faucet."""

    def _fund(token: MintableToken, account: str, amount: int) -> None:
        token.mint(account, amount, sender=MARKET)

    return _fund


@pytest.fixture
def deposit_into(fund):
    """Fund, approve and deposit into a vault or strategy; returns shares minted."""

    def _deposit(entity, token: MintableToken, account: str, amount: int) -> int:
        fund(token, account, amount)
        token.approve(entity.address, amount, sender=account)
        return entity.deposit(amount, account, sender=account)

    return _deposit


@pytest.fixture
def accrue(fund):
    """Pay interest into a lending pool from the market account."""

    def _accrue(pool: SimulatedLendingPool, token: MintableToken, amount: int) -> None:
        fund(token, MARKET, amount)
        token.approve(pool.address, amount, sender=MARKET)
        pool.accrue(token, amount, sender=MARKET)

    return _accrue
