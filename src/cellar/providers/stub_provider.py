"""Stub collaborators for offline/testing use."""

from datetime import datetime
from decimal import ROUND_DOWN, Decimal
from typing import Optional

from cellar.core.clock import Clock, now_utc
from cellar.core.exceptions import (
    InsufficientLiquidityError,
    InvalidConversionError,
    SlippageExceededError,
)
from cellar.providers.price_inputs import FeedRound


# Deterministic USD prices for common assets
STUB_PRICES: dict[str, Decimal] = {
    "USDC": Decimal("1.00"),
    "DAI": Decimal("1.00"),
    "USDT": Decimal("1.00"),
    "WETH": Decimal("2000.00"),
    "WBTC": Decimal("30000.00"),
}

STUB_DECIMALS: dict[str, int] = {
    "USDC": 6,
    "DAI": 18,
    "USDT": 6,
    "WETH": 18,
    "WBTC": 8,
}


def _quantize(amount: Decimal, decimals: int) -> Decimal:
    return amount.quantize(Decimal(1).scaleb(-decimals), rounding=ROUND_DOWN)


class StubPositionAdaptor:
    """
    In-memory position holding a single native asset.

    Balances grow only through deposit() or simulate_yield(); there is no
    per-holder bookkeeping beyond the one vault using it.
    """

    def __init__(self, asset: str, balance: Decimal = Decimal("0"), decimals: Optional[int] = None):
        self._asset = asset
        self._decimals = decimals if decimals is not None else STUB_DECIMALS.get(asset, 18)
        self._balance = Decimal(balance)
        self.withdrawals: list[tuple[Decimal, str]] = []

    def deposit(self, amount: Decimal) -> Decimal:
        self._balance += amount
        return amount

    def withdraw(self, amount: Decimal, recipient: str) -> Decimal:
        if amount > self._balance:
            raise InsufficientLiquidityError(amount, self._balance)
        self._balance -= amount
        self.withdrawals.append((amount, recipient))
        return amount

    def balance_of(self, vault: str) -> Decimal:
        return self._balance

    def max_withdrawable(self, vault: str) -> Decimal:
        return self._balance

    def native_asset(self) -> str:
        return self._asset

    def simulate_yield(self, fraction: Decimal) -> Decimal:
        """Grow (or shrink, if negative) the balance by fraction; returns the delta."""
        delta = _quantize(self._balance * fraction, self._decimals)
        self._balance += delta
        return delta

    def set_balance(self, balance: Decimal) -> None:
        self._balance = Decimal(balance)


class StubSwapRouter:
    """Swap router converting at fixed USD prices with an optional fee."""

    def __init__(
        self,
        prices: Optional[dict[str, Decimal]] = None,
        decimals: Optional[dict[str, int]] = None,
        fee_fraction: Decimal = Decimal("0"),
    ):
        self._prices = dict(prices or STUB_PRICES)
        self._decimals = dict(decimals or STUB_DECIMALS)
        self._fee = fee_fraction
        self.swaps: list[tuple[list[str], Decimal, Decimal]] = []

    def quote(self, path: list[str], amount_in: Decimal) -> Decimal:
        if len(path) < 2:
            raise InvalidConversionError(f"Swap path needs at least two assets: {path}")
        for asset in path:
            if asset not in self._prices:
                raise InvalidConversionError(f"No route through {asset}")

        value = amount_in * self._prices[path[0]] * (1 - self._fee)
        return _quantize(value / self._prices[path[-1]], self._decimals.get(path[-1], 18))

    def convert(self, path: list[str], amount_in: Decimal, min_amount_out: Decimal) -> Decimal:
        amount_out = self.quote(path, amount_in)
        if amount_out < min_amount_out:
            raise SlippageExceededError(amount_out, min_amount_out)

        self.swaps.append((list(path), amount_in, amount_out))
        return amount_out


class StubRateFeed:
    """Push feed returning a fixed answer with a configurable timestamp."""

    def __init__(
        self,
        answer: Decimal,
        min_answer: Decimal = Decimal("0.00000001"),
        max_answer: Decimal = Decimal("1000000000"),
        updated_at: Optional[datetime] = None,
        clock: Clock = now_utc,
    ):
        self.answer = Decimal(answer)
        self._min = Decimal(min_answer)
        self._max = Decimal(max_answer)
        self.updated_at = updated_at
        self._clock = clock
        self.reads = 0

    def latest_round(self) -> FeedRound:
        self.reads += 1
        return FeedRound(answer=self.answer, updated_at=self.updated_at or self._clock())

    def min_answer(self) -> Decimal:
        return self._min

    def max_answer(self) -> Decimal:
        return self._max


class StubTwapPool:
    """Pool reporting a fixed mean tick for any window."""

    def __init__(self, token0: str, token1: str, tick: int):
        self._token0 = token0
        self._token1 = token1
        self.tick = tick
        self.consults = 0

    def token0(self) -> str:
        return self._token0

    def token1(self) -> str:
        return self._token1

    def consult(self, window_seconds: int) -> int:
        self.consults += 1
        return self.tick


class StubRateSource:
    """Wrapped-asset rate source with a settable rate."""

    def __init__(self, rate: Decimal):
        self.rate = Decimal(rate)

    def exchange_rate(self) -> Decimal:
        return self.rate


class StubStablePool:
    """Stable pool with a settable virtual price."""

    def __init__(self, coins: list[str], virtual_price: Decimal = Decimal("1")):
        self._coins = list(coins)
        self.price = Decimal(virtual_price)

    def virtual_price(self) -> Decimal:
        return self.price

    def coins(self) -> list[str]:
        return list(self._coins)


class StubCustodian:
    """Vault wallet that records incoming and outgoing transfers."""

    def __init__(self, balances: Optional[dict[str, Decimal]] = None):
        self._balances: dict[str, Decimal] = dict(balances or {})
        self.receipts: list[tuple[str, str, Decimal]] = []
        self.transfers: list[tuple[str, str, Decimal]] = []

    def credit(self, asset: str, amount: Decimal) -> None:
        self._balances[asset] = self._balances.get(asset, Decimal("0")) + amount

    def receive(self, asset: str, sender: str, amount: Decimal) -> None:
        self.credit(asset, amount)
        self.receipts.append((asset, sender, amount))

    def balance_of(self, asset: str) -> Decimal:
        return self._balances.get(asset, Decimal("0"))

    def transfer(self, asset: str, recipient: str, amount: Decimal) -> None:
        self._balances[asset] = self.balance_of(asset) - amount
        self.transfers.append((asset, recipient, amount))
