from __future__ import annotations

from decimal import Decimal
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field

from amm_indexer.app.domain.numeric import ZERO_BD


class Entity(BaseModel):
    """
    Base for every node of the subgraph entity graph.

    Entities are immutable values: a mutation builds a new value with
    `model_copy(update=...)` and upserts it through the EntityStore.

    `indexed_fields` lists the attributes that EntityStore.get_where
    can be queried on; backends keep an insertion-ordered index for them.
    """

    model_config = ConfigDict(frozen=True)

    indexed_fields: ClassVar[tuple[str, ...]] = ()

    id: str

    @classmethod
    def entity_type(cls) -> str:
        return cls.__name__


# -----------------------------------------------------------------------------
# Global state
# -----------------------------------------------------------------------------


class UniswapFactory(Entity):
    pair_count: int = 0
    tx_count: int = 0

    total_volume_usd: Decimal = ZERO_BD
    total_volume_eth: Decimal = ZERO_BD
    untracked_volume_usd: Decimal = ZERO_BD

    total_liquidity_usd: Decimal = ZERO_BD
    total_liquidity_eth: Decimal = ZERO_BD


class Bundle(Entity):
    """Reference-token (native currency) price in USD."""

    eth_price: Decimal = ZERO_BD


# -----------------------------------------------------------------------------
# Tokens / pairs
# -----------------------------------------------------------------------------


class Token(Entity):
    symbol: str
    name: str
    decimals: int
    total_supply: int = 0

    # price in reference-token units
    derived_eth: Decimal = ZERO_BD
    price_usd: Decimal = ZERO_BD

    trade_volume: Decimal = ZERO_BD
    trade_volume_usd: Decimal = ZERO_BD
    untracked_volume_usd: Decimal = ZERO_BD
    fees_usd: Decimal = ZERO_BD

    total_liquidity: Decimal = ZERO_BD
    tx_count: int = 0

    # hour-bucket bookkeeping
    hour_array: list[int] = Field(default_factory=list)
    last_hour_recorded: int = 0
    last_hour_archived: int = 0


class Pair(Entity):
    token0_id: str
    token1_id: str

    reserve0: Decimal = ZERO_BD
    reserve1: Decimal = ZERO_BD
    total_supply: Decimal = ZERO_BD

    reserve_eth: Decimal = ZERO_BD
    reserve_usd: Decimal = ZERO_BD
    tracked_reserve_eth: Decimal = ZERO_BD

    # token0_price = token1 per token0, token1_price = token0 per token1
    token0_price: Decimal = ZERO_BD
    token1_price: Decimal = ZERO_BD

    volume_token0: Decimal = ZERO_BD
    volume_token1: Decimal = ZERO_BD
    volume_usd: Decimal = ZERO_BD
    untracked_volume_usd: Decimal = ZERO_BD

    tx_count: int = 0
    mint_count: int = 0
    burn_count: int = 0
    swap_count: int = 0
    liquidity_provider_count: int = 0

    created_at_timestamp: int
    created_at_block_number: int


class PairTokenLookup(Entity):
    """Reverse index token -> pair, one row per (token, pair)."""

    indexed_fields: ClassVar[tuple[str, ...]] = ("token_id",)

    token_id: str
    pair_id: str


class User(Entity):
    pass


# -----------------------------------------------------------------------------
# Transactions and their events
# -----------------------------------------------------------------------------


class Transaction(Entity):
    block_number: int
    timestamp: int

    # running counters, used as sub-indices for Mint/Burn/Swap ids
    mint_count: int = 0
    burn_count: int = 0
    swap_count: int = 0


class Mint(Entity):
    """
    Liquidity deposit.

    Created provisionally by the LP-token Transfer from the zero address and
    completed by the pair's Mint event; `sender` is only set on completion.
    """

    indexed_fields: ClassVar[tuple[str, ...]] = ("transaction_id", "pair_id")

    transaction_id: str
    pair_id: str
    timestamp: int

    to: str
    liquidity: Decimal

    sender: str | None = None
    amount0: Decimal | None = None
    amount1: Decimal | None = None
    amount_usd: Decimal | None = None
    token0_price_usd: Decimal | None = None
    token1_price_usd: Decimal | None = None

    fee_to: str | None = None
    fee_liquidity: Decimal | None = None

    log_index: int

    @property
    def is_complete(self) -> bool:
        return self.sender is not None


class Burn(Entity):
    """
    Liquidity withdrawal.

    `needs_complete` marks a shell created by the LP-token transfer into the
    pair that still waits for the matching transfer to the zero address.
    """

    indexed_fields: ClassVar[tuple[str, ...]] = ("transaction_id", "pair_id")

    transaction_id: str
    pair_id: str
    timestamp: int

    to: str | None = None
    liquidity: Decimal

    sender: str | None = None
    amount0: Decimal | None = None
    amount1: Decimal | None = None
    amount_usd: Decimal | None = None
    token0_price_usd: Decimal | None = None
    token1_price_usd: Decimal | None = None

    needs_complete: bool
    fee_to: str | None = None
    fee_liquidity: Decimal | None = None

    log_index: int


class Swap(Entity):
    indexed_fields: ClassVar[tuple[str, ...]] = ("transaction_id", "pair_id")

    transaction_id: str
    pair_id: str
    timestamp: int

    sender: str
    from_address: str
    to: str

    amount0_in: Decimal
    amount1_in: Decimal
    amount0_out: Decimal
    amount1_out: Decimal

    amount_usd: Decimal
    log_index: int


# -----------------------------------------------------------------------------
# Liquidity positions
# -----------------------------------------------------------------------------


class LiquidityPosition(Entity):
    indexed_fields: ClassVar[tuple[str, ...]] = ("pair_id", "user_id")

    pair_id: str
    user_id: str
    liquidity_token_balance: Decimal = ZERO_BD


class LiquidityPositionSnapshot(Entity):
    indexed_fields: ClassVar[tuple[str, ...]] = ("liquidity_position_id",)

    liquidity_position_id: str
    timestamp: int
    block: int
    user_id: str
    pair_id: str

    token0_price_usd: Decimal
    token1_price_usd: Decimal
    reserve0: Decimal
    reserve1: Decimal
    reserve_usd: Decimal

    liquidity_token_balance: Decimal
    liquidity_token_total_supply: Decimal


# -----------------------------------------------------------------------------
# Time buckets
# -----------------------------------------------------------------------------


class UniswapDayData(Entity):
    date: int

    daily_volume_usd: Decimal = ZERO_BD
    daily_volume_eth: Decimal = ZERO_BD
    daily_volume_untracked: Decimal = ZERO_BD

    total_volume_usd: Decimal = ZERO_BD
    total_volume_eth: Decimal = ZERO_BD
    total_liquidity_usd: Decimal = ZERO_BD
    total_liquidity_eth: Decimal = ZERO_BD

    tx_count: int = 0


class PairDayData(Entity):
    indexed_fields: ClassVar[tuple[str, ...]] = ("pair_address",)

    date: int
    pair_address: str
    token0_id: str
    token1_id: str

    daily_volume_token0: Decimal = ZERO_BD
    daily_volume_token1: Decimal = ZERO_BD
    daily_volume_usd: Decimal = ZERO_BD
    daily_txns: int = 0

    total_supply: Decimal = ZERO_BD
    reserve0: Decimal = ZERO_BD
    reserve1: Decimal = ZERO_BD
    reserve_usd: Decimal = ZERO_BD


class PairHourData(Entity):
    indexed_fields: ClassVar[tuple[str, ...]] = ("pair_id",)

    hour_start_unix: int
    pair_id: str

    hourly_volume_token0: Decimal = ZERO_BD
    hourly_volume_token1: Decimal = ZERO_BD
    hourly_volume_usd: Decimal = ZERO_BD
    hourly_txns: int = 0

    total_supply: Decimal = ZERO_BD
    reserve0: Decimal = ZERO_BD
    reserve1: Decimal = ZERO_BD
    reserve_usd: Decimal = ZERO_BD


class TokenDayData(Entity):
    indexed_fields: ClassVar[tuple[str, ...]] = ("token_id",)

    date: int
    token_id: str

    price_usd: Decimal = ZERO_BD
    daily_volume_token: Decimal = ZERO_BD
    daily_volume_eth: Decimal = ZERO_BD
    daily_volume_usd: Decimal = ZERO_BD
    daily_txns: int = 0

    total_liquidity_token: Decimal = ZERO_BD
    total_liquidity_eth: Decimal = ZERO_BD
    total_liquidity_usd: Decimal = ZERO_BD


class TokenHourData(Entity):
    indexed_fields: ClassVar[tuple[str, ...]] = ("token_id",)

    period_start_unix: int
    token_id: str

    volume: Decimal = ZERO_BD
    volume_usd: Decimal = ZERO_BD
    untracked_volume_usd: Decimal = ZERO_BD
    fees_usd: Decimal = ZERO_BD

    open_price: Decimal
    high_price: Decimal
    low_price: Decimal
    close_price: Decimal
    price_usd: Decimal

    total_value_locked: Decimal = ZERO_BD
    total_value_locked_usd: Decimal = ZERO_BD


ENTITY_TYPES: tuple[type[Entity], ...] = (
    UniswapFactory,
    Bundle,
    Token,
    Pair,
    PairTokenLookup,
    User,
    Transaction,
    Mint,
    Burn,
    Swap,
    LiquidityPosition,
    LiquidityPositionSnapshot,
    UniswapDayData,
    PairDayData,
    PairHourData,
    TokenDayData,
    TokenHourData,
)
