from __future__ import annotations

import logging
from decimal import Decimal

from amm_indexer.app.application.handlers.context import HandlerContext
from amm_indexer.app.application.services.liquidity_positions import (
    create_liquidity_position,
    create_liquidity_snapshot,
)
from amm_indexer.app.application.services.pricing import BUNDLE_ID
from amm_indexer.app.application.services.time_buckets import update_pair_buckets
from amm_indexer.app.domain.entities import Bundle, Burn, Mint, Pair, Token
from amm_indexer.app.domain.errors import MissingEntityError
from amm_indexer.app.domain.events import BurnEvent, EventMeta, MintEvent
from amm_indexer.app.domain.numeric import ADDRESS_ZERO, ZERO_BD, convert_token_to_decimal

logger = logging.getLogger(__name__)


async def _amounts_usd(
    ctx: HandlerContext,
    token0: Token,
    amount0: Decimal,
    token1: Token,
    amount1: Decimal,
) -> tuple[Decimal, Decimal, Decimal]:
    """
    Value of a deposit / withdrawal and both token USD prices, all zero until
    the reference token has a USD price.
    """
    bundle = await ctx.store.get(Bundle, BUNDLE_ID)
    if bundle is None or bundle.eth_price <= ZERO_BD:
        return ZERO_BD, ZERO_BD, ZERO_BD

    amount_usd = (token1.derived_eth * amount1 + token0.derived_eth * amount0) * bundle.eth_price
    return (
        amount_usd,
        token0.derived_eth * bundle.eth_price,
        token1.derived_eth * bundle.eth_price,
    )


async def _bump_counters(
    ctx: HandlerContext,
    pair: Pair,
    pair_update: dict[str, int],
) -> tuple[Pair, Token, Token]:
    store = ctx.store

    factory = await ctx.require_factory()
    token0 = await ctx.require_token(pair.token0_id)
    token1 = await ctx.require_token(pair.token1_id)

    token0 = token0.model_copy(update={"tx_count": token0.tx_count + 1})
    token1 = token1.model_copy(update={"tx_count": token1.tx_count + 1})
    pair = pair.model_copy(update={"tx_count": pair.tx_count + 1, **pair_update})
    factory = factory.model_copy(update={"tx_count": factory.tx_count + 1})

    await store.set(token0)
    await store.set(token1)
    await store.set(pair)
    await store.set(factory)
    return pair, token0, token1


async def _track_position(ctx: HandlerContext, pair_id: str, user: str | None, meta: EventMeta) -> None:
    if user is None or user in (ADDRESS_ZERO, pair_id):
        return
    position = await create_liquidity_position(ctx.store, pair_id, user)
    await create_liquidity_snapshot(ctx.store, position, meta)


async def _update_buckets(ctx: HandlerContext, pair_id: str, meta: EventMeta) -> None:
    if ctx.preload:
        return

    # re-read: position tracking may have bumped liquidity_provider_count
    pair = await ctx.require_pair(pair_id)
    token0 = await ctx.require_token(pair.token0_id)
    token1 = await ctx.require_token(pair.token1_id)
    await update_pair_buckets(ctx.store, pair, token0, token1, meta, ctx.config.factory_address)


async def handle_mint(event: MintEvent, ctx: HandlerContext) -> None:
    """Complete the Mint shell opened by the LP-token transfer of this transaction."""
    store = ctx.store
    transaction = await ctx.require_transaction(event.meta.transaction_hash)

    mints = await store.get_where(Mint, "transaction_id", transaction.id)
    if not mints:
        raise MissingEntityError("Mint", f"{transaction.id}-*")
    mint = mints[-1]

    pair = await ctx.require_pair(event.meta.src_address)
    token0 = await ctx.require_token(pair.token0_id)
    token1 = await ctx.require_token(pair.token1_id)

    amount0 = convert_token_to_decimal(event.amount0, token0.decimals)
    amount1 = convert_token_to_decimal(event.amount1, token1.decimals)

    pair, token0, token1 = await _bump_counters(ctx, pair, {"mint_count": pair.mint_count + 1})
    amount_usd, token0_price_usd, token1_price_usd = await _amounts_usd(
        ctx, token0, amount0, token1, amount1
    )

    mint = mint.model_copy(
        update={
            "sender": event.sender,
            "amount0": amount0,
            "amount1": amount1,
            "amount_usd": amount_usd,
            "token0_price_usd": token0_price_usd,
            "token1_price_usd": token1_price_usd,
            "log_index": event.meta.log_index,
        }
    )
    await store.set(mint)

    await _track_position(ctx, pair.id, mint.to, event.meta)
    await _update_buckets(ctx, pair.id, event.meta)


async def handle_burn(event: BurnEvent, ctx: HandlerContext) -> None:
    """Complete the latest Burn record opened by the transfers of this transaction."""
    store = ctx.store
    transaction = await ctx.require_transaction(event.meta.transaction_hash)

    burns = await store.get_where(Burn, "transaction_id", transaction.id)
    if not burns:
        raise MissingEntityError("Burn", f"{transaction.id}-*")
    burn = burns[-1]

    pair = await ctx.require_pair(event.meta.src_address)
    token0 = await ctx.require_token(pair.token0_id)
    token1 = await ctx.require_token(pair.token1_id)

    amount0 = convert_token_to_decimal(event.amount0, token0.decimals)
    amount1 = convert_token_to_decimal(event.amount1, token1.decimals)

    pair, token0, token1 = await _bump_counters(ctx, pair, {"burn_count": pair.burn_count + 1})
    amount_usd, token0_price_usd, token1_price_usd = await _amounts_usd(
        ctx, token0, amount0, token1, amount1
    )

    burn = burn.model_copy(
        update={
            "amount0": amount0,
            "amount1": amount1,
            "amount_usd": amount_usd,
            "token0_price_usd": token0_price_usd,
            "token1_price_usd": token1_price_usd,
            "log_index": event.meta.log_index,
        }
    )
    await store.set(burn)

    await _track_position(ctx, pair.id, burn.sender, event.meta)
    await _update_buckets(ctx, pair.id, event.meta)
