from __future__ import annotations

from amm_indexer.app.application.handlers.context import HandlerContext
from amm_indexer.app.application.services.pricing import (
    BUNDLE_ID,
    find_eth_per_token,
    get_eth_price_in_usd,
    get_tracked_liquidity_usd,
)
from amm_indexer.app.domain.entities import Bundle
from amm_indexer.app.domain.errors import MissingEntityError
from amm_indexer.app.domain.events import SyncEvent
from amm_indexer.app.domain.numeric import ZERO_BD, convert_token_to_decimal, safe_div


async def handle_sync(event: SyncEvent, ctx: HandlerContext) -> None:
    """
    Apply the pair's authoritative reserves and re-derive every price that
    depends on them.

    The pair, bundle and token prices are written before the liquidity
    figures are computed: find_eth_per_token and the tracked-liquidity
    valuation read them back from the store.
    """
    store = ctx.store
    config = ctx.config

    pair = await ctx.require_pair(event.meta.src_address)
    token0 = await ctx.require_token(pair.token0_id)
    token1 = await ctx.require_token(pair.token1_id)
    factory = await ctx.require_factory()
    bundle = await store.get(Bundle, BUNDLE_ID)
    if bundle is None:
        raise MissingEntityError("Bundle", BUNDLE_ID)

    # take the pair's previous contribution out of the totals
    factory = factory.model_copy(
        update={"total_liquidity_eth": factory.total_liquidity_eth - pair.tracked_reserve_eth}
    )
    token0 = token0.model_copy(update={"total_liquidity": token0.total_liquidity - pair.reserve0})
    token1 = token1.model_copy(update={"total_liquidity": token1.total_liquidity - pair.reserve1})

    reserve0 = convert_token_to_decimal(event.reserve0, token0.decimals)
    reserve1 = convert_token_to_decimal(event.reserve1, token1.decimals)

    pair = pair.model_copy(
        update={
            "reserve0": reserve0,
            "reserve1": reserve1,
            "token0_price": safe_div(reserve1, reserve0),
            "token1_price": safe_div(reserve0, reserve1),
        }
    )
    await store.set(pair)

    eth_price = await get_eth_price_in_usd(store, config)
    await store.set(bundle.model_copy(update={"eth_price": eth_price}))

    derived_eth0 = await find_eth_per_token(store, token0, config)
    derived_eth1 = await find_eth_per_token(store, token1, config)
    token0 = token0.model_copy(
        update={"derived_eth": derived_eth0, "price_usd": derived_eth0 * eth_price}
    )
    token1 = token1.model_copy(
        update={"derived_eth": derived_eth1, "price_usd": derived_eth1 * eth_price}
    )
    await store.set(token0)
    await store.set(token1)

    reserve_eth = reserve0 * derived_eth0 + reserve1 * derived_eth1
    reserve_usd = reserve_eth * eth_price

    tracked_liquidity_eth = ZERO_BD
    if eth_price > ZERO_BD:
        tracked_liquidity_usd = await get_tracked_liquidity_usd(
            store, reserve0, token0, reserve1, token1, config
        )
        tracked_liquidity_eth = tracked_liquidity_usd / eth_price

    pair = pair.model_copy(
        update={
            "reserve_eth": reserve_eth,
            "reserve_usd": reserve_usd,
            "tracked_reserve_eth": tracked_liquidity_eth,
        }
    )
    await store.set(pair)

    total_liquidity_eth = factory.total_liquidity_eth + tracked_liquidity_eth
    await store.set(
        factory.model_copy(
            update={
                "total_liquidity_eth": total_liquidity_eth,
                "total_liquidity_usd": total_liquidity_eth * eth_price,
            }
        )
    )

    await store.set(token0.model_copy(update={"total_liquidity": token0.total_liquidity + reserve0}))
    await store.set(token1.model_copy(update={"total_liquidity": token1.total_liquidity + reserve1}))
