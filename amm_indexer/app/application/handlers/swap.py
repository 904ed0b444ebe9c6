from __future__ import annotations

from decimal import Decimal

from amm_indexer.app.application.handlers.context import HandlerContext
from amm_indexer.app.application.services.pricing import BUNDLE_ID, get_tracked_volume_usd
from amm_indexer.app.application.services.time_buckets import update_pair_buckets
from amm_indexer.app.domain.entities import Bundle, Swap
from amm_indexer.app.domain.errors import MissingEntityError
from amm_indexer.app.domain.events import SwapEvent
from amm_indexer.app.domain.numeric import ALMOST_ZERO_BD, ZERO_BD, convert_token_to_decimal, safe_div

_TWO_BD = Decimal(2)


def derived_amount_eth(derived_eth_token0: Decimal, derived_eth_token1: Decimal) -> Decimal:
    """
    Untracked swap value in reference units.

    Averages both legs, except when one leg is (almost) unpriced: then the
    other leg is used as is.
    """
    total = derived_eth_token0 + derived_eth_token1
    if derived_eth_token0 <= ALMOST_ZERO_BD or derived_eth_token1 <= ALMOST_ZERO_BD:
        return total
    return total / _TWO_BD


async def handle_swap(event: SwapEvent, ctx: HandlerContext) -> None:
    store = ctx.store
    config = ctx.config

    pair = await ctx.require_pair(event.meta.src_address)
    factory = await ctx.require_factory()
    token0 = await ctx.require_token(pair.token0_id)
    token1 = await ctx.require_token(pair.token1_id)
    bundle = await store.get(Bundle, BUNDLE_ID)
    if bundle is None:
        raise MissingEntityError("Bundle", BUNDLE_ID)

    amount0_in = convert_token_to_decimal(event.amount0_in, token0.decimals)
    amount1_in = convert_token_to_decimal(event.amount1_in, token1.decimals)
    amount0_out = convert_token_to_decimal(event.amount0_out, token0.decimals)
    amount1_out = convert_token_to_decimal(event.amount1_out, token1.decimals)

    amount0_total = amount0_in + amount0_out
    amount1_total = amount1_in + amount1_out

    eth_price = bundle.eth_price

    derived_eth = derived_amount_eth(
        token0.derived_eth * amount0_total,
        token1.derived_eth * amount1_total,
    )
    derived_amount_usd = derived_eth * eth_price

    tracked_amount_usd = await get_tracked_volume_usd(
        store, amount0_total, token0, amount1_total, token1, pair, config
    )
    tracked_amount_eth = safe_div(tracked_amount_usd, eth_price)

    price0_usd = token0.derived_eth * eth_price
    price1_usd = token1.derived_eth * eth_price

    pair = pair.model_copy(
        update={
            "volume_token0": pair.volume_token0 + amount0_total,
            "volume_token1": pair.volume_token1 + amount1_total,
            "volume_usd": pair.volume_usd + tracked_amount_usd,
            "untracked_volume_usd": pair.untracked_volume_usd + derived_amount_usd,
            "tx_count": pair.tx_count + 1,
            "swap_count": pair.swap_count + 1,
        }
    )
    token0 = token0.model_copy(
        update={
            "trade_volume": token0.trade_volume + amount0_total,
            "trade_volume_usd": token0.trade_volume_usd + tracked_amount_usd,
            "untracked_volume_usd": token0.untracked_volume_usd + derived_amount_usd,
            "fees_usd": token0.fees_usd + amount0_in * price0_usd * config.swap_fee_percent,
            "price_usd": price0_usd,
            "tx_count": token0.tx_count + 1,
        }
    )
    token1 = token1.model_copy(
        update={
            "trade_volume": token1.trade_volume + amount1_total,
            "trade_volume_usd": token1.trade_volume_usd + tracked_amount_usd,
            "untracked_volume_usd": token1.untracked_volume_usd + derived_amount_usd,
            "fees_usd": token1.fees_usd + amount1_in * price1_usd * config.swap_fee_percent,
            "price_usd": price1_usd,
            "tx_count": token1.tx_count + 1,
        }
    )
    factory = factory.model_copy(
        update={
            "total_volume_usd": factory.total_volume_usd + tracked_amount_usd,
            "total_volume_eth": factory.total_volume_eth + tracked_amount_eth,
            "untracked_volume_usd": factory.untracked_volume_usd + derived_amount_usd,
            "tx_count": factory.tx_count + 1,
        }
    )

    await store.set(pair)
    await store.set(token0)
    await store.set(token1)
    await store.set(factory)

    transaction = await ctx.get_or_create_transaction(event.meta)
    swap = Swap(
        id=f"{transaction.id}-{transaction.swap_count}",
        transaction_id=transaction.id,
        pair_id=pair.id,
        timestamp=event.meta.block_timestamp,
        sender=event.sender,
        from_address=event.meta.transaction_from or event.sender,
        to=event.to,
        amount0_in=amount0_in,
        amount1_in=amount1_in,
        amount0_out=amount0_out,
        amount1_out=amount1_out,
        amount_usd=tracked_amount_usd if tracked_amount_usd > ZERO_BD else derived_amount_usd,
        log_index=event.meta.log_index,
    )
    await store.set(swap)
    await store.set(transaction.model_copy(update={"swap_count": transaction.swap_count + 1}))

    buckets = await update_pair_buckets(
        store, pair, token0, token1, event.meta, config.factory_address
    )

    await store.set(
        buckets.uniswap_day.model_copy(
            update={
                "daily_volume_usd": buckets.uniswap_day.daily_volume_usd + tracked_amount_usd,
                "daily_volume_eth": buckets.uniswap_day.daily_volume_eth + tracked_amount_eth,
                "daily_volume_untracked": buckets.uniswap_day.daily_volume_untracked + derived_amount_usd,
            }
        )
    )
    await store.set(
        buckets.pair_day.model_copy(
            update={
                "daily_volume_token0": buckets.pair_day.daily_volume_token0 + amount0_total,
                "daily_volume_token1": buckets.pair_day.daily_volume_token1 + amount1_total,
                "daily_volume_usd": buckets.pair_day.daily_volume_usd + tracked_amount_usd,
            }
        )
    )
    await store.set(
        buckets.pair_hour.model_copy(
            update={
                "hourly_volume_token0": buckets.pair_hour.hourly_volume_token0 + amount0_total,
                "hourly_volume_token1": buckets.pair_hour.hourly_volume_token1 + amount1_total,
                "hourly_volume_usd": buckets.pair_hour.hourly_volume_usd + tracked_amount_usd,
            }
        )
    )

    for token_day, token, amount_total in (
        (buckets.token0_day, token0, amount0_total),
        (buckets.token1_day, token1, amount1_total),
    ):
        await store.set(
            token_day.model_copy(
                update={
                    "daily_volume_token": token_day.daily_volume_token + amount_total,
                    "daily_volume_eth": token_day.daily_volume_eth + amount_total * token.derived_eth,
                    "daily_volume_usd": token_day.daily_volume_usd
                    + amount_total * token.derived_eth * eth_price,
                }
            )
        )

    for token_hour, amount_total, amount_in, price_usd in (
        (buckets.token0_hour, amount0_total, amount0_in, price0_usd),
        (buckets.token1_hour, amount1_total, amount1_in, price1_usd),
    ):
        await store.set(
            token_hour.model_copy(
                update={
                    "volume": token_hour.volume + amount_total,
                    "volume_usd": token_hour.volume_usd + tracked_amount_usd,
                    "untracked_volume_usd": token_hour.untracked_volume_usd + derived_amount_usd,
                    "fees_usd": token_hour.fees_usd + amount_in * price_usd * config.swap_fee_percent,
                }
            )
        )
