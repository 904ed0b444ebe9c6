from __future__ import annotations

import logging

from amm_indexer.app.application.services.pricing import BUNDLE_ID
from amm_indexer.app.domain.entities import (
    Bundle,
    LiquidityPosition,
    LiquidityPositionSnapshot,
    Pair,
    Token,
)
from amm_indexer.app.domain.events import EventMeta
from amm_indexer.app.domain.numeric import BI_18, convert_token_to_decimal
from amm_indexer.app.domain.ports.out import EntityStore, Erc20TokenMetadataFetcher

logger = logging.getLogger(__name__)


async def create_liquidity_position(
    store: EntityStore,
    pair_id: str,
    user: str,
) -> LiquidityPosition:
    """
    Load the (pair, user) position, creating it on first sight.

    Creation bumps the pair's liquidity_provider_count.
    """
    position_id = f"{pair_id}-{user}"
    position = await store.get(LiquidityPosition, position_id)
    if position is not None:
        return position

    pair = await store.get(Pair, pair_id)
    if pair is not None:
        await store.set(
            pair.model_copy(
                update={"liquidity_provider_count": pair.liquidity_provider_count + 1}
            )
        )
    else:
        logger.error("Pair %s not found for creating LiquidityPosition", pair_id)

    position = LiquidityPosition(id=position_id, pair_id=pair_id, user_id=user)
    await store.set(position)
    return position


async def create_liquidity_snapshot(
    store: EntityStore,
    position: LiquidityPosition,
    meta: EventMeta,
) -> LiquidityPositionSnapshot | None:
    bundle = await store.get(Bundle, BUNDLE_ID)
    if bundle is None:
        logger.error("Bundle not found for creating LiquidityPositionSnapshot")
        return None

    pair = await store.get(Pair, position.pair_id)
    if pair is None:
        logger.error("Pair %s not found for creating LiquidityPositionSnapshot", position.pair_id)
        return None

    token0 = await store.get(Token, pair.token0_id)
    token1 = await store.get(Token, pair.token1_id)
    if token0 is None or token1 is None:
        logger.error(
            "Tokens %s, %s not found for creating LiquidityPositionSnapshot",
            pair.token0_id,
            pair.token1_id,
        )
        return None

    snapshot = LiquidityPositionSnapshot(
        id=f"{position.id}-{meta.block_timestamp}",
        liquidity_position_id=position.id,
        timestamp=meta.block_timestamp,
        block=meta.block_number,
        user_id=position.user_id,
        pair_id=position.pair_id,
        token0_price_usd=token0.derived_eth * bundle.eth_price,
        token1_price_usd=token1.derived_eth * bundle.eth_price,
        reserve0=pair.reserve0,
        reserve1=pair.reserve1,
        reserve_usd=pair.reserve_usd,
        liquidity_token_balance=position.liquidity_token_balance,
        liquidity_token_total_supply=pair.total_supply,
    )
    await store.set(snapshot)
    return snapshot


async def refresh_liquidity_position(
    store: EntityStore,
    fetcher: Erc20TokenMetadataFetcher,
    pair_id: str,
    user: str,
    meta: EventMeta,
) -> LiquidityPosition:
    """
    Set the user's LP-token balance from chain state and snapshot it.
    """
    position = await create_liquidity_position(store, pair_id, user)
    raw_balance = await fetcher.fetch_balance(token_address=pair_id, user_address=user)
    position = position.model_copy(
        update={"liquidity_token_balance": convert_token_to_decimal(raw_balance, BI_18)}
    )
    await store.set(position)
    await create_liquidity_snapshot(store, position, meta)
    return position
