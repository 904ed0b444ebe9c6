from __future__ import annotations

import logging

from amm_indexer.app.application.handlers.context import HandlerContext
from amm_indexer.app.application.services.pricing import BUNDLE_ID
from amm_indexer.app.domain.entities import Bundle, Pair, PairTokenLookup, Token, UniswapFactory
from amm_indexer.app.domain.errors import TokenMetadataError
from amm_indexer.app.domain.events import PairCreatedEvent

logger = logging.getLogger(__name__)


async def _get_or_create_token(ctx: HandlerContext, token_address: str) -> Token:
    token = await ctx.store.get(Token, token_address)
    if token is not None:
        return token

    meta = await ctx.fetcher.fetch_metadata(token_address=token_address)
    if meta.decimals is None:
        raise TokenMetadataError(token_address, "Failed to get decimals")

    token = Token(
        id=token_address,
        symbol=meta.symbol,
        name=meta.name,
        decimals=meta.decimals,
        total_supply=meta.total_supply,
    )
    logger.info(
        "Created token %s (%s, decimals=%s)",
        token.symbol,
        token_address,
        token.decimals,
    )
    await ctx.store.set(token)
    return token


async def handle_pair_created(event: PairCreatedEvent, ctx: HandlerContext) -> None:
    """
    Register a new pair: factory counter, bundle, both tokens, the pair and
    its token -> pair lookups.

    The pair contract is registered for event delivery before anything else,
    so its events keep flowing even if token metadata cannot be resolved.
    """
    store = ctx.store
    ctx.registry.add_pair(event.pair)

    factory = await store.get(UniswapFactory, ctx.config.factory_address)
    if factory is None:
        factory = UniswapFactory(id=ctx.config.factory_address)
    factory = factory.model_copy(update={"pair_count": factory.pair_count + 1})
    await store.set(factory)

    if await store.get(Bundle, BUNDLE_ID) is None:
        await store.set(Bundle(id=BUNDLE_ID))

    token0 = await _get_or_create_token(ctx, event.token0)
    token1 = await _get_or_create_token(ctx, event.token1)

    pair = Pair(
        id=event.pair,
        token0_id=token0.id,
        token1_id=token1.id,
        created_at_timestamp=event.meta.block_timestamp,
        created_at_block_number=event.meta.block_number,
    )
    await store.set(pair)

    for token in (token0, token1):
        await store.set(
            PairTokenLookup(
                id=f"{token.id}-{pair.id}",
                token_id=token.id,
                pair_id=pair.id,
            )
        )

    logger.info(
        "Created pair %s (%s/%s), pair_count=%s",
        pair.id,
        token0.symbol,
        token1.symbol,
        factory.pair_count,
    )
