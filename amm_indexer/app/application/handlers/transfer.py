from __future__ import annotations

import logging
from typing import Final

from amm_indexer.app.application.handlers.context import HandlerContext
from amm_indexer.app.application.services.liquidity_positions import refresh_liquidity_position
from amm_indexer.app.domain.entities import Burn, Mint, User
from amm_indexer.app.domain.events import TransferEvent
from amm_indexer.app.domain.numeric import ADDRESS_ZERO, BI_18, convert_token_to_decimal

logger = logging.getLogger(__name__)

# LP tokens minted to the zero address on a pair's first deposit
MINIMUM_LIQUIDITY: Final[int] = 1000


async def handle_transfer(event: TransferEvent, ctx: HandlerContext) -> None:
    """
    LP-token transfer: maintains the pair's total supply and opens the
    provisional Mint / Burn records that the pair's Mint and Burn events
    complete later in the same transaction.

    Three branches, any of which may apply:
      - from == 0x0: LP tokens minted, opens a Mint shell unless the latest
        one for the transaction is still incomplete,
      - to == pair: first leg of a withdrawal, opens a Burn shell,
      - from == pair and to == 0x0: LP tokens burned, completes (or opens) a
        Burn and folds a pending fee mint into it.
    """
    if event.to == ADDRESS_ZERO and event.value == MINIMUM_LIQUIDITY:
        logger.debug("Skipping initial liquidity lock in tx %s", event.meta.transaction_hash)
        return

    store = ctx.store
    await ctx.require_factory()

    from_address = event.from_address
    to = event.to

    for user_id in (from_address, to):
        if await store.get(User, user_id) is None:
            await store.set(User(id=user_id))

    pair = await ctx.require_pair(event.meta.src_address)

    value = convert_token_to_decimal(event.value, BI_18)
    transaction = await ctx.get_or_create_transaction(event.meta)

    if from_address == ADDRESS_ZERO:
        pair = pair.model_copy(update={"total_supply": pair.total_supply + value})
        await store.set(pair)

        mints = await store.get_where(Mint, "transaction_id", transaction.id)
        if not mints or mints[-1].is_complete:
            mint = Mint(
                id=f"{transaction.id}-{transaction.mint_count}",
                transaction_id=transaction.id,
                pair_id=pair.id,
                timestamp=event.meta.block_timestamp,
                to=to,
                liquidity=value,
                log_index=event.meta.log_index,
            )
            await store.set(mint)
            transaction = transaction.model_copy(update={"mint_count": transaction.mint_count + 1})
            await store.set(transaction)

    if to == pair.id:
        burn = Burn(
            id=f"{transaction.id}-{transaction.burn_count}",
            transaction_id=transaction.id,
            pair_id=pair.id,
            timestamp=event.meta.block_timestamp,
            to=to,
            liquidity=value,
            sender=from_address,
            needs_complete=True,
            log_index=event.meta.log_index,
        )
        await store.set(burn)
        transaction = transaction.model_copy(update={"burn_count": transaction.burn_count + 1})
        await store.set(transaction)

    if to == ADDRESS_ZERO and from_address == pair.id:
        pair = pair.model_copy(update={"total_supply": pair.total_supply - value})
        await store.set(pair)

        burns = await store.get_where(Burn, "transaction_id", transaction.id)
        if burns and burns[-1].needs_complete:
            burn = burns[-1].model_copy(update={"needs_complete": False})
        else:
            burn = Burn(
                id=f"{transaction.id}-{transaction.burn_count}",
                transaction_id=transaction.id,
                pair_id=pair.id,
                timestamp=event.meta.block_timestamp,
                to=to,
                liquidity=value,
                needs_complete=False,
                log_index=event.meta.log_index,
            )
            transaction = transaction.model_copy(update={"burn_count": transaction.burn_count + 1})
            await store.set(transaction)

        # an incomplete mint here is the protocol fee minted ahead of the burn
        mints = await store.get_where(Mint, "transaction_id", transaction.id)
        if mints and not mints[-1].is_complete:
            fee_mint = mints[-1]
            burn = burn.model_copy(
                update={
                    "fee_to": fee_mint.to,
                    "fee_liquidity": fee_mint.liquidity,
                }
            )
            await store.delete(Mint, fee_mint.id)

        await store.set(burn)

    for user_id in (from_address, to):
        if user_id in (ADDRESS_ZERO, pair.id):
            continue
        await refresh_liquidity_position(
            store,
            ctx.fetcher,
            pair.id,
            user_id,
            event.meta,
        )
