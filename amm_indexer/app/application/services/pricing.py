from __future__ import annotations

from decimal import Decimal

from amm_indexer.app.domain.chain_config import ChainConfig
from amm_indexer.app.domain.entities import Bundle, Pair, PairTokenLookup, Token
from amm_indexer.app.domain.numeric import ONE_BD, ZERO_BD
from amm_indexer.app.domain.ports.out import EntityStore

BUNDLE_ID = "1"

_TWO_BD = Decimal(2)


async def get_eth_price_in_usd(store: EntityStore, config: ChainConfig) -> Decimal:
    """
    Price of the reference token in USD, averaged over the configured
    stablecoin pairs and weighted by each pair's reference-token reserve.

    Pairs that do not exist yet, hold no reference liquidity, or whose other
    side is not one of `config.stablecoins` (when that list is set) are
    skipped; returns 0 while none is live.
    """
    weighted_price = ZERO_BD
    total_reference_liquidity = ZERO_BD

    for pair_address in config.stable_token_pairs:
        pair = await store.get(Pair, pair_address)
        if pair is None:
            continue

        if pair.token0_id == config.reference_token:
            reference_reserve = pair.reserve0
            price = pair.token0_price
            stable_token = pair.token1_id
        elif pair.token1_id == config.reference_token:
            reference_reserve = pair.reserve1
            price = pair.token1_price
            stable_token = pair.token0_id
        else:
            continue

        if config.stablecoins and stable_token not in config.stablecoins:
            continue

        if reference_reserve == ZERO_BD:
            continue

        weighted_price += price * reference_reserve
        total_reference_liquidity += reference_reserve

    if total_reference_liquidity == ZERO_BD:
        return ZERO_BD
    return weighted_price / total_reference_liquidity


def _reference_price(token: Token, config: ChainConfig) -> Decimal:
    if token.id == config.reference_token:
        return ONE_BD
    return token.derived_eth


async def find_eth_per_token(store: EntityStore, token: Token, config: ChainConfig) -> Decimal:
    """
    Price of `token` in reference-token units.

    Looks at every pair the token trades in against a whitelisted counter
    token and uses the one with the deepest counter-side liquidity (measured
    in reference units). Pairs under `minimum_liquidity_threshold_eth` are
    ignored.
    """
    if token.id == config.reference_token:
        return ONE_BD

    lookups = await store.get_where(PairTokenLookup, "token_id", token.id)

    largest_liquidity_eth = ZERO_BD
    price_so_far = ZERO_BD

    for lookup in lookups:
        pair = await store.get(Pair, lookup.pair_id)
        if pair is None:
            continue

        if pair.token0_id == token.id:
            counter_id = pair.token1_id
            counter_reserve = pair.reserve1
            price_in_counter = pair.token0_price
        else:
            counter_id = pair.token0_id
            counter_reserve = pair.reserve0
            price_in_counter = pair.token1_price

        if counter_id != config.reference_token and not config.is_whitelisted(counter_id):
            continue

        counter = await store.get(Token, counter_id)
        if counter is None:
            continue

        counter_derived_eth = _reference_price(counter, config)
        liquidity_eth = counter_reserve * counter_derived_eth

        if liquidity_eth < config.minimum_liquidity_threshold_eth:
            continue

        if liquidity_eth > largest_liquidity_eth:
            largest_liquidity_eth = liquidity_eth
            price_so_far = price_in_counter * counter_derived_eth

    return price_so_far


async def _eth_price(store: EntityStore) -> Decimal:
    bundle = await store.get(Bundle, BUNDLE_ID)
    if bundle is None:
        return ZERO_BD
    return bundle.eth_price


async def get_tracked_volume_usd(
    store: EntityStore,
    token_amount0: Decimal,
    token0: Token,
    token_amount1: Decimal,
    token1: Token,
    pair: Pair,
    config: ChainConfig,
) -> Decimal:
    """
    USD value of a swap counting only whitelisted legs.

    Both legs whitelisted: average of the two. One leg: that leg's full value.
    Neither: 0. Pairs with few liquidity providers must also clear
    `minimum_usd_threshold_new_pairs` to count at all.
    """
    eth_price = await _eth_price(store)
    price0 = _reference_price(token0, config) * eth_price
    price1 = _reference_price(token1, config) * eth_price

    whitelisted0 = config.is_whitelisted(token0.id)
    whitelisted1 = config.is_whitelisted(token1.id)

    if pair.liquidity_provider_count < config.minimum_liquidity_providers:
        reserve0_usd = pair.reserve0 * price0
        reserve1_usd = pair.reserve1 * price1
        threshold = config.minimum_usd_threshold_new_pairs
        if whitelisted0 and whitelisted1:
            if reserve0_usd + reserve1_usd < threshold:
                return ZERO_BD
        if whitelisted0 and not whitelisted1:
            if reserve0_usd * _TWO_BD < threshold:
                return ZERO_BD
        if not whitelisted0 and whitelisted1:
            if reserve1_usd * _TWO_BD < threshold:
                return ZERO_BD

    if whitelisted0 and whitelisted1:
        return (token_amount0 * price0 + token_amount1 * price1) / _TWO_BD

    if whitelisted0:
        return token_amount0 * price0

    if whitelisted1:
        return token_amount1 * price1

    return ZERO_BD


async def get_tracked_liquidity_usd(
    store: EntityStore,
    token_amount0: Decimal,
    token0: Token,
    token_amount1: Decimal,
    token1: Token,
    config: ChainConfig,
) -> Decimal:
    """
    USD value of pair reserves counting only whitelisted sides.

    Both sides whitelisted: sum of the two. One side: twice that side.
    Neither: 0.
    """
    eth_price = await _eth_price(store)
    price0 = _reference_price(token0, config) * eth_price
    price1 = _reference_price(token1, config) * eth_price

    whitelisted0 = config.is_whitelisted(token0.id)
    whitelisted1 = config.is_whitelisted(token1.id)

    if whitelisted0 and whitelisted1:
        return token_amount0 * price0 + token_amount1 * price1

    if whitelisted0:
        return token_amount0 * price0 * _TWO_BD

    if whitelisted1:
        return token_amount1 * price1 * _TWO_BD

    return ZERO_BD
