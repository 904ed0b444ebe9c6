from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from amm_indexer.app.application.services.pricing import BUNDLE_ID
from amm_indexer.app.domain.entities import (
    Bundle,
    Pair,
    PairDayData,
    PairHourData,
    Token,
    TokenDayData,
    TokenHourData,
    UniswapDayData,
    UniswapFactory,
)
from amm_indexer.app.domain.errors import MissingEntityError
from amm_indexer.app.domain.events import EventMeta
from amm_indexer.app.domain.ports.out import EntityStore

DAY_SECONDS: Final[int] = 86_400
HOUR_SECONDS: Final[int] = 3_600

# hour buckets older than this many hours are dropped from Token.hour_array
HOUR_ARCHIVE_HORIZON: Final[int] = 768


def day_index(timestamp: int) -> int:
    return timestamp // DAY_SECONDS


def hour_index(timestamp: int) -> int:
    return timestamp // HOUR_SECONDS


async def _bundle(store: EntityStore) -> Bundle:
    bundle = await store.get(Bundle, BUNDLE_ID)
    if bundle is None:
        raise MissingEntityError("Bundle", BUNDLE_ID)
    return bundle


async def update_uniswap_day_data(
    store: EntityStore,
    meta: EventMeta,
    factory_address: str,
) -> UniswapDayData:
    factory = await store.get(UniswapFactory, factory_address)
    if factory is None:
        raise MissingEntityError("UniswapFactory", factory_address)

    day_id = day_index(meta.block_timestamp)
    bucket = await store.get(UniswapDayData, str(day_id))
    if bucket is None:
        bucket = UniswapDayData(id=str(day_id), date=day_id * DAY_SECONDS)

    bucket = bucket.model_copy(
        update={
            "total_volume_usd": factory.total_volume_usd,
            "total_volume_eth": factory.total_volume_eth,
            "total_liquidity_usd": factory.total_liquidity_usd,
            "total_liquidity_eth": factory.total_liquidity_eth,
            "tx_count": factory.tx_count,
        }
    )
    await store.set(bucket)
    return bucket


async def update_pair_day_data(
    store: EntityStore,
    pair: Pair,
    meta: EventMeta,
) -> PairDayData:
    day_id = day_index(meta.block_timestamp)
    bucket_id = f"{pair.id}-{day_id}"
    bucket = await store.get(PairDayData, bucket_id)
    if bucket is None:
        bucket = PairDayData(
            id=bucket_id,
            date=day_id * DAY_SECONDS,
            pair_address=pair.id,
            token0_id=pair.token0_id,
            token1_id=pair.token1_id,
        )

    bucket = bucket.model_copy(
        update={
            "total_supply": pair.total_supply,
            "reserve0": pair.reserve0,
            "reserve1": pair.reserve1,
            "reserve_usd": pair.reserve_usd,
            "daily_txns": bucket.daily_txns + 1,
        }
    )
    await store.set(bucket)
    return bucket


async def update_pair_hour_data(
    store: EntityStore,
    pair: Pair,
    meta: EventMeta,
) -> PairHourData:
    hour_id = hour_index(meta.block_timestamp)
    bucket_id = f"{pair.id}-{hour_id}"
    bucket = await store.get(PairHourData, bucket_id)
    if bucket is None:
        bucket = PairHourData(
            id=bucket_id,
            hour_start_unix=hour_id * HOUR_SECONDS,
            pair_id=pair.id,
        )

    bucket = bucket.model_copy(
        update={
            "total_supply": pair.total_supply,
            "reserve0": pair.reserve0,
            "reserve1": pair.reserve1,
            "reserve_usd": pair.reserve_usd,
            "hourly_txns": bucket.hourly_txns + 1,
        }
    )
    await store.set(bucket)
    return bucket


async def update_token_day_data(
    store: EntityStore,
    token: Token,
    meta: EventMeta,
) -> TokenDayData:
    bundle = await _bundle(store)

    day_id = day_index(meta.block_timestamp)
    bucket_id = f"{token.id}-{day_id}"
    price_usd = token.derived_eth * bundle.eth_price

    bucket = await store.get(TokenDayData, bucket_id)
    if bucket is None:
        bucket = TokenDayData(
            id=bucket_id,
            date=day_id * DAY_SECONDS,
            token_id=token.id,
            price_usd=price_usd,
        )

    total_liquidity_eth = token.total_liquidity * token.derived_eth
    bucket = bucket.model_copy(
        update={
            "price_usd": price_usd,
            "total_liquidity_token": token.total_liquidity,
            "total_liquidity_eth": total_liquidity_eth,
            "total_liquidity_usd": total_liquidity_eth * bundle.eth_price,
            "daily_txns": bucket.daily_txns + 1,
        }
    )
    await store.set(bucket)
    return bucket


async def update_token_hour_data(
    store: EntityStore,
    token: Token,
    meta: EventMeta,
) -> tuple[TokenHourData, Token]:
    """
    Upsert the token's hour bucket with OHLC price tracking and maintain the
    token's window of recorded hours.

    `token` must be the latest persisted value: the returned Token carries the
    updated hour bookkeeping and has already been written.
    """
    bundle = await _bundle(store)

    hour_id = hour_index(meta.block_timestamp)
    bucket_id = f"{token.id}-{hour_id}"
    price = token.derived_eth * bundle.eth_price

    bucket = await store.get(TokenHourData, bucket_id)
    is_new = bucket is None

    if bucket is None:
        bucket = TokenHourData(
            id=bucket_id,
            period_start_unix=hour_id * HOUR_SECONDS,
            token_id=token.id,
            open_price=price,
            high_price=price,
            low_price=price,
            close_price=price,
            price_usd=price,
        )

    bucket = bucket.model_copy(
        update={
            "high_price": max(bucket.high_price, price),
            "low_price": min(bucket.low_price, price),
            "close_price": price,
            "price_usd": price,
            "total_value_locked": token.total_liquidity,
            "total_value_locked_usd": token.total_liquidity * price,
        }
    )
    await store.set(bucket)

    hour_array = list(token.hour_array)
    last_hour_recorded = token.last_hour_recorded
    last_hour_archived = token.last_hour_archived

    if last_hour_archived == 0 and last_hour_recorded == 0:
        last_hour_recorded = hour_id
        last_hour_archived = hour_id - 1

    if is_new:
        hour_array.append(hour_id)
        stop = hour_id - HOUR_ARCHIVE_HORIZON
        if stop > last_hour_archived:
            hour_array = [h for h in hour_array if h > stop]
            last_hour_archived = stop
        last_hour_recorded = hour_id

    updated = token.model_copy(
        update={
            "hour_array": hour_array,
            "last_hour_recorded": last_hour_recorded,
            "last_hour_archived": last_hour_archived,
        }
    )
    if updated != token:
        await store.set(updated)
    return bucket, updated


@dataclass(frozen=True)
class PairBuckets:
    """The buckets touched by one pair event, returned for delta layering."""

    uniswap_day: UniswapDayData
    pair_day: PairDayData
    pair_hour: PairHourData
    token0_day: TokenDayData
    token1_day: TokenDayData
    token0_hour: TokenHourData
    token1_hour: TokenHourData
    token0: Token
    token1: Token


async def update_pair_buckets(
    store: EntityStore,
    pair: Pair,
    token0: Token,
    token1: Token,
    meta: EventMeta,
    factory_address: str,
) -> PairBuckets:
    pair_day = await update_pair_day_data(store, pair, meta)
    pair_hour = await update_pair_hour_data(store, pair, meta)
    uniswap_day = await update_uniswap_day_data(store, meta, factory_address)
    token0_day = await update_token_day_data(store, token0, meta)
    token1_day = await update_token_day_data(store, token1, meta)
    token0_hour, token0 = await update_token_hour_data(store, token0, meta)
    token1_hour, token1 = await update_token_hour_data(store, token1, meta)

    return PairBuckets(
        uniswap_day=uniswap_day,
        pair_day=pair_day,
        pair_hour=pair_hour,
        token0_day=token0_day,
        token1_day=token1_day,
        token0_hour=token0_hour,
        token1_hour=token1_hour,
        token0=token0,
        token1=token1,
    )
