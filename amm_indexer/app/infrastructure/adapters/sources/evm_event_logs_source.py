from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Mapping
from datetime import datetime
from typing import Any

from sqlalchemy import bindparam, text
from sqlalchemy.ext.asyncio import AsyncEngine

from amm_indexer.app.domain.events import (
    BurnEvent,
    EventMeta,
    MintEvent,
    PairCreatedEvent,
    PairEvent,
    SwapEvent,
    SyncEvent,
    TransferEvent,
)
from amm_indexer.app.domain.numeric import normalize_address
from amm_indexer.app.infrastructure.decoders.uniswap_v2.event_decoder import UniswapV2EventDecoder

logger = logging.getLogger(__name__)


def _as_unix(value: datetime | int) -> int:
    if isinstance(value, datetime):
        return int(value.timestamp())
    return int(value)


def _to_event(decoded: Mapping[str, Any], meta: EventMeta) -> PairEvent | None:
    name = decoded["event"]

    if name == "PairCreated":
        return PairCreatedEvent(
            meta=meta,
            token0=normalize_address(decoded["token0"]),
            token1=normalize_address(decoded["token1"]),
            pair=normalize_address(decoded["pair"]),
        )
    if name == "Transfer":
        return TransferEvent(
            meta=meta,
            from_address=normalize_address(decoded["from"]),
            to=normalize_address(decoded["to"]),
            value=decoded["value"],
        )
    if name == "Mint":
        return MintEvent(
            meta=meta,
            sender=normalize_address(decoded["sender"]),
            amount0=decoded["amount0"],
            amount1=decoded["amount1"],
        )
    if name == "Burn":
        return BurnEvent(
            meta=meta,
            sender=normalize_address(decoded["sender"]),
            amount0=decoded["amount0"],
            amount1=decoded["amount1"],
            to=normalize_address(decoded["to"]),
        )
    if name == "Swap":
        return SwapEvent(
            meta=meta,
            sender=normalize_address(decoded["sender"]),
            amount0_in=decoded["amount0In"],
            amount1_in=decoded["amount1In"],
            amount0_out=decoded["amount0Out"],
            amount1_out=decoded["amount1Out"],
            to=normalize_address(decoded["to"]),
        )
    if name == "Sync":
        return SyncEvent(
            meta=meta,
            reserve0=decoded["reserve0"],
            reserve1=decoded["reserve1"],
        )
    return None


class SqlAlchemyEvmEventLogsSource:
    """
    PairEventSource adapter reading factory / pair logs from staging.evm_event_logs.

    Strategy:
    - SQL filters candidate rows by (chain_id, block range, topic0 in the six
      Uniswap v2 event signatures) and joins analytics.blocks for timestamps.
    - Python decodes each row with the ABI decoder and maps it to a domain event.
    - Rows are streamed in (block_number, transaction_index, log_index) order.

    Emitter filtering is left to the consumer: a pair created inside the
    range must still receive its later events.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        *,
        decoder: UniswapV2EventDecoder,
        batch_size: int = 10_000,
    ) -> None:
        self._engine = engine
        self._decoder = decoder
        self._batch_size = batch_size

    async def iter_events(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> AsyncIterator[PairEvent]:
        select_sql = text(
            """
            SELECT
                l.chain_id,
                l.block_number,
                b.timestamp AS block_timestamp,
                l.transaction_hash,
                l.transaction_index,
                l.log_index,
                l.tx_from,
                l.address,
                l.topic0,
                l.topic1,
                l.topic2,
                l.topic3,
                l.data
            FROM staging.evm_event_logs l
            JOIN analytics.blocks b
              ON b.chain_id = l.chain_id
             AND b.block_number = l.block_number
            WHERE l.chain_id = :chain_id
              AND l.block_number BETWEEN :from_block AND :to_block
              AND l.topic0 IN :topic0s
            ORDER BY l.block_number, l.transaction_index, l.log_index
            """
        ).bindparams(bindparam("topic0s", expanding=True))

        async with self._engine.connect() as conn:
            result = await conn.stream(
                select_sql,
                {
                    "chain_id": chain_id,
                    "from_block": from_block,
                    "to_block": to_block,
                    "topic0s": self._decoder.topic0s,
                },
            )

            async for partition in result.mappings().partitions(self._batch_size):
                for r in partition:
                    decoded = self._decoder.decode(
                        topic0=r["topic0"],
                        topic1=r["topic1"],
                        topic2=r["topic2"],
                        topic3=r["topic3"],
                        data=r["data"],
                    )
                    if not decoded:
                        logger.debug(
                            "Skipping undecodable log",
                            extra={
                                "block_number": r["block_number"],
                                "log_index": r["log_index"],
                                "address": normalize_address(r["address"]),
                            },
                        )
                        continue

                    meta = EventMeta(
                        chain_id=r["chain_id"],
                        block_number=r["block_number"],
                        block_timestamp=_as_unix(r["block_timestamp"]),
                        transaction_hash=normalize_address(r["transaction_hash"]),
                        transaction_index=r["transaction_index"],
                        log_index=r["log_index"],
                        src_address=normalize_address(r["address"]),
                        transaction_from=normalize_address(r["tx_from"]) if r["tx_from"] else None,
                    )
                    event = _to_event(decoded, meta)
                    if event is None:
                        logger.debug("Unmapped event %s", decoded["event"])
                        continue
                    yield event
