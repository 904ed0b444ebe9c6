from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class EventMeta:
    """
    Chain position of a decoded log.

    Addresses and hashes are 0x-prefixed lower-case hex strings.
    """

    chain_id: int
    block_number: int
    block_timestamp: int
    transaction_hash: str
    transaction_index: int
    log_index: int
    src_address: str
    transaction_from: str | None = None


@dataclass(frozen=True)
class PairCreatedEvent:
    meta: EventMeta
    token0: str
    token1: str
    pair: str


@dataclass(frozen=True)
class TransferEvent:
    meta: EventMeta
    from_address: str
    to: str
    value: int


@dataclass(frozen=True)
class MintEvent:
    meta: EventMeta
    sender: str
    amount0: int
    amount1: int


@dataclass(frozen=True)
class BurnEvent:
    meta: EventMeta
    sender: str
    amount0: int
    amount1: int
    to: str


@dataclass(frozen=True)
class SwapEvent:
    meta: EventMeta
    sender: str
    amount0_in: int
    amount1_in: int
    amount0_out: int
    amount1_out: int
    to: str


@dataclass(frozen=True)
class SyncEvent:
    meta: EventMeta
    reserve0: int
    reserve1: int


PairEvent = (
    PairCreatedEvent
    | TransferEvent
    | MintEvent
    | BurnEvent
    | SwapEvent
    | SyncEvent
)
