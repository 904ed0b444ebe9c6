from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import AbstractAsyncContextManager
from dataclasses import dataclass
from typing import Any, Protocol, TypeVar

from amm_indexer.app.domain.entities import Entity
from amm_indexer.app.domain.events import PairEvent

E = TypeVar("E", bound=Entity)


class EntityStore(Protocol):
    """
    Port for the subgraph entity graph.

    Contract:
      - get: point lookup by id, None when absent,
      - set: full-entity upsert (last write wins),
      - delete: remove by id (only used to retract a provisional fee mint),
      - get_where: equality scan on one of the model's `indexed_fields`,
        ordered by first insertion of each matching entity,
      - ids: every id of a model, in insertion order,
      - savepoint: scope of one event; a backend whose transaction a failed
        write poisons rolls back to the start of the scope and re-raises.

    Reads always observe earlier writes made through the same store.
    """

    async def get(self, model: type[E], entity_id: str) -> E | None: ...

    async def set(self, entity: Entity) -> None: ...

    async def delete(self, model: type[Entity], entity_id: str) -> None: ...

    async def get_where(self, model: type[E], field: str, value: str) -> list[E]: ...

    async def ids(self, model: type[Entity]) -> list[str]: ...

    def savepoint(self) -> AbstractAsyncContextManager[None]: ...


@dataclass(frozen=True)
class TokenMetadata:
    symbol: str
    name: str
    decimals: int | None
    total_supply: int


class Erc20TokenMetadataFetcher(Protocol):
    """
    Low-level dependency used by the PairCreated and Transfer handlers.

    Implementations perform eth_call against ERC-20 contracts. Failures are
    absorbed into fallback values; `decimals` is None only when it could not
    be resolved by any means.

    Addresses are 0x-prefixed hex strings.
    """

    async def fetch_metadata(self, *, token_address: str) -> TokenMetadata: ...

    async def fetch_balance(self, *, token_address: str, user_address: str) -> int: ...


class ContractRegistry(Protocol):
    """
    Set of contracts whose events are delivered to the handlers.

    The factory is tracked from the start; pairs are added as PairCreated
    events are processed.
    """

    def add_pair(self, pair_address: str) -> None: ...

    def is_factory(self, address: str) -> bool: ...

    def is_pair(self, address: str) -> bool: ...


class PairEventSource(Protocol):
    """
    Port yielding decoded factory / pair events in chain order
    (block_number, transaction_index, log_index).

    Sources do not filter on emitter: dynamic pair tracking is applied by the
    consumer against the ContractRegistry.
    """

    def iter_events(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> AsyncIterator[PairEvent]: ...


class EvmEventDecoder(Protocol):
    def decode(
        self,
        *,
        topic0: bytes | None,
        topic1: bytes | None,
        topic2: bytes | None,
        topic3: bytes | None,
        data: bytes,
    ) -> dict[str, Any] | None:
        """
        Decode an EVM log (topics + data) into a dict of typed fields.

        Return:
          - dict[str, Any] for decoded event fields
          - None if the log is not decodable / not the expected event
        """
        ...


class AmmSubgraphIndexer(Protocol):
    """
    Port for replaying factory and pair events of one chain into the
    AMM entity graph.

    Implementations must feed events to the handlers strictly one at a time
    and in chain order.
    """

    async def index_events_for_block_range(
        self,
        *,
        chain_id: int,
        from_block: int,
        to_block: int,
    ) -> None: ...
